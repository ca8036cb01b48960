"""
Matching operators that find sensitive substrings in text.

This module provides:
- MaskingOperator: Base class for all operators (single scan() capability)
- RegexMaskingOperator: Pattern-driven operator with overridable hooks
- EmailAddressMaskingOperator: Email addresses (plain and URL-encoded)
- IbanMaskingOperator: IBANs validated with the mod-97 checksum
- CreditCardMaskingOperator: Card numbers validated with the Luhn check

Every operator returns replacements whose spans point into the text it
was given; the rewriter applies them. Operators never raise: absence of
a match is the only negative signal.

Usage:
    from operators import default_operators

    for operator in default_operators():
        replacements = operator.scan(text, "***MASKED***")
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple, Type, Union

from rewriter import MatchSpan, OperatorResult, Replacement, rewrite
from validators import is_valid_iban, passes_luhn_check, validate_pattern


logger = logging.getLogger(__name__)


DEFAULT_MASK_VALUE = "***MASKED***"


class MaskingOperator:
    """
    Base class for matching operators.

    Subclasses implement _scan(); scan() guards it so that an internal
    failure is treated as "no match" for this operator on this input.

    Attributes:
        name: Short identifier used in configuration
    """

    name = 'operator'

    def scan(self, text: str, mask_value: str = DEFAULT_MASK_VALUE) -> OperatorResult:
        """
        Find sensitive regions in text.

        Args:
            text: Text to scan
            mask_value: Mask value the replacements derive from

        Returns:
            Replacements in the order found (empty if nothing matched)
        """
        if not text or not isinstance(text, str):
            return []

        try:
            return self._scan(text, mask_value)
        except Exception as e:
            logger.warning(
                f"Operator '{self.name}' failed, treating input as unmatched: "
                f"{type(e).__name__}"
            )
            return []

    def _scan(self, text: str, mask_value: str) -> OperatorResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RegexMaskingOperator(MaskingOperator):
    """
    Operator driven by a single regular expression.

    scan() runs a small pipeline of hooks that subclasses override
    selectively:

    1. should_mask_input(text)   - bail out early for irrelevant input
    2. preprocess_input(text)    - transform text before searching
    3. pattern search            - raw candidates
    4. should_mask_match(match)  - reject semantically invalid hits
    5. shorter_match_ends(match) - where to retry a rejected hit
    6. preprocess_mask(mask, match) - per-match replacement text

    A rejected candidate is re-matched from the same start, ending at
    each offset from shorter_match_ends() in turn, so that a greedy
    pattern which swallowed a neighbouring token still finds the value.

    If preprocess_input() changes the text length, spans cannot be mapped
    back to the input and the whole input is replaced by the masked
    preprocessed text.

    Examples:
        >>> operator = RegexMaskingOperator(r'token=\\w+')
        >>> operator.scan("auth token=abc123", "**")
        [Replacement(span=MatchSpan(start=5, length=12), text='**')]
    """

    name = 'regex'

    def __init__(self, pattern: Union[str, re.Pattern], flags: int = 0):
        """
        Initialize operator.

        Args:
            pattern: Regular expression source or compiled pattern
            flags: re module flags (ignored for compiled patterns)

        Raises:
            ValueError: If pattern is invalid or can match empty text
        """
        if isinstance(pattern, re.Pattern):
            self.pattern = pattern
        else:
            self.pattern = validate_pattern(pattern, flags)

    def should_mask_input(self, text: str) -> bool:
        return True

    def preprocess_input(self, text: str) -> str:
        return text

    def should_mask_match(self, match: re.Match) -> bool:
        return True

    def shorter_match_ends(self, match: re.Match) -> Iterable[int]:
        return ()

    def preprocess_mask(self, mask_value: str, match: re.Match) -> str:
        return mask_value

    def _accept_match(self, text: str, match: re.Match) -> Optional[re.Match]:
        if self.should_mask_match(match):
            return match

        for end in self.shorter_match_ends(match):
            shorter = self.pattern.match(text, match.start(), end)
            if shorter is not None and shorter.end() == end and self.should_mask_match(shorter):
                return shorter

        return None

    def _scan(self, text: str, mask_value: str) -> OperatorResult:
        if not self.should_mask_input(text):
            return []

        prepared = self.preprocess_input(text)

        replacements = []
        position = 0
        while position <= len(prepared):
            match = self.pattern.search(prepared, position)
            if match is None:
                break

            start, end = match.span()
            if start == end:
                position = end + 1
                continue

            accepted = self._accept_match(prepared, match)
            if accepted is None:
                position = end
                continue

            replacements.append(
                Replacement(
                    MatchSpan(start, accepted.end() - start),
                    self.preprocess_mask(mask_value, accepted)
                )
            )
            # Tokens dropped from a shortened match are scanned again
            position = accepted.end()

        if replacements and len(prepared) != len(text):
            return [Replacement(MatchSpan(0, len(text)), rewrite(prepared, [replacements]))]

        return replacements

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern.pattern!r})"


def _space_ends(match: re.Match) -> List[int]:
    """Offsets of the spaces inside a match, last one first."""
    value = match.group()
    return [
        match.start() + index
        for index in range(len(value) - 1, 0, -1)
        if value[index] == ' '
    ]


class EmailAddressMaskingOperator(RegexMaskingOperator):
    """
    Mask email addresses, including the URL-encoded form (user%40host).

    The local part excludes URL delimiters so that query strings such as
    ``?email=james.bond@example.com`` keep everything up to the address.
    """

    name = 'email'

    PATTERN = (
        r"(?<![a-z0-9._%+\-])"
        r"[a-z0-9._%+\-!#$'*^`{|}~]+"
        r"(?:@|%40)"
        r"(?:[a-z0-9](?:[a-z0-9\-]*[a-z0-9])?\.)+"
        r"[a-z]{2,}"
    )

    def __init__(self):
        super().__init__(self.PATTERN, re.IGNORECASE)

    def should_mask_input(self, text: str) -> bool:
        return '@' in text or '%40' in text

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IbanMaskingOperator(RegexMaskingOperator):
    """
    Mask International Bank Account Numbers.

    Accepts the compact form (GB82WEST12345698765432) and the printed form
    grouped in fours (GB82 WEST 1234 5698 7654 32), in either case.
    Candidates failing the mod-97 checksum are left alone. The grouped form
    can run into a following short token ("... 3201 EUR"); such candidates
    are retried without their trailing groups.
    """

    name = 'iban'

    PATTERN = (
        r"\b[A-Z]{2}[0-9]{2}"
        r"(?:[A-Z0-9]{11,30}|(?: [A-Z0-9]{4}){2,7}(?: [A-Z0-9]{1,3})?)"
        r"\b"
    )

    def __init__(self):
        super().__init__(self.PATTERN, re.IGNORECASE)

    def should_mask_input(self, text: str) -> bool:
        return len(text) >= 15

    def should_mask_match(self, match: re.Match) -> bool:
        return is_valid_iban(match.group())

    def shorter_match_ends(self, match: re.Match) -> Iterable[int]:
        return _space_ends(match)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CreditCardMaskingOperator(RegexMaskingOperator):
    """
    Mask payment card numbers of 13 to 19 digits.

    Digits may be separated by single spaces or dashes. Candidates failing
    the Luhn check are left alone, unless dropping the numbers after one of
    their spaces ("4111111111111111 123") leaves a valid card.

    Attributes:
        keep_last_digits: Number of trailing digits appended after the mask
            value (0 masks the whole number)
    """

    name = 'credit_card'

    PATTERN = r"(?<![\d\-])\d(?:[ \-]?\d){12,18}(?![\d\-])"

    def __init__(self, keep_last_digits: int = 0):
        """
        Initialize operator.

        Args:
            keep_last_digits: Trailing digits left readable (0-4)

        Raises:
            ValueError: If keep_last_digits is out of range
        """
        if not 0 <= keep_last_digits <= 4:
            raise ValueError(
                f"keep_last_digits must be between 0 and 4, got {keep_last_digits}"
            )
        super().__init__(self.PATTERN)
        self.keep_last_digits = keep_last_digits

    def should_mask_input(self, text: str) -> bool:
        return sum(char in '0123456789' for char in text) >= 13

    def should_mask_match(self, match: re.Match) -> bool:
        return passes_luhn_check(match.group())

    def shorter_match_ends(self, match: re.Match) -> Iterable[int]:
        return _space_ends(match)

    def preprocess_mask(self, mask_value: str, match: re.Match) -> str:
        if not self.keep_last_digits:
            return mask_value
        digits = re.sub(r'[ \-]', '', match.group())
        return mask_value + digits[-self.keep_last_digits:]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keep_last_digits={self.keep_last_digits})"


# Shipped operators by configuration name, in default registration order
OPERATOR_TYPES: Dict[str, Type[MaskingOperator]] = {
    EmailAddressMaskingOperator.name: EmailAddressMaskingOperator,
    IbanMaskingOperator.name: IbanMaskingOperator,
    CreditCardMaskingOperator.name: CreditCardMaskingOperator,
}


def default_operators() -> Tuple[MaskingOperator, ...]:
    """Return fresh instances of the shipped operators in registration order."""
    return tuple(operator_type() for operator_type in OPERATOR_TYPES.values())


def build_operators(
    names: Optional[Iterable[str]] = None,
    custom_patterns: Optional[Iterable[str]] = None
) -> Tuple[MaskingOperator, ...]:
    """
    Build an ordered operator list from configuration.

    Args:
        names: Shipped operator names, in registration order
            (None means all shipped operators)
        custom_patterns: User-declared regular expressions, registered
            after the shipped operators

    Returns:
        Tuple of operators

    Raises:
        ValueError: If a name is unknown or a pattern is invalid

    Examples:
        >>> build_operators(['iban'], [r'secret-\\d+'])
        (IbanMaskingOperator(), RegexMaskingOperator('secret-\\\\d+'))
    """
    operators: List[MaskingOperator] = []

    if names is None:
        operators.extend(default_operators())
    else:
        for name in names:
            key = name.strip().lower()
            if not key:
                continue
            if key not in OPERATOR_TYPES:
                raise ValueError(
                    f"Unknown operator: {name} "
                    f"(expected one of {', '.join(OPERATOR_TYPES)})"
                )
            operators.append(OPERATOR_TYPES[key]())

    for pattern in custom_patterns or ():
        operators.append(RegexMaskingOperator(pattern))

    return tuple(operators)
