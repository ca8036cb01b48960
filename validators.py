"""
Input validation utilities for the log masking engine.

This module provides validation functions for:
- Masking configuration (mask value, activation mode, property names, patterns)
- Checksums of sensitive numbers (IBAN mod-97, credit card Luhn)

Configuration validators raise ValueError with descriptive messages on
invalid input. Checksum validators return a bool and never raise.
"""

import re
from typing import Iterable, FrozenSet, Optional


VALID_MODES = ('always', 'area')

IBAN_MIN_LENGTH = 15
IBAN_MAX_LENGTH = 34


def validate_mask_value(mask_value: Optional[str]) -> str:
    """
    Validate the mask value substituted for matched content.

    Args:
        mask_value: Mask value from configuration

    Returns:
        The mask value unchanged (empty string is allowed)

    Raises:
        ValueError: If mask value is missing or not a string

    Examples:
        >>> validate_mask_value("***MASKED***")
        '***MASKED***'
        >>> validate_mask_value("")
        ''
        >>> validate_mask_value(None)  # Raises ValueError
    """
    if mask_value is None:
        raise ValueError("Mask value is required (use an empty string to erase matches)")

    if not isinstance(mask_value, str):
        raise ValueError(
            f"Mask value must be a string, got {type(mask_value).__name__}"
        )

    return mask_value


def parse_activation_mode(mode: str) -> str:
    """
    Validate and normalize an activation mode name.

    Args:
        mode: Raw mode name ('always' or 'area', any case)

    Returns:
        Normalized mode name

    Raises:
        ValueError: If mode is not recognized

    Examples:
        >>> parse_activation_mode(" Area ")
        'area'
    """
    if not mode or not isinstance(mode, str):
        raise ValueError("Activation mode must be a non-empty string")

    normalized = mode.strip().lower()
    if normalized not in VALID_MODES:
        raise ValueError(
            f"Invalid activation mode: {mode} (expected one of {', '.join(VALID_MODES)})"
        )

    return normalized


def normalize_property_names(names: Optional[Iterable[str]]) -> FrozenSet[str]:
    """
    Build a case-insensitive set of property names.

    Args:
        names: Property names (None means no names)

    Returns:
        Frozen set of lower-cased, stripped names; blanks are dropped

    Raises:
        ValueError: If a name is not a string, or names is a bare string

    Examples:
        >>> sorted(normalize_property_names(["Email", " IBAN ", ""]))
        ['email', 'iban']
    """
    if names is None:
        return frozenset()

    # A bare string would otherwise be split into characters
    if isinstance(names, str):
        raise ValueError(
            f"Property names must be a collection of strings, not a string: {names!r}"
        )

    normalized = set()
    for name in names:
        if not isinstance(name, str):
            raise ValueError(f"Property name must be a string, got {name!r}")
        name = name.strip().lower()
        if name:
            normalized.add(name)

    return frozenset(normalized)


def validate_pattern(pattern: str, flags: int = 0) -> re.Pattern:
    """
    Compile a user-declared masking pattern.

    Args:
        pattern: Regular expression source
        flags: re module flags

    Returns:
        Compiled pattern

    Raises:
        ValueError: If pattern is empty, invalid, or can match empty text
    """
    if not pattern or not isinstance(pattern, str):
        raise ValueError("Pattern must be a non-empty string")

    try:
        compiled = re.compile(pattern, flags)
    except re.error as e:
        raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e

    # Empty matches would produce zero-length spans
    if compiled.fullmatch(''):
        raise ValueError(f"Pattern must not match empty text: {pattern!r}")

    return compiled


def is_valid_iban(candidate: str) -> bool:
    """
    Check an IBAN against the ISO 13616 mod-97 checksum.

    Args:
        candidate: IBAN, optionally grouped with spaces

    Returns:
        True if structure and checksum are valid

    Examples:
        >>> is_valid_iban("GB82 WEST 1234 5698 7654 32")
        True
        >>> is_valid_iban("GB83WEST12345698765432")
        False
    """
    iban = candidate.replace(' ', '').upper()

    if not IBAN_MIN_LENGTH <= len(iban) <= IBAN_MAX_LENGTH:
        return False
    if not re.fullmatch(r'[A-Z]{2}[0-9]{2}[A-Z0-9]+', iban):
        return False

    # Move country code and check digits to the end, letters become 10..35
    rearranged = iban[4:] + iban[:4]
    digits = ''.join(str(int(char, 36)) for char in rearranged)

    return int(digits) % 97 == 1


def passes_luhn_check(candidate: str) -> bool:
    """
    Check a card number with the Luhn algorithm.

    Args:
        candidate: Card number; spaces and dashes are ignored

    Returns:
        True if the digits pass the Luhn check

    Examples:
        >>> passes_luhn_check("4111 1111 1111 1111")
        True
        >>> passes_luhn_check("4111111111111112")
        False
    """
    digits = [char for char in candidate if char not in ' -']
    if not digits or not all(char in '0123456789' for char in digits):
        return False

    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0
