"""
Text rewriting for masked log output.

This module provides:
- MatchSpan: A region of a text buffer to replace
- Replacement: A span paired with the text written over it
- rewrite(): Apply replacements from one or more operators in a single pass

Spans are always offsets into the ORIGINAL text. Output is built left to
right by copying unmatched text verbatim and substituting each accepted
replacement, so no offset ever needs adjusting after a substitution.

Overlaps are resolved deterministically: the earliest-starting span wins,
ties go to the operator registered first, and any span starting before the
end of the last accepted span is dropped.
"""

import logging
from typing import Iterable, List, NamedTuple, Sequence


logger = logging.getLogger(__name__)


class MatchSpan(NamedTuple):
    """Region of a text buffer, as a start offset and a positive length."""

    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


class Replacement(NamedTuple):
    """A span to mask and the text substituted for it."""

    span: MatchSpan
    text: str


# Ordered replacements produced by one operator against one input
OperatorResult = List[Replacement]


def _is_valid_span(span: MatchSpan, text_length: int) -> bool:
    return 0 <= span.start and span.length > 0 and span.end <= text_length


def select_replacements(
    text: str,
    results: Sequence[Iterable[Replacement]]
) -> List[Replacement]:
    """
    Merge operator results and drop overlapping spans.

    Args:
        text: Text the spans point into
        results: One result per operator, in operator registration order

    Returns:
        Accepted replacements sorted by start offset; no two overlap

    Examples:
        >>> select_replacements("abcdef", [
        ...     [Replacement(MatchSpan(0, 3), "*")],
        ...     [Replacement(MatchSpan(2, 3), "#")],
        ... ])
        [Replacement(span=MatchSpan(start=0, length=3), text='*')]
    """
    candidates = []
    for operator_index, result in enumerate(results):
        for position, replacement in enumerate(result):
            if not _is_valid_span(replacement.span, len(text)):
                logger.debug(
                    f"Dropping out-of-range span {tuple(replacement.span)} "
                    f"for text of length {len(text)}"
                )
                continue
            candidates.append(
                (replacement.span.start, operator_index, position, replacement)
            )

    candidates.sort(key=lambda candidate: candidate[:3])

    accepted: List[Replacement] = []
    last_end = 0
    for _, _, _, replacement in candidates:
        if accepted and replacement.span.start < last_end:
            continue
        accepted.append(replacement)
        last_end = replacement.span.end

    return accepted


def rewrite(text: str, results: Sequence[Iterable[Replacement]]) -> str:
    """
    Apply replacements from one or more operators to text.

    Args:
        text: Original text
        results: One result per operator, in operator registration order

    Returns:
        Text with every accepted span replaced exactly once

    Examples:
        >>> rewrite("mail a@b.io now", [[Replacement(MatchSpan(5, 6), "**")]])
        'mail ** now'
    """
    accepted = select_replacements(text, results)
    if not accepted:
        return text

    parts = []
    cursor = 0
    for replacement in accepted:
        parts.append(text[cursor:replacement.span.start])
        parts.append(replacement.text)
        cursor = replacement.span.end
    parts.append(text[cursor:])

    return ''.join(parts)
