"""
Record enrichment: apply a masking policy to one log record.

This module provides:
- LogRecordView: The rendered text and named properties of a log record
- mask_text(): Run every operator over a string and rewrite it
- mask_property(): Apply name-based overrides, then operators, to a value
- enrich(): Mask a whole record in place

Decision order per property (names compared case-insensitively):
1. never-mask name  -> value left unchanged
2. force-mask name  -> whole value replaced by the mask value
3. otherwise        -> operators run over the value's text

Masking must never break logging: a value that cannot be processed is
passed through unmodified.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from policy import ActivationMode, MaskingPolicy
from rewriter import rewrite
from scope import is_area_active


logger = logging.getLogger(__name__)


# Guard against self-referencing structures
MAX_NESTING_DEPTH = 10


@dataclass
class LogRecordView:
    """
    Mutable surface of a log record.

    Attributes:
        rendered_text: Message with its arguments interpolated
        properties: Property values keyed by case-sensitive name
    """

    rendered_text: str
    properties: Dict[str, Any] = field(default_factory=dict)


def is_masking_active(policy: MaskingPolicy) -> bool:
    """Return True if policy applies to the calling context right now."""
    if policy.mode is ActivationMode.ALWAYS:
        return True
    return is_area_active()


def mask_text(text: str, policy: MaskingPolicy) -> str:
    """
    Mask every operator match in text.

    Args:
        text: Text to mask
        policy: Policy providing operators and mask value

    Returns:
        Rewritten text (unchanged if nothing matched)

    Examples:
        >>> mask_text("contact james.bond@universalexports.co.uk", MaskingPolicy())
        'contact ***MASKED***'
    """
    if not text or not policy.operators:
        return text

    results = [operator.scan(text, policy.mask_value) for operator in policy.operators]
    return rewrite(text, results)


def _mask_value(value: Any, policy: MaskingPolicy, depth: int) -> Any:
    if isinstance(value, str):
        return mask_text(value, policy)

    if depth >= MAX_NESTING_DEPTH:
        return value

    if isinstance(value, Mapping):
        return {
            key: _mask_named(key, item, policy, depth + 1)
            for key, item in value.items()
        }

    if isinstance(value, list):
        return [_mask_value(item, policy, depth + 1) for item in value]

    if type(value) is tuple:
        return tuple(_mask_value(item, policy, depth + 1) for item in value)

    # Non-textual scalars are not interpreted
    return value


def _mask_named(name: Any, value: Any, policy: MaskingPolicy, depth: int) -> Any:
    if policy.is_never_masked(name):
        return value
    if policy.is_force_masked(name):
        return policy.mask_value
    return _mask_value(value, policy, depth)


def mask_property(name: str, value: Any, policy: MaskingPolicy) -> Any:
    """
    Mask a single named property value.

    Mappings and lists are masked recursively; nested keys follow the same
    name rules. Strings go through the operators. Other values are
    returned unchanged unless the name is force-masked.

    Args:
        name: Property name
        value: Property value
        policy: Policy to apply

    Returns:
        Masked value

    Examples:
        >>> policy = MaskingPolicy(force_mask_names={"password"})
        >>> mask_property("Password", "hunter2", policy)
        '***MASKED***'
    """
    return _mask_named(name, value, policy, 0)


def enrich(record: LogRecordView, policy: MaskingPolicy) -> LogRecordView:
    """
    Mask a log record in place.

    Args:
        record: Record to mask
        policy: Policy to apply (never modified)

    Returns:
        The same record, masked if masking is active
    """
    if not is_masking_active(policy):
        return record

    try:
        record.rendered_text = mask_text(record.rendered_text, policy)
    except Exception as e:
        logger.warning(f"Could not mask rendered message: {type(e).__name__}")

    for name, value in list(record.properties.items()):
        try:
            record.properties[name] = mask_property(name, value, policy)
        except Exception as e:
            logger.warning(
                f"Could not mask property '{name}', leaving it unchanged: "
                f"{type(e).__name__}"
            )

    return record

