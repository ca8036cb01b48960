"""
Centralized configuration for the log masking engine.

This module loads masking settings from environment variables (and a
.env file) and builds the frozen MaskingPolicy used by the logging
filter and the command line tool.

Environment Variables:
    MASKING_MASK_VALUE: Text substituted for matched content
    MASKING_MODE: 'always' (default) or 'area'
    MASKING_FORCE_MASK_PROPERTIES: Comma-separated property names to always mask
    MASKING_NEVER_MASK_PROPERTIES: Comma-separated property names to never mask
    MASKING_OPERATORS: Comma-separated operator names (email,iban,credit_card)

Policy files:
    JSON object with any of the keys mask_value, mode, force_mask,
    never_mask, operators, custom_patterns. Values in the file override
    the environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from operators import DEFAULT_MASK_VALUE, OPERATOR_TYPES, build_operators
from policy import MaskingPolicy


# Load environment variables from .env file
load_dotenv()


logger = logging.getLogger(__name__)


def _split_names(value: str) -> List[str]:
    return [name.strip() for name in value.split(',') if name.strip()]


# ============================================================================
# MASKING CONFIGURATION
# ============================================================================

MASK_VALUE: str = os.getenv('MASKING_MASK_VALUE', DEFAULT_MASK_VALUE)

# 'always' masks every record, 'area' only inside enter_sensitive_area()
MASKING_MODE: str = os.getenv('MASKING_MODE', 'always')

FORCE_MASK_PROPERTIES: List[str] = _split_names(
    os.getenv('MASKING_FORCE_MASK_PROPERTIES', '')
)
NEVER_MASK_PROPERTIES: List[str] = _split_names(
    os.getenv('MASKING_NEVER_MASK_PROPERTIES', '')
)

OPERATOR_NAMES: List[str] = _split_names(
    os.getenv('MASKING_OPERATORS', ','.join(OPERATOR_TYPES))
)


# ============================================================================
# POLICY FILES
# ============================================================================

POLICY_FILE_KEYS = frozenset({
    'mask_value', 'mode', 'force_mask', 'never_mask', 'operators', 'custom_patterns'
})

# Keys whose values must be lists of strings
LIST_KEYS = frozenset({'force_mask', 'never_mask', 'operators', 'custom_patterns'})


def load_policy_file(filepath: Path) -> Dict[str, Any]:
    """
    Load masking settings from a JSON policy file.

    Args:
        filepath: Path to JSON file

    Returns:
        Dictionary of settings

    Raises:
        ValueError: If the file is missing, invalid JSON, or has unknown keys

    Examples:
        >>> load_policy_file(Path("masking.json"))
        {'mask_value': '**', 'never_mask': ['RequestId']}
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise ValueError(f"Policy file not found: {filepath}")

    try:
        with open(filepath, 'r') as f:
            settings = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {filepath}: {e}") from e

    if not isinstance(settings, dict):
        raise ValueError(f"Policy file must contain a JSON object: {filepath}")

    unknown = set(settings) - POLICY_FILE_KEYS
    if unknown:
        raise ValueError(
            f"Unknown keys in {filepath}: {', '.join(sorted(unknown))}"
        )

    for key in LIST_KEYS & set(settings):
        value = settings[key]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ValueError(f"'{key}' in {filepath} must be a list of strings")

    logger.debug(f"Loaded masking policy from {filepath}")
    return settings


def load_policy(
    policy_file: Optional[Path] = None,
    **overrides: Any
) -> MaskingPolicy:
    """
    Build the masking policy from environment, policy file and overrides.

    Later sources win: environment < policy file < keyword overrides.
    Overrides set to None are ignored.

    Args:
        policy_file: Optional JSON policy file
        **overrides: Any policy file key (mask_value, mode, force_mask,
            never_mask, operators, custom_patterns)

    Returns:
        Frozen MaskingPolicy

    Raises:
        ValueError: If any setting is invalid
    """
    settings: Dict[str, Any] = {
        'mask_value': MASK_VALUE,
        'mode': MASKING_MODE,
        'force_mask': FORCE_MASK_PROPERTIES,
        'never_mask': NEVER_MASK_PROPERTIES,
        'operators': OPERATOR_NAMES,
        'custom_patterns': [],
    }

    if policy_file:
        settings.update(load_policy_file(policy_file))

    unknown = set(overrides) - POLICY_FILE_KEYS
    if unknown:
        raise ValueError(f"Unknown policy settings: {', '.join(sorted(unknown))}")
    settings.update({key: value for key, value in overrides.items() if value is not None})

    return MaskingPolicy.create(
        mask_value=settings['mask_value'],
        force_mask_names=settings['force_mask'],
        never_mask_names=settings['never_mask'],
        operators=build_operators(settings['operators'], settings['custom_patterns']),
        mode=settings['mode']
    )
