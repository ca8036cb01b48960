"""
Masking policy shared by every log record.

A MaskingPolicy bundles the operators, the mask value, the name-based
overrides and the activation mode. It is frozen once built so it can be
shared by reference between threads without locking.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from operators import DEFAULT_MASK_VALUE, MaskingOperator, default_operators
from validators import normalize_property_names, parse_activation_mode, validate_mask_value


class ActivationMode(Enum):
    """When masking applies."""

    ALWAYS = 'always'
    AREA_SCOPED = 'area'

    @classmethod
    def parse(cls, value: Union[str, 'ActivationMode']) -> 'ActivationMode':
        """
        Convert a configuration value to an ActivationMode.

        Raises:
            ValueError: If value is not a known mode
        """
        if isinstance(value, cls):
            return value
        return cls(parse_activation_mode(value))


@dataclass(frozen=True)
class MaskingPolicy:
    """
    Immutable masking configuration.

    Attributes:
        mask_value: Text substituted for matched content (may be empty)
        force_mask_names: Property names always replaced by mask_value
        never_mask_names: Property names never modified (beats force-mask)
        operators: Matching operators in registration order
        mode: ALWAYS, or AREA_SCOPED to mask only inside a sensitive area

    Property names are matched case-insensitively.

    Raises:
        ValueError: If mask_value is None or any setting is invalid

    Examples:
        >>> policy = MaskingPolicy(force_mask_names={"Password"})
        >>> policy.is_force_masked("PASSWORD")
        True
    """

    mask_value: str = DEFAULT_MASK_VALUE
    force_mask_names: FrozenSet[str] = frozenset()
    never_mask_names: FrozenSet[str] = frozenset()
    operators: Tuple[MaskingOperator, ...] = field(default_factory=default_operators)
    mode: ActivationMode = ActivationMode.ALWAYS

    def __post_init__(self):
        validate_mask_value(self.mask_value)

        operators = tuple(self.operators)
        for operator in operators:
            if not isinstance(operator, MaskingOperator):
                raise ValueError(f"Not a masking operator: {operator!r}")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'operators', operators)
        object.__setattr__(self, 'force_mask_names', normalize_property_names(self.force_mask_names))
        object.__setattr__(self, 'never_mask_names', normalize_property_names(self.never_mask_names))
        object.__setattr__(self, 'mode', ActivationMode.parse(self.mode))

    def is_never_masked(self, name: Optional[str]) -> bool:
        return isinstance(name, str) and name.lower() in self.never_mask_names

    def is_force_masked(self, name: Optional[str]) -> bool:
        return isinstance(name, str) and name.lower() in self.force_mask_names

    @classmethod
    def create(
        cls,
        mask_value: Optional[str] = DEFAULT_MASK_VALUE,
        force_mask_names: Optional[Iterable[str]] = None,
        never_mask_names: Optional[Iterable[str]] = None,
        operators: Optional[Iterable[MaskingOperator]] = None,
        mode: Union[str, ActivationMode] = ActivationMode.ALWAYS
    ) -> 'MaskingPolicy':
        """
        Build a policy from loosely typed configuration values.

        Args:
            mask_value: Mask value (None is rejected)
            force_mask_names: Names to always mask
            never_mask_names: Names to never mask
            operators: Operators in order (None means the shipped defaults,
                an empty list disables pattern matching)
            mode: 'always', 'area', or an ActivationMode

        Returns:
            Frozen policy

        Raises:
            ValueError: If any value is invalid
        """
        return cls(
            mask_value=mask_value,
            force_mask_names=force_mask_names or frozenset(),
            never_mask_names=never_mask_names or frozenset(),
            operators=default_operators() if operators is None else tuple(operators),
            mode=mode
        )
