"""Constraint Domain Object - Bounds on asset weights and asset groups.

Represents the lower/upper limits used by optimised portfolios and the
portfolio mixer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LowerUpper:
    """Lower and upper limits.

    Attributes:
        lower: Lower limit (None means unbounded below)
        upper: Upper limit (None means unbounded above)
    """

    lower: float | None = None
    upper: float | None = None

    def __post_init__(self) -> None:
        """Validate limits."""
        for label, value in (("lower", self.lower), ("upper", self.upper)):
            if value is not None and math.isnan(value):
                raise ValueError(f"LowerUpper {label} must not be NaN")
        if self.lower is not None and self.upper is not None:
            if self.lower > self.upper:
                raise ValueError(
                    f"LowerUpper lower ({self.lower}) must be <= upper ({self.upper})"
                )

    @property
    def is_unbounded(self) -> bool:
        """Return True if neither limit is set."""
        return self.lower is None and self.upper is None

    @property
    def is_equality(self) -> bool:
        """Return True if lower == upper."""
        return self.lower is not None and self.lower == self.upper

    def contains(self, value: float, tolerance: float = 0.0) -> bool:
        """Check if value is within limits.

        Args:
            value: Value to check
            tolerance: Allowed violation

        Returns:
            True if value is within limits
        """
        if self.lower is not None and value < self.lower - tolerance:
            return False
        if self.upper is not None and value > self.upper + tolerance:
            return False
        return True

    def violation(self, value: float) -> float:
        """Distance from value to the feasible interval (0.0 inside)."""
        if self.lower is not None and value < self.lower:
            return self.lower - value
        if self.upper is not None and value > self.upper:
            return value - self.upper
        return 0.0

    def to_dict(self) -> dict[str, float | None]:
        """Convert to dictionary."""
        return {"lower": self.lower, "upper": self.upper}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LowerUpper":
        """Create LowerUpper from dictionary."""
        lower = data.get("lower")
        upper = data.get("upper")
        return cls(
            lower=None if lower is None else float(lower),
            upper=None if upper is None else float(upper),
        )


@dataclass(frozen=True)
class AssetConstraint:
    """Limits on the summed weight of a group of assets.

    Attributes:
        indices: Asset indices in the group (order preserved)
        bounds: Limits on the sum

    Invariants:
        - indices is non-empty
        - indices are non-negative and unique
    """

    indices: tuple[int, ...]
    bounds: LowerUpper

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.indices:
            raise ValueError("AssetConstraint requires at least one asset index")
        if any(index < 0 for index in self.indices):
            raise ValueError(f"Asset indices must be non-negative, got {self.indices}")
        if len(set(self.indices)) != len(self.indices):
            raise ValueError(f"Asset indices must be unique, got {self.indices}")

    @property
    def name(self) -> str:
        """Expression name used in optimisation models."""
        return str(list(self.indices))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"indices": list(self.indices), **self.bounds.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetConstraint":
        """Create AssetConstraint from dictionary."""
        return cls(
            indices=tuple(int(index) for index in data["indices"]),
            bounds=LowerUpper.from_dict(data),
        )


def group_limit(
    *indices: int,
    lower: float | None = None,
    upper: float | None = None,
) -> AssetConstraint:
    """Create a limit on the summed weight of some assets.

    Args:
        indices: Asset indices
        lower: Minimum summed weight
        upper: Maximum summed weight

    Returns:
        Asset group constraint
    """
    return AssetConstraint(indices=tuple(indices), bounds=LowerUpper(lower, upper))
