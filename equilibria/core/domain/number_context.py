"""NumberContext Domain Object - Precision/scale pair for numeric comparisons.

Used wherever a result is compared "to a number of significant digits" rather
than exactly: target search termination, solution rounding, negligible values.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class NumberContext:
    """Significant-digit precision and decimal scale.

    Attributes:
        precision: Number of significant digits that matter
        scale: Number of decimal places kept when enforcing

    Invariants:
        - precision >= 1
        - scale >= 0
    """

    precision: int
    scale: int

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.precision < 1:
            raise ValueError(f"Precision must be >= 1, got {self.precision}")
        if self.scale < 0:
            raise ValueError(f"Scale must be >= 0, got {self.scale}")

    @property
    def epsilon(self) -> float:
        """Relative tolerance implied by the precision."""
        return 10.0 ** -self.precision

    @property
    def zero_error(self) -> float:
        """Absolute tolerance implied by the scale."""
        return 0.5 * 10.0 ** -self.scale

    def is_small(self, compared_to: float, value: float) -> bool:
        """Check if value is negligible when compared to another value.

        Args:
            compared_to: Reference magnitude
            value: Value to test

        Returns:
            True if value is small relative to compared_to
        """
        if compared_to == 0.0:
            return self.is_zero(value)
        return bool(abs(value) <= abs(compared_to) * self.epsilon)

    def is_zero(self, value: float) -> bool:
        """Check if value rounds to zero at this scale."""
        return bool(abs(value) <= self.zero_error)

    def is_different(self, expected: float, actual: float) -> bool:
        """Check if two values differ at this precision.

        Args:
            expected: First value
            actual: Second value

        Returns:
            True if the values are not equal to `precision` significant digits
        """
        if expected == actual:
            return False
        magnitude = max(abs(expected), abs(actual))
        return bool(abs(expected - actual) > magnitude * self.epsilon)

    def enforce(self, value: float) -> float:
        """Round value to this context's precision and scale.

        Args:
            value: Value to round

        Returns:
            Value with at most `precision` significant digits and `scale` decimals
        """
        if value == 0.0 or not math.isfinite(value):
            return value
        digits = self.precision - int(math.floor(math.log10(abs(value)))) - 1
        return round(value, min(digits, self.scale)) + 0.0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {"precision": self.precision, "scale": self.scale}


TARGET_CONTEXT = NumberContext(precision=5, scale=4)
SOLUTION_CONTEXT = NumberContext(precision=7, scale=6)
MACHINE_CONTEXT = NumberContext(precision=16, scale=16)
