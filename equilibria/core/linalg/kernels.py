"""Kernel catalogue - Closed-form kernels selectable by dimension and symmetry."""

from __future__ import annotations

from enum import Enum

MAX_CLOSED_FORM_DIM = 5


class Kernel(Enum):
    """Closed-form kernels.

    The value is (dimension, symmetric). LEAST_SQUARES is dimension-agnostic
    and delegates to the symmetric kernel of the normal equations.
    """

    FULL_1X1 = (1, False)
    FULL_2X2 = (2, False)
    FULL_3X3 = (3, False)
    FULL_4X4 = (4, False)
    FULL_5X5 = (5, False)
    SYMMETRIC_2X2 = (2, True)
    SYMMETRIC_3X3 = (3, True)
    SYMMETRIC_4X4 = (4, True)
    SYMMETRIC_5X5 = (5, True)
    LEAST_SQUARES = (0, True)

    @property
    def dim(self) -> int:
        return self.value[0]

    @property
    def symmetric(self) -> bool:
        return self.value[1]

    @classmethod
    def of(cls, dim: int, symmetric: bool = False) -> "Kernel":
        """Get the square kernel for a dimension.

        Args:
            dim: Matrix dimension (1-5)
            symmetric: Use the variant that only reads the upper triangle

        Returns:
            Matching kernel (1x1 has no symmetric variant)

        Raises:
            ValueError: If no closed-form kernel exists for dim
        """
        if dim == 1:
            return cls.FULL_1X1
        for kernel in cls:
            if kernel is not cls.LEAST_SQUARES and kernel.value == (dim, symmetric):
                return kernel
        raise ValueError(
            f"No closed-form kernel for dimension {dim} (max {MAX_CLOSED_FORM_DIM})"
        )
