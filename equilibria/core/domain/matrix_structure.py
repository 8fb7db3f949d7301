"""MatrixStructure Domain Object - Shape facts used by kernel dispatch."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class MatrixStructure:
    """Row and column counts of a (template) matrix.

    Attributes:
        rows: Number of rows
        columns: Number of columns
    """

    rows: int
    columns: int

    def __post_init__(self) -> None:
        """Validate dimensions."""
        if self.rows < 0 or self.columns < 0:
            raise ValueError(
                f"Matrix dimensions must be non-negative, got {self.rows}x{self.columns}"
            )

    @classmethod
    def of(cls, template: np.ndarray | tuple[int, int]) -> "MatrixStructure":
        """Create structure from a matrix or a (rows, columns) shape.

        1-D arrays are treated as column vectors.
        """
        if isinstance(template, tuple):
            rows, columns = template
        else:
            shape = np.shape(template)
            if len(shape) == 1:
                rows, columns = shape[0], 1
            elif len(shape) == 2:
                rows, columns = shape
            else:
                raise ValueError(f"Expected a 1-D or 2-D array, got shape {shape}")
        return cls(rows=int(rows), columns=int(columns))

    @property
    def is_square(self) -> bool:
        return self.rows == self.columns

    @property
    def is_tall(self) -> bool:
        return self.rows > self.columns

    @property
    def is_fat(self) -> bool:
        return self.rows < self.columns

    @property
    def is_vector(self) -> bool:
        return self.columns == 1 or self.rows == 1

    @property
    def min_dim(self) -> int:
        return min(self.rows, self.columns)


def is_symmetric(matrix: np.ndarray) -> bool:
    """Check exact symmetry of a square matrix."""
    array = np.asarray(matrix)
    return array.ndim == 2 and array.shape[0] == array.shape[1] and np.array_equal(array, array.T)
