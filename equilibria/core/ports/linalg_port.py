"""Linear algebra ports - Task interfaces shared by closed-form kernels and decompositions.

Closed-form kernels (dimension 1-5) and decomposition-based fallbacks both
satisfy these protocols, so callers never need to know which one the dispatch
factories picked.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np


@runtime_checkable
class DeterminantTaskPort(Protocol):
    """Computes the determinant of a square matrix."""

    def calculate_determinant(self, matrix: "np.ndarray") -> float:
        """Calculate determinant.

        Args:
            matrix: Square matrix

        Returns:
            Determinant value
        """
        ...


@runtime_checkable
class InverterTaskPort(Protocol):
    """Computes the inverse (or pseudo-inverse) of a matrix."""

    def invert(
        self,
        original: "np.ndarray",
        preallocated: "np.ndarray | None" = None,
    ) -> "np.ndarray":
        """Invert a matrix.

        Args:
            original: Matrix to invert
            preallocated: Optional output buffer from preallocate()

        Returns:
            The inverse, written into preallocated when given

        Raises:
            RecoverableConditionError: Decomposition-based tasks only, when the
                matrix is singular or otherwise unsuitable
        """
        ...

    def preallocate(self, template: "np.ndarray") -> "np.ndarray":
        """Allocate an output buffer shaped for the inverse of template."""
        ...


@runtime_checkable
class SolverTaskPort(Protocol):
    """Solves body @ x = rhs."""

    def solve(
        self,
        body: "np.ndarray",
        rhs: "np.ndarray",
        preallocated: "np.ndarray | None" = None,
    ) -> "np.ndarray":
        """Solve the equation system.

        Args:
            body: Coefficient matrix
            rhs: Right-hand side vector or matrix
            preallocated: Optional output buffer from preallocate()

        Returns:
            Solution shaped like rhs (one row per body column)

        Raises:
            RecoverableConditionError: Decomposition-based tasks only
        """
        ...

    def preallocate(self, body: "np.ndarray", rhs: "np.ndarray") -> "np.ndarray":
        """Allocate an output buffer shaped for the solution."""
        ...


@runtime_checkable
class DecompositionTaskPort(Protocol):
    """A matrix decomposition usable as determinant, inverter and solver task.

    preallocate() without rhs sizes an inverse, with rhs a solution.
    """

    def calculate_determinant(self, matrix: "np.ndarray") -> float:
        ...

    def invert(
        self,
        original: "np.ndarray",
        preallocated: "np.ndarray | None" = None,
    ) -> "np.ndarray":
        ...

    def solve(
        self,
        body: "np.ndarray",
        rhs: "np.ndarray",
        preallocated: "np.ndarray | None" = None,
    ) -> "np.ndarray":
        ...

    def preallocate(
        self,
        template: "np.ndarray",
        rhs: "np.ndarray | None" = None,
    ) -> "np.ndarray":
        ...


@runtime_checkable
class DecompositionFactoryPort(Protocol):
    """Creates the decomposition-based fallback tasks.

    Implementations:
    - ScipyDecompositionFactory: Production implementation using scipy.linalg
    """

    def cholesky(self) -> DecompositionTaskPort:
        ...

    def lu(self) -> DecompositionTaskPort:
        ...

    def qr(self) -> DecompositionTaskPort:
        ...

    def singular_value(self) -> DecompositionTaskPort:
        ...


class RecoverableConditionError(ArithmeticError):
    """Raised when a decomposition cannot produce a reliable result.

    Typical causes are a singular matrix, a matrix that is not positive
    definite handed to Cholesky, or a rank-deficient least squares problem.
    """

    def __init__(self, decomposition: str, message: str) -> None:
        self.decomposition = decomposition
        super().__init__(f"{decomposition}: {message}")
