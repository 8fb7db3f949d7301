"""DecompositionAdapter - Checked matrix decompositions using scipy.linalg.

This adapter provides the fallback tasks used by the kernel dispatch
factories when no closed-form kernel applies:
- Cholesky for symmetric positive definite systems
- LU for general square systems
- QR for tall (least squares) systems
- Singular value decomposition for fat or rank-deficient systems

Unlike the closed-form kernels, every task checks conditioning and raises
RecoverableConditionError instead of returning inf/nan.
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np

from equilibria.core.ports.linalg_port import RecoverableConditionError

# Relative pivot size below which a factorisation counts as singular
SINGULARITY_TOLERANCE = np.finfo(float).eps


class _DecompositionTask:
    """Shared plumbing for the decomposition tasks."""

    name = "Decomposition"

    def __init__(self, tolerance: float = SINGULARITY_TOLERANCE) -> None:
        self._tolerance = tolerance
        self._scipy_linalg: Any = None

    def _get_linalg(self) -> Any:
        """Get scipy.linalg module (lazy import)."""
        if self._scipy_linalg is None:
            import scipy.linalg

            self._scipy_linalg = scipy.linalg
        return self._scipy_linalg

    def preallocate(
        self,
        template: np.ndarray,
        rhs: np.ndarray | None = None,
    ) -> np.ndarray:
        rows, columns = np.shape(template)
        if rhs is None:
            return np.zeros((columns, rows), order="F")
        if np.ndim(rhs) == 1:
            return np.zeros((columns,), order="F")
        return np.zeros((columns, np.shape(rhs)[1]), order="F")

    def invert(
        self,
        original: np.ndarray,
        preallocated: np.ndarray | None = None,
    ) -> np.ndarray:
        array = np.asarray(original, dtype=float)
        identity = np.eye(array.shape[0])
        result = self._solve(array, identity)
        return self._write(result, preallocated)

    def solve(
        self,
        body: np.ndarray,
        rhs: np.ndarray,
        preallocated: np.ndarray | None = None,
    ) -> np.ndarray:
        array = np.asarray(body, dtype=float)
        right = np.asarray(rhs, dtype=float)
        if right.shape[0] != array.shape[0]:
            raise ValueError(
                f"Right-hand side must have {array.shape[0]} rows, got shape {right.shape}"
            )
        result = self._solve(array, right)
        return self._write(result, preallocated)

    def calculate_determinant(self, matrix: np.ndarray) -> float:
        array = np.asarray(matrix, dtype=float)
        if array.ndim != 2 or array.shape[0] != array.shape[1]:
            raise ValueError(f"Determinant requires a square matrix, got shape {array.shape}")
        return self._determinant(array)

    def _solve(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _determinant(self, matrix: np.ndarray) -> float:
        raise NotImplementedError

    def _check_diagonal(self, diagonal: np.ndarray) -> None:
        """Raise if the smallest pivot is negligible relative to the largest."""
        magnitudes = np.abs(diagonal)
        largest = magnitudes.max() if magnitudes.size else 0.0
        if largest == 0.0 or magnitudes.min() <= largest * diagonal.size * self._tolerance:
            raise RecoverableConditionError(self.name, "matrix is singular")

    @staticmethod
    def _write(result: np.ndarray, preallocated: np.ndarray | None) -> np.ndarray:
        if preallocated is None:
            return result
        if preallocated.size != result.size:
            raise ValueError(
                f"Preallocated buffer has {preallocated.size} elements, expected {result.size}"
            )
        preallocated[...] = result.reshape(preallocated.shape)
        return preallocated

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CholeskyTask(_DecompositionTask):
    """Cholesky decomposition: A = L L'."""

    name = "Cholesky"

    def _factor(self, matrix: np.ndarray) -> Any:
        linalg = self._get_linalg()
        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Cholesky requires a square matrix, got shape {matrix.shape}")
        try:
            return linalg.cho_factor(matrix, lower=True)
        except linalg.LinAlgError as e:
            raise RecoverableConditionError(self.name, "matrix is not positive definite") from e

    def _solve(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        factor = self._factor(body)
        self._check_diagonal(np.diag(factor[0]))
        return self._get_linalg().cho_solve(factor, rhs)

    def _determinant(self, matrix: np.ndarray) -> float:
        factor = self._factor(matrix)
        return float(np.prod(np.diag(factor[0])) ** 2)


class LUTask(_DecompositionTask):
    """LU decomposition with partial pivoting: P A = L U."""

    name = "LU"

    def _factor(self, matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        linalg = self._get_linalg()
        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"LU requires a square matrix, got shape {matrix.shape}")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", linalg.LinAlgWarning)
            return linalg.lu_factor(matrix)

    def _solve(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        lu, piv = self._factor(body)
        self._check_diagonal(np.diag(lu))
        return self._get_linalg().lu_solve((lu, piv), rhs)

    def _determinant(self, matrix: np.ndarray) -> float:
        lu, piv = self._factor(matrix)
        swaps = np.count_nonzero(piv != np.arange(piv.size))
        sign = -1.0 if swaps % 2 else 1.0
        return float(sign * np.prod(np.diag(lu)))


class QRTask(_DecompositionTask):
    """QR decomposition: A = Q R, used for least squares on tall matrices."""

    name = "QR"

    def _solve(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        linalg = self._get_linalg()
        if body.shape[0] < body.shape[1]:
            raise ValueError(f"QR requires rows >= columns, got shape {body.shape}")
        q, r = linalg.qr(body, mode="economic")
        self._check_diagonal(np.diag(r))
        return linalg.solve_triangular(r, q.T @ rhs)

    def _determinant(self, matrix: np.ndarray) -> float:
        linalg = self._get_linalg()
        q, r = linalg.qr(matrix)
        return float(np.linalg.det(q) * np.prod(np.diag(r)))


class SingularValueTask(_DecompositionTask):
    """Singular value decomposition: A = U S V', minimum norm solutions."""

    name = "SingularValue"

    def _solve(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        linalg = self._get_linalg()
        u, s, vt = linalg.svd(body, full_matrices=False)
        if s.size == 0 or s[0] == 0.0:
            raise RecoverableConditionError(self.name, "matrix is zero")
        cutoff = s[0] * max(body.shape) * self._tolerance
        inverse_s = np.where(s > cutoff, 1.0 / np.where(s > cutoff, s, 1.0), 0.0)
        projected = u.T @ rhs
        if projected.ndim == 1:
            return vt.T @ (inverse_s * projected)
        return vt.T @ (inverse_s[:, np.newaxis] * projected)

    def _determinant(self, matrix: np.ndarray) -> float:
        u, s, vt = self._get_linalg().svd(matrix)
        return float(np.linalg.det(u) * np.linalg.det(vt) * np.prod(s))


class ScipyDecompositionFactory:
    """Creates scipy-backed decomposition tasks."""

    def __init__(self, tolerance: float = SINGULARITY_TOLERANCE) -> None:
        self._tolerance = tolerance

    def cholesky(self) -> CholeskyTask:
        return CholeskyTask(self._tolerance)

    def lu(self) -> LUTask:
        return LUTask(self._tolerance)

    def qr(self) -> QRTask:
        return QRTask(self._tolerance)

    def singular_value(self) -> SingularValueTask:
        return SingularValueTask(self._tolerance)


def create_decomposition_factory(
    tolerance: float = SINGULARITY_TOLERANCE,
) -> ScipyDecompositionFactory:
    """Factory function to create ScipyDecompositionFactory."""
    return ScipyDecompositionFactory(tolerance=tolerance)
