"""Inverse kernels and the inverter dispatch factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from equilibria.core.domain.matrix_structure import MatrixStructure, is_symmetric
from equilibria.core.linalg.cofactors import (
    expand_first_column,
    minors,
    norm,
    read_full,
    read_symmetric,
)
from equilibria.core.linalg.kernels import MAX_CLOSED_FORM_DIM, Kernel

if TYPE_CHECKING:
    from equilibria.core.ports.linalg_port import (
        DecompositionFactoryPort,
        InverterTaskPort,
    )


def adjugate(table: list[list[float]], dim: int) -> np.ndarray:
    """Transpose of the signed minors table."""
    result = np.empty((dim, dim), order="F")
    for row in range(dim):
        for col in range(dim):
            cofactor = table[row][col]
            result[col, row] = cofactor if (row + col) % 2 == 0 else -cofactor
    return result


class ClosedFormInverter:
    """Inverse by the adjugate method: inverse[col, row] = cofactor[row, col] / det.

    A singular matrix yields inf/nan entries rather than an exception.
    """

    def __init__(self, kernel: Kernel) -> None:
        if kernel is Kernel.LEAST_SQUARES:
            raise ValueError("LEAST_SQUARES is not an inverter kernel")
        self.kernel = kernel

    def preallocate(self, template: np.ndarray | None = None) -> np.ndarray:
        dim = self.kernel.dim
        return np.zeros((dim, dim), order="F")

    def invert(
        self,
        original: np.ndarray,
        preallocated: np.ndarray | None = None,
    ) -> np.ndarray:
        dim = self.kernel.dim
        if self.kernel.symmetric:
            values = read_symmetric(original, dim)
        else:
            values = read_full(original, dim)

        destination = preallocated if preallocated is not None else self.preallocate()
        if destination.shape != (dim, dim):
            raise ValueError(
                f"Preallocated buffer must be {dim}x{dim}, got {destination.shape}"
            )

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            if dim == 1:
                destination[0, 0] = np.float64(1.0) / values[0]
                return destination

            scale = norm(values)
            scaled = (values / scale).tolist()
            table = minors(scaled, dim, symmetric=self.kernel.symmetric)
            determinant = np.float64(expand_first_column(scaled, table, dim)) * scale
            destination[:, :] = adjugate(table, dim) / determinant

        return destination

    def __repr__(self) -> str:
        return f"ClosedFormInverter({self.kernel.name})"


def _default_decompositions() -> "DecompositionFactoryPort":
    """Get the decomposition fallback factory (lazy import)."""
    from equilibria.adapters.decomposition_adapter import create_decomposition_factory

    return create_decomposition_factory()


def make_inverter_task(
    template: np.ndarray | tuple[int, int],
    symmetric: bool = False,
    positive_definite: bool = False,
    decompositions: "DecompositionFactoryPort | None" = None,
) -> "InverterTaskPort":
    """Select an inverter task for matrices shaped like template.

    Dispatch:
        - square, dim <= 5: closed-form kernel (symmetric variant when flagged)
        - square, symmetric and positive definite: Cholesky
        - square otherwise: LU
        - tall: QR (least squares pseudo-inverse)
        - fat: singular value decomposition

    Args:
        template: Matrix (or shape) the task will be used for
        symmetric: Matrices will be symmetric
        positive_definite: Matrices will be positive definite
        decompositions: Fallback factory (defaults to the scipy adapter)

    Returns:
        Inverter task
    """
    structure = MatrixStructure.of(template)

    if structure.is_square and structure.rows <= MAX_CLOSED_FORM_DIM:
        return ClosedFormInverter(Kernel.of(structure.rows, symmetric))

    fallback = decompositions or _default_decompositions()

    if structure.is_square:
        if symmetric and positive_definite:
            logger.debug("Inverter dim={} -> Cholesky", structure.rows)
            return fallback.cholesky()
        logger.debug("Inverter dim={} -> LU", structure.rows)
        return fallback.lu()
    if structure.is_tall:
        logger.debug("Inverter {}x{} -> QR", structure.rows, structure.columns)
        return fallback.qr()
    logger.debug("Inverter {}x{} -> SVD", structure.rows, structure.columns)
    return fallback.singular_value()


def invert(matrix: np.ndarray) -> np.ndarray:
    """Invert a matrix using the cheapest applicable task."""
    task = make_inverter_task(matrix, symmetric=is_symmetric(matrix))
    return task.invert(matrix)
