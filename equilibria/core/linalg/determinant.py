"""Determinant kernels and the determinant dispatch factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from equilibria.core.domain.matrix_structure import MatrixStructure, is_symmetric
from equilibria.core.linalg.cofactors import DETERMINANTS, norm, read_full, read_symmetric
from equilibria.core.linalg.kernels import MAX_CLOSED_FORM_DIM, Kernel

if TYPE_CHECKING:
    from equilibria.core.ports.linalg_port import (
        DecompositionFactoryPort,
        DeterminantTaskPort,
    )


class ClosedFormDeterminant:
    """Determinant by unrolled cofactor expansion.

    Elements are divided by the largest absolute element before expanding,
    and the result is multiplied back by ``scale ** dim``. An all-zero matrix
    gives NaN; no other conditioning checks are made.
    """

    def __init__(self, kernel: Kernel) -> None:
        if kernel is Kernel.LEAST_SQUARES:
            raise ValueError("LEAST_SQUARES is not a determinant kernel")
        self.kernel = kernel

    def calculate_determinant(self, matrix: np.ndarray) -> float:
        dim = self.kernel.dim
        if self.kernel.symmetric:
            values = read_symmetric(matrix, dim)
        else:
            values = read_full(matrix, dim)

        if dim == 1:
            return float(values[0])

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            scale = norm(values)
            scaled = (values / scale).tolist()
            return float(DETERMINANTS[dim](scaled) * scale**dim)

    def __repr__(self) -> str:
        return f"ClosedFormDeterminant({self.kernel.name})"


def _default_decompositions() -> "DecompositionFactoryPort":
    """Get the decomposition fallback factory (lazy import)."""
    from equilibria.adapters.decomposition_adapter import create_decomposition_factory

    return create_decomposition_factory()


def make_determinant_task(
    template: np.ndarray | tuple[int, int],
    symmetric: bool = False,
    positive_definite: bool = False,
    decompositions: "DecompositionFactoryPort | None" = None,
) -> "DeterminantTaskPort":
    """Select a determinant task for matrices shaped like template.

    Args:
        template: Matrix (or shape) the task will be used for
        symmetric: Matrices will be symmetric
        positive_definite: Matrices will be positive definite
        decompositions: Fallback factory (defaults to the scipy adapter)

    Returns:
        Closed-form kernel for dim <= 5, else Cholesky or LU

    Raises:
        ValueError: If template is not square
    """
    structure = MatrixStructure.of(template)
    if not structure.is_square:
        raise ValueError(
            f"Determinant requires a square matrix, got {structure.rows}x{structure.columns}"
        )

    dim = structure.rows
    if dim <= MAX_CLOSED_FORM_DIM:
        return ClosedFormDeterminant(Kernel.of(dim, symmetric))

    fallback = decompositions or _default_decompositions()
    if symmetric and positive_definite:
        logger.debug("Determinant dim={} -> Cholesky", dim)
        return fallback.cholesky()
    logger.debug("Determinant dim={} -> LU", dim)
    return fallback.lu()


def calculate_determinant(matrix: np.ndarray) -> float:
    """Determinant of a square matrix, using the cheapest applicable task."""
    task = make_determinant_task(matrix, symmetric=is_symmetric(matrix))
    return task.calculate_determinant(matrix)
