"""Solve kernels (Cramer's rule, normal equations) and the solver dispatch factory."""

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
from equilibria.core.linalg.inverter import adjugate
from equilibria.core.linalg.kernels import MAX_CLOSED_FORM_DIM, Kernel

if TYPE_CHECKING:
    from equilibria.core.ports.linalg_port import (
        DecompositionFactoryPort,
        SolverTaskPort,
    )


def _as_columns(rhs: np.ndarray, rows: int) -> np.ndarray:
    """View rhs as a rows x k matrix."""
    array = np.asarray(rhs, dtype=float)
    if array.ndim == 1 and array.size == rows:
        return array.reshape(rows, 1)
    if array.ndim != 2 or array.shape[0] != rows:
        raise ValueError(
            f"Right-hand side must have {rows} rows, got shape {array.shape}"
        )
    return array


class ClosedFormSolver:
    """Solves a 1x1 - 5x5 system with Cramer's rule on pre-scaled cofactors.

    A singular body yields inf/nan entries rather than an exception.
    """

    def __init__(self, kernel: Kernel) -> None:
        if kernel is Kernel.LEAST_SQUARES:
            raise ValueError("Use LeastSquaresSolver for LEAST_SQUARES")
        self.kernel = kernel

    def preallocate(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        return np.zeros(np.shape(rhs), order="F")

    def solve(
        self,
        body: np.ndarray,
        rhs: np.ndarray,
        preallocated: np.ndarray | None = None,
    ) -> np.ndarray:
        dim = self.kernel.dim
        if self.kernel.symmetric:
            values = read_symmetric(body, dim)
        else:
            values = read_full(body, dim)
        columns = _as_columns(rhs, dim)

        destination = preallocated if preallocated is not None else self.preallocate(body, rhs)
        if destination.size != columns.size:
            raise ValueError(
                f"Preallocated buffer has {destination.size} elements, expected {columns.size}"
            )

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            if dim == 1:
                solution = columns / values[0]
            else:
                scale = norm(values)
                scaled = (values / scale).tolist()
                table = minors(scaled, dim, symmetric=self.kernel.symmetric)
                determinant = np.float64(expand_first_column(scaled, table, dim)) * scale
                solution = (adjugate(table, dim) @ columns) / determinant

        destination[...] = solution.reshape(destination.shape)
        return destination

    def __repr__(self) -> str:
        return f"ClosedFormSolver({self.kernel.name})"


class LeastSquaresSolver:
    """Tall system with a single right-hand side and at most 5 columns.

    Forms the normal equations (A'A) x = A'b and solves them with the
    symmetric closed-form kernel of matching size.
    """

    kernel = Kernel.LEAST_SQUARES

    def preallocate(self, body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        columns = np.shape(body)[1]
        return np.zeros((columns,) if np.ndim(rhs) == 1 else (columns, 1), order="F")

    def solve(
        self,
        body: np.ndarray,
        rhs: np.ndarray,
        preallocated: np.ndarray | None = None,
    ) -> np.ndarray:
        array = np.asarray(body, dtype=float)
        rows, columns = array.shape
        if columns > MAX_CLOSED_FORM_DIM:
            raise ValueError(
                f"Least squares kernel supports at most {MAX_CLOSED_FORM_DIM} columns"
            )
        vector = _as_columns(rhs, rows)
        if vector.shape[1] != 1:
            raise ValueError("Least squares kernel supports a single right-hand side")

        normal_body = array.T @ array
        normal_rhs = array.T @ vector

        destination = preallocated if preallocated is not None else self.preallocate(body, rhs)
        kernel = ClosedFormSolver(Kernel.of(columns, symmetric=True))
        return kernel.solve(normal_body, normal_rhs.reshape(destination.shape), destination)

    def __repr__(self) -> str:
        return "LeastSquaresSolver()"


def _default_decompositions() -> "DecompositionFactoryPort":
    """Get the decomposition fallback factory (lazy import)."""
    from equilibria.adapters.decomposition_adapter import create_decomposition_factory

    return create_decomposition_factory()


def make_solver_task(
    body: np.ndarray | tuple[int, int],
    rhs: np.ndarray | tuple[int, int],
    symmetric: bool = False,
    positive_definite: bool = False,
    decompositions: "DecompositionFactoryPort | None" = None,
) -> "SolverTaskPort":
    """Select a solver task for systems shaped like (body, rhs).

    Dispatch:
        - square, single rhs column, dim <= 5: closed-form Cramer kernel
        - square otherwise: Cholesky (symmetric and positive definite) or LU
        - fat: singular value decomposition (minimum norm solution)
        - tall, single rhs column, at most 5 columns: normal equations kernel
        - tall otherwise: QR

    Args:
        body: Coefficient matrix (or shape)
        rhs: Right-hand side (or shape); 1-D means a single column
        symmetric: Body will be symmetric
        positive_definite: Body will be positive definite
        decompositions: Fallback factory (defaults to the scipy adapter)

    Returns:
        Solver task
    """
    structure = MatrixStructure.of(body)
    rhs_structure = MatrixStructure.of(rhs)
    single_rhs = rhs_structure.columns == 1

    if structure.is_square and single_rhs and structure.rows <= MAX_CLOSED_FORM_DIM:
        return ClosedFormSolver(Kernel.of(structure.rows, symmetric))

    if structure.is_tall and single_rhs and structure.columns <= MAX_CLOSED_FORM_DIM:
        return LeastSquaresSolver()

    fallback = decompositions or _default_decompositions()

    if structure.is_square:
        if symmetric and positive_definite:
            logger.debug("Solver dim={} -> Cholesky", structure.rows)
            return fallback.cholesky()
        logger.debug("Solver dim={} -> LU", structure.rows)
        return fallback.lu()
    if structure.is_fat:
        logger.debug("Solver {}x{} -> SVD", structure.rows, structure.columns)
        return fallback.singular_value()
    logger.debug("Solver {}x{} -> QR", structure.rows, structure.columns)
    return fallback.qr()


def solve(body: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve body @ x = rhs using the cheapest applicable task."""
    task = make_solver_task(body, rhs, symmetric=is_symmetric(body))
    return task.solve(body, rhs)
