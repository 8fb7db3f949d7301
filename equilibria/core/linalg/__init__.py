"""Closed-form small-matrix kernels and their dispatch factories.

Determinant, inverse and solve for 1x1 - 5x5 matrices (general and
symmetric) by cofactor expansion, with decomposition-based fallbacks for
everything else.
"""

from equilibria.core.linalg.determinant import (
    ClosedFormDeterminant,
    calculate_determinant,
    make_determinant_task,
)
from equilibria.core.linalg.inverter import ClosedFormInverter, invert, make_inverter_task
from equilibria.core.linalg.kernels import MAX_CLOSED_FORM_DIM, Kernel
from equilibria.core.linalg.solver import (
    ClosedFormSolver,
    LeastSquaresSolver,
    make_solver_task,
    solve,
)

__all__ = [
    "Kernel",
    "MAX_CLOSED_FORM_DIM",
    # Determinant
    "ClosedFormDeterminant",
    "make_determinant_task",
    "calculate_determinant",
    # Inverter
    "ClosedFormInverter",
    "make_inverter_task",
    "invert",
    # Solver
    "ClosedFormSolver",
    "LeastSquaresSolver",
    "make_solver_task",
    "solve",
]
