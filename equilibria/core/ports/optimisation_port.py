"""OptimisationSolverPort Protocol - Abstract interface for quadratic program solvers.

This port defines the contract between optimised portfolio models and the
solver that minimises their ExpressionsBasedModel.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from equilibria.core.domain.expressions_model import ExpressionsBasedModel
    from equilibria.core.domain.optimisation import OptimisationResult, OptimisationState


@runtime_checkable
class OptimisationSolverPort(Protocol):
    """Abstract interface for minimising an ExpressionsBasedModel.

    Implementations:
    - OptimizerAdapter: Production implementation using cvxpy
    - StubSolver: Test stub returning scripted results
    """

    def minimise(
        self,
        model: "ExpressionsBasedModel",
        objective: bool = True,
    ) -> "OptimisationResult":
        """Minimise the model.

        Args:
            model: Variables, expressions and limits to solve
            objective: When False, solve a pure feasibility problem

        Returns:
            OptimisationResult with state and variable values in model order

        Pre-conditions:
            - Quadratic objective expressions are positive semi-definite

        Post-conditions:
            - Infeasible/unbounded/failed solves are reported through the
              state, never raised
        """
        ...


class InfeasibleError(Exception):
    """Raised by callers who require a feasible optimisation result."""

    def __init__(
        self,
        state: "OptimisationState | None" = None,
        message: str = "Optimisation constraints are infeasible",
    ) -> None:
        self.state = state
        super().__init__(message)
