"""OptimisedPortfolio - Equilibrium models whose weights come from a quadratic program.

The QP template has one variable per asset (objective weight = -expected
return), a "Variance" expression holding the covariance matrix (weighted by
risk_aversion / 2 at solve time), a "Balance" expression forcing the weights
to sum to 1, and one expression per asset-group constraint.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from equilibria.core.domain.constraint import LowerUpper
from equilibria.core.domain.expressions_model import ExpressionsBasedModel, Variable
from equilibria.core.domain.optimisation import OptimisationResult, OptimisationState
from equilibria.core.domain.options import OptimisationOptions
from equilibria.core.services.equilibrium_model import EquilibriumModel
from equilibria.core.services.market_equilibrium import MarketEquilibrium, to_vector

if TYPE_CHECKING:
    from equilibria.core.ports.context_port import PortfolioContext
    from equilibria.core.ports.optimisation_port import OptimisationSolverPort

BALANCE = "Balance"
VARIANCE = "Variance"


class Optimiser:
    """Fluent access to an optimised portfolio's solver options."""

    def __init__(self, portfolio: "OptimisedPortfolio") -> None:
        self._portfolio = portfolio

    def _update(self, **changes: Any) -> "Optimiser":
        self._portfolio._options = self._portfolio._options.copy(**changes)
        return self

    def debug(self, debug: bool = True) -> "Optimiser":
        """Verbose solver output and debug logging."""
        return self._update(debug=debug)

    def feasibility(self, scale: int) -> "Optimiser":
        """Constraint violation tolerance 10**-scale used when validating."""
        return self._update(feasibility_scale=scale)

    def time(self, seconds: float) -> "Optimiser":
        """Maximum time for each solver invocation."""
        return self._update(time_limit=seconds)

    def solver(self, name: str) -> "Optimiser":
        return self._update(solver=name)

    def validate(self, validate: bool = True) -> "Optimiser":
        """Validate the generated problem and its solution."""
        return self._update(validate=validate)

    def get_state(self) -> OptimisationState:
        """State of the last optimisation.

        UNEXPLORED until something triggers the calculation (any accessor that
        needs the weights).
        """
        return self._portfolio.optimisation_state


class OptimisedPortfolio(EquilibriumModel):
    """Abstract base for Markowitz and efficient frontier models.

    Expected excess returns are ground truth; weights come from solving the
    QP built by ``make_model``.
    """

    def __init__(
        self,
        market: "MarketEquilibrium | PortfolioContext",
        expected_excess_returns: Any = None,
        options: OptimisationOptions | None = None,
        solver: "OptimisationSolverPort | None" = None,
    ) -> None:
        """Initialize OptimisedPortfolio.

        Args:
            market: Market equilibrium, or a context that also supplies returns
            expected_excess_returns: One return per asset (taken from the
                context when None)
            options: Solver options
            solver: Solver port (defaults to the cvxpy adapter)

        Raises:
            ValueError: If the number of returns differs from the number of assets
        """
        super().__init__(market)

        if expected_excess_returns is None:
            if isinstance(market, MarketEquilibrium):
                raise ValueError("Expected excess returns are required")
            expected_excess_returns = market.get_asset_returns()

        self._returns = to_vector(expected_excess_returns, self.size())
        self._variables = [
            Variable(key, weight=-float(value))
            for key, value in zip(self.get_asset_keys(), self._returns)
        ]
        self._options = options.copy() if options is not None else OptimisationOptions()
        self._solver = solver
        self._shorting_allowed = False
        self._optimisation_result = OptimisationResult.unexplored(self.size())

    @property
    def shorting_allowed(self) -> bool:
        return self._shorting_allowed

    @shorting_allowed.setter
    def shorting_allowed(self, allowed: bool) -> None:
        self._shorting_allowed = bool(allowed)
        self.reset()

    @property
    def options(self) -> OptimisationOptions:
        return self._options

    @property
    def optimisation_result(self) -> OptimisationResult:
        """Result of the last optimisation (UNEXPLORED until calculated)."""
        return self._optimisation_result

    @property
    def optimisation_state(self) -> OptimisationState:
        return self._optimisation_result.state

    def optimiser(self) -> Optimiser:
        return Optimiser(self)

    def get_variable(self, index: int) -> Variable:
        return self._variables[index]

    def reset(self) -> None:
        super().reset()
        self._optimisation_result = OptimisationResult.unexplored(self.size())

    def _calculate_asset_returns(self) -> np.ndarray:
        return self._returns.copy()

    def make_model(
        self,
        constraints: Mapping[tuple[int, ...], LowerUpper],
    ) -> ExpressionsBasedModel:
        """Build the QP template.

        Args:
            constraints: Asset index tuple to limits on the summed weights

        Returns:
            Model with the "Variance" expression unweighted
        """
        n = self.size()

        variables = []
        for variable in self._variables:
            copy = variable.copy()
            if not self._shorting_allowed and (variable.lower is None or variable.lower < 0):
                copy.lower = 0.0
            variables.append(copy)

        model = ExpressionsBasedModel(self._options, solver=self._solver, variables=variables)

        model.new_expression(VARIANCE).set_quadratic_factors(self.get_covariances())

        balance = model.new_expression(BALANCE)
        for i in range(n):
            balance.set_linear(i, 1.0)
        balance.level(1.0)

        for indices, limits in constraints.items():
            expression = model.new_expression(str(list(indices)))
            for index in indices:
                expression.set_linear(index, 1.0)
            expression.lower = limits.lower
            expression.upper = limits.upper

        return model

    def handle(self, result: OptimisationResult) -> np.ndarray:
        """Turn a solver result into asset weights.

        Infeasible (or otherwise failed) results give all zeros. Feasible
        values are rounded to the solution context and, when shorting is not
        allowed, clamped at 0.

        Args:
            result: Solver outcome

        Returns:
            Asset weights (1-D)
        """
        n = self.size()
        self._optimisation_result = result

        weights = np.zeros(n)
        if result.state.is_feasible() and len(result) == n:
            context = self._options.solution_context
            for i in range(n):
                value = context.enforce(result.get(i))
                weights[i] = value if self._shorting_allowed else max(0.0, value)
        else:
            logger.warning(
                f"{type(self).__name__} optimisation {result.state.value}: using zero weights"
            )

        for variable, value in zip(self._variables, weights):
            variable.value = float(value)

        return weights
