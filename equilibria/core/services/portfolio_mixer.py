"""PortfolioMixer - Blend component portfolios to track a target portfolio.

Mixed-integer QP: one weight variable w_c in [0, 1] and one binary
"selected" variable a_c per component. Minimises the squared tracking error

    |target - sum(w_c * component_c)|^2

(less its constant term) subject to sum(w_c) == 1, a_c >= w_c and
sum(a_c) <= K, plus optional limits on asset exposures and component weights.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from equilibria.core.domain.constraint import LowerUpper
from equilibria.core.domain.expressions_model import ExpressionsBasedModel, Variable
from equilibria.core.domain.optimisation import OptimisationResult
from equilibria.core.domain.options import OptimisationOptions

if TYPE_CHECKING:
    from equilibria.core.domain.portfolio import FinancePortfolio
    from equilibria.core.ports.optimisation_port import OptimisationSolverPort

QUADRATIC_OBJECTIVE_PART = "Quadratic Objective Part"
FULL_INVESTMENT = "100%"
STRATEGY_COUNT = "Strategy Count"
SELECTION_PENALTY = 0.001


class PortfolioMixer:
    """Choose at most K component portfolios that best replicate a target."""

    def __init__(
        self,
        target: "FinancePortfolio",
        components: "Sequence[FinancePortfolio] | Mapping[str, FinancePortfolio]",
        options: OptimisationOptions | None = None,
        solver: "OptimisationSolverPort | None" = None,
    ) -> None:
        """Initialize PortfolioMixer.

        Args:
            target: Portfolio to replicate
            components: Candidate portfolios (a mapping supplies their names)
            options: Solver options
            solver: Solver port (defaults to the cvxpy adapter)

        Raises:
            ValueError: If the portfolios don't all have the same number of assets
        """
        if isinstance(components, Mapping):
            names = [str(name) for name in components]
            portfolios = list(components.values())
        else:
            portfolios = list(components)
            names = [f"Component_{i}" for i in range(len(portfolios))]

        if not portfolios:
            raise ValueError("At least one component portfolio is required")

        self._target = np.ravel(np.asarray(target.weights, dtype=float))
        self._components = [np.ravel(np.asarray(p.weights, dtype=float)) for p in portfolios]
        if any(weights.size != self._target.size for weights in self._components):
            raise ValueError(
                "The target and component portfolios must all have the same number of contained assets!"
            )

        self._names = names
        self._options = options.copy() if options is not None else OptimisationOptions()
        self._solver = solver
        self._asset_constraints: dict[int, LowerUpper] = {}
        self._component_constraints: dict[int, LowerUpper] = {}
        self._result = OptimisationResult.unexplored(2 * len(portfolios))

    @property
    def component_names(self) -> list[str]:
        return list(self._names)

    @property
    def optimisation_result(self) -> OptimisationResult:
        """Result of the last mix (UNEXPLORED before the first)."""
        return self._result

    def add_asset_constraint(
        self,
        asset_index: int,
        lower: float | None,
        upper: float | None,
    ) -> None:
        """Limit the blended exposure to one of the target's assets."""
        if not 0 <= asset_index < self._target.size:
            raise ValueError(f"Asset index {asset_index} out of range")
        self._asset_constraints[asset_index] = LowerUpper(lower, upper)

    def add_component_constraint(
        self,
        component_index: int,
        lower: float | None,
        upper: float | None,
    ) -> None:
        """Limit the weight of one component."""
        if not 0 <= component_index < len(self._components):
            raise ValueError(f"Component index {component_index} out of range")
        self._component_constraints[component_index] = LowerUpper(lower, upper)

    def make_model(self, number_of_components: int) -> ExpressionsBasedModel:
        """Build the mixed-integer QP for a cardinality limit of K."""
        components = self._components
        n = len(components)

        variables = [
            Variable(
                name,
                lower=0.0,
                upper=1.0,
                weight=-2.0 * float(self._target @ weights),
            )
            for name, weights in zip(self._names, components)
        ]
        variables += [Variable.binary(f"{name}_Selected") for name in self._names]

        model = ExpressionsBasedModel(self._options, solver=self._solver, variables=variables)

        quadratic = model.new_expression(QUADRATIC_OBJECTIVE_PART)
        for row in range(n):
            for col in range(n):
                value = float(components[row] @ components[col])
                quadratic.set_quadratic(row, col, value)
                quadratic.set_quadratic(n + row, n + col, SELECTION_PENALTY * value)
        quadratic.weight = 1.0

        for c, name in enumerate(self._names):
            active = model.new_expression(f"{name}_Active")
            active.set_linear(c, -1.0)
            active.set_linear(n + c, 1.0)
            active.lower = 0.0

        full = model.new_expression(FULL_INVESTMENT)
        for c in range(n):
            full.set_linear(c, 1.0)
        full.level(1.0)

        count = model.new_expression(STRATEGY_COUNT)
        for c in range(n):
            count.set_linear(n + c, 1.0)
        count.upper = float(number_of_components)

        for asset, limits in self._asset_constraints.items():
            expression = model.new_expression(f"AC[{asset}]")
            for c, weights in enumerate(components):
                expression.set_linear(c, float(weights[asset]))
            expression.lower = limits.lower
            expression.upper = limits.upper

        for component, limits in self._component_constraints.items():
            expression = model.new_expression(f"CC[{component}]")
            expression.set_linear(component, 1.0)
            expression.lower = limits.lower
            expression.upper = limits.upper

        return model

    def mix(self, number_of_components: int) -> list[float]:
        """Blend at most K components.

        Args:
            number_of_components: Maximum number of components with non-zero weight

        Returns:
            Weight per component in input order (all zeros if infeasible)
        """
        if number_of_components < 1:
            raise ValueError(
                f"number_of_components must be >= 1, got {number_of_components}"
            )

        n = len(self._components)
        self._result = self.make_model(number_of_components).minimise()

        if not self._result.state.is_feasible():
            logger.warning(f"Portfolio mix {self._result.state.value}: using zero weights")
            return [0.0] * n

        context = self._options.solution_context
        return [context.enforce(self._result.get(c)) for c in range(n)]
