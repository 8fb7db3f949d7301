"""MarkowitzModel - Constrained mean-variance optimisation with optional target search.

Without a target the model minimises

    (risk_aversion / 2) * w' C w - w' r

subject to sum(w) == 1 and the asset/group limits. With a target return or
target variance the risk aversion is found by geometric bisection: solve at
a trial risk aversion, measure the portfolio's return (or variance), narrow
the bracket and try the geometric mean of the new bracket.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from equilibria.core.domain.constraint import LowerUpper
from equilibria.core.domain.optimisation import OptimisationResult
from equilibria.core.services.optimised_portfolio import VARIANCE, OptimisedPortfolio

if TYPE_CHECKING:
    from equilibria.core.domain.expressions_model import ExpressionsBasedModel
    from equilibria.core.domain.options import OptimisationOptions
    from equilibria.core.ports.context_port import PortfolioContext
    from equilibria.core.ports.optimisation_port import OptimisationSolverPort
    from equilibria.core.services.market_equilibrium import MarketEquilibrium

INIT = math.sqrt(10.0)
MAX = 100.0 * 100.0
MIN = 0.01


@dataclass(frozen=True)
class TargetSearch:
    """Outcome of a target return/variance search.

    Attributes:
        iterations: Number of trial solves (excluding the feasibility probe)
        risk_aversion: Risk aversion of the kept trial
        converged: False if the iteration cap was hit
    """

    iterations: int
    risk_aversion: float
    converged: bool


class MarkowitzModel(OptimisedPortfolio):
    """Markowitz portfolio with bounds, group constraints and target search."""

    def __init__(
        self,
        market: "MarketEquilibrium | PortfolioContext",
        expected_excess_returns: Any = None,
        options: "OptimisationOptions | None" = None,
        solver: "OptimisationSolverPort | None" = None,
    ) -> None:
        super().__init__(market, expected_excess_returns, options, solver)
        self._constraints: dict[tuple[int, ...], LowerUpper] = {}
        self._optimisation_model: ExpressionsBasedModel | None = None
        self._target_return: float | None = None
        self._target_variance: float | None = None
        self._target_search: TargetSearch | None = None

    @property
    def target_return(self) -> float | None:
        return self._target_return

    @property
    def target_variance(self) -> float | None:
        return self._target_variance

    @property
    def target_search(self) -> TargetSearch | None:
        """Details of the last target search (None when no target is set)."""
        return self._target_search

    @property
    def constraints(self) -> dict[tuple[int, ...], LowerUpper]:
        return dict(self._constraints)

    def add_constraint(
        self,
        lower: float | None,
        upper: float | None,
        *indices: int,
    ) -> LowerUpper | None:
        """Limit the summed weight of some assets.

        Either (but not both) of the limits may be None.

        Returns:
            The limits previously set for the same indices, if any
        """
        if not indices:
            raise ValueError("At least one asset index is required")
        if lower is None and upper is None:
            raise ValueError("At least one of lower and upper must be set")
        for index in indices:
            if not 0 <= index < self.size():
                raise ValueError(f"Asset index {index} out of range")
        key = tuple(indices)
        previous = self._constraints.get(key)
        self._constraints[key] = LowerUpper(lower, upper)
        self.reset()
        return previous

    def clear_all_constraints(self) -> None:
        self._constraints.clear()
        self.reset()

    def set_lower_limit(self, index: int, lower: float | None) -> None:
        self.get_variable(index).lower = lower
        self.reset()

    def set_upper_limit(self, index: int, upper: float | None) -> None:
        self.get_variable(index).upper = upper
        self.reset()

    def set_target_return(self, target_return: float | None) -> None:
        """Search for the minimum risk portfolio with this return.

        Clears any target variance. The risk aversion factor is then only
        used as the starting point of the search.
        """
        self._target_return = target_return
        self._target_variance = None
        self.reset()

    def set_target_variance(self, target_variance: float | None) -> None:
        """Search for the maximum return portfolio with this variance.

        Clears any target return.
        """
        self._target_variance = target_variance
        self._target_return = None
        self.reset()

    def reset(self) -> None:
        super().reset()
        self._optimisation_model = None
        self._target_search = None

    def _generate_optimisation_model(self, risk_aversion: float) -> "ExpressionsBasedModel":
        if self._optimisation_model is None:
            self._optimisation_model = self.make_model(self._constraints)
        self._optimisation_model.get_expression(VARIANCE).weight = risk_aversion / 2.0
        return self._optimisation_model

    def _measure(self, result: OptimisationResult) -> float:
        if self._target_variance is not None:
            return self.calculate_portfolio_variance(result.values)
        return self.calculate_portfolio_return(result.values)

    def _calculate_asset_weights(self) -> np.ndarray:
        """Constrained optimisation."""
        if self._target_return is None and self._target_variance is None:
            result = self._generate_optimisation_model(self.risk_aversion).minimise()
            return self.handle(result)
        return self.handle(self._search_target())

    def _search_target(self) -> OptimisationResult:
        """Geometric bisection over the risk aversion factor."""
        target = (
            self._target_variance if self._target_variance is not None else self._target_return
        )
        context = self._options.target_context
        abort = self._options.iterations_abort

        probe = self._generate_optimisation_model(0.0).check_feasibility()
        if not probe.state.is_feasible():
            logger.warning(f"Target search aborted, constraints are {probe.state.value}")
            self._target_search = TargetSearch(0, self.risk_aversion, False)
            return probe

        if self._market.is_default_risk_aversion():
            current, low, high = INIT, MAX, MIN
        else:
            current = self.risk_aversion
            low, high = current * INIT, current / INIT

        kept: OptimisationResult | None = None
        kept_risk_aversion = current
        diff = math.inf
        iterations = 0

        while iterations < abort:
            iterations += 1
            result = self._generate_optimisation_model(current).minimise()

            if not result.state.is_feasible():
                logger.warning(
                    f"Target search trial at risk aversion {current} was {result.state.value}"
                )
                if kept is None:
                    kept = result
                low, high = low * INIT, high / INIT
                current = math.sqrt(low * current)
                continue

            kept, kept_risk_aversion = result, current
            now = self._measure(result)
            diff = now - target
            logger.debug(
                f"Iteration {iterations}: risk aversion {current}, now {now}, "
                f"target {target}, diff {diff}"
            )

            if diff < 0.0:
                low = current
            elif diff > 0.0:
                high = current
            current = math.sqrt(low * high)

            if context.is_small(target, diff) or not context.is_different(high, low):
                break

        converged = context.is_small(target, diff) or not context.is_different(high, low)
        if not converged:
            logger.warning(f"Target search stopped after {iterations} iterations, diff {diff}")

        self._target_search = TargetSearch(iterations, kept_risk_aversion, converged)
        return kept
