"""BlackLittermanModel - Blend market weights with investor views.

    w = w0 + P' solve(Omega + P C P', Q - P C w0)

where P holds the view portfolios (one row per view), Q the view returns
divided by the risk aversion and Omega the diagonal view variances divided
by the global confidence ("weight on views").
"""

from __future__ import annotations

import warnings
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from equilibria.core.domain.portfolio import FinancePortfolio
from equilibria.core.domain.view import (
    BalancedConfidence,
    ExplicitVariance,
    ScaledConfidence,
    View,
)
from equilibria.core.linalg.solver import make_solver_task
from equilibria.core.services.equilibrium_model import EquilibriumModel
from equilibria.core.services.market_equilibrium import MarketEquilibrium, to_vector

if TYPE_CHECKING:
    from equilibria.core.ports.context_port import PortfolioContext


class BlackLittermanModel(EquilibriumModel):
    """Black-Litterman posterior weights and returns."""

    def __init__(
        self,
        market: "MarketEquilibrium | PortfolioContext",
        original_weights: "FinancePortfolio | Any",
    ) -> None:
        """Initialize BlackLittermanModel.

        Args:
            market: Covariances and market risk aversion (or a context)
            original_weights: The market (prior) portfolio, as weights or a
                FinancePortfolio

        Raises:
            ValueError: If the number of weights differs from the number of assets
        """
        super().__init__(market)
        if isinstance(original_weights, FinancePortfolio):
            original_weights = original_weights.weights
        self._original_weights = to_vector(original_weights, self.size())
        self._original_weights.setflags(write=False)
        self._views: list[View] = []
        self._confidence = 1.0

    @property
    def confidence(self) -> float:
        """General confidence in the views ("weight on views" or "tau").

        Typically between 0.0 (no confidence) and 1.0 (as confident as the
        market).
        """
        return self._confidence

    @confidence.setter
    def confidence(self, value: float) -> None:
        self._confidence = float(value)
        self.reset()

    @property
    def views(self) -> tuple[View, ...]:
        return tuple(self._views)

    def add_view(self, view: "View | FinancePortfolio") -> None:
        """Add a view, or a portfolio whose return variance is used explicitly."""
        if not isinstance(view, View):
            view = View(
                tuple(view.weights),
                float(view.mean_return),
                ExplicitVariance(float(view.return_variance)),
            )
        if view.size() != self.size():
            raise ValueError("Wrong dimensions!")
        self._views.append(view)
        self.reset()

    def add_view_with_balanced_confidence(
        self,
        weights: Sequence[float],
        mean_return: float,
    ) -> None:
        self.add_view(View(tuple(weights), float(mean_return), BalancedConfidence()))

    def add_view_with_scaled_confidence(
        self,
        weights: Sequence[float],
        mean_return: float,
        scale: float,
    ) -> None:
        self.add_view(View(tuple(weights), float(mean_return), ScaledConfidence(float(scale))))

    def add_view_with_standard_deviation(
        self,
        weights: Sequence[float],
        mean_return: float,
        standard_deviation: float,
    ) -> None:
        """Add a view with an explicit return standard deviation.

        Deprecated: use add_view_with_balanced_confidence or
        add_view_with_scaled_confidence.
        """
        warnings.warn(
            "add_view_with_standard_deviation is deprecated, "
            "use add_view_with_balanced_confidence or add_view_with_scaled_confidence",
            DeprecationWarning,
            stacklevel=2,
        )
        variance = float(standard_deviation) * float(standard_deviation)
        self.add_view(View(tuple(weights), float(mean_return), ExplicitVariance(variance)))

    def get_original_weights(self) -> np.ndarray:
        return self._original_weights

    def get_original_returns(self) -> np.ndarray:
        return self.calculate_asset_returns(self._original_weights)

    def get_view_portfolios(self) -> np.ndarray:
        """View weights, one row per view."""
        if not self._views:
            return np.zeros((0, self.size()))
        return np.array([view.weights for view in self._views])

    def get_view_returns(self) -> np.ndarray:
        """View mean returns divided by the risk aversion."""
        risk_aversion = self.risk_aversion
        return np.array([view.mean_return / risk_aversion for view in self._views])

    def get_view_variances(self) -> np.ndarray:
        """Diagonal matrix of view variances divided by the confidence."""
        covariances = self.get_covariances()
        variances = np.array(
            [view.return_variance(covariances, self._confidence) for view in self._views]
        )
        if self._confidence != 1.0:
            variances = variances / self._confidence
        return np.diag(variances)

    def _calculate_asset_returns(self) -> np.ndarray:
        return self.calculate_asset_returns(self.get_asset_weights())

    def _calculate_asset_weights(self) -> np.ndarray:
        if not self._views:
            return self._original_weights.copy()

        portfolios = self.get_view_portfolios()
        covariances = self.get_covariances()
        original = self._original_weights

        right = self.get_view_returns() - portfolios @ covariances @ original
        left = self.get_view_variances() + portfolios @ covariances @ portfolios.T

        task = make_solver_task(left, right, symmetric=True, positive_definite=True)
        adjustment = np.ravel(task.solve(left, right))

        logger.debug(f"Black-Litterman with {len(self._views)} views, adjustment {adjustment}")
        return original + portfolios.T @ adjustment
