"""EquilibriumModel hierarchy - Portfolios built on a MarketEquilibrium.

Each model supplies either asset returns or asset weights as ground truth
and derives the other. Derived quantities (returns, weights, mean return,
return variance) are cached and invalidated together by ``reset()``.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np
import pandas as pd

from equilibria.core.domain.portfolio import FinancePortfolio, SimpleAsset, SimplePortfolio
from equilibria.core.services.market_equilibrium import MarketEquilibrium, to_vector

if TYPE_CHECKING:
    from equilibria.core.ports.context_port import PortfolioContext

T = TypeVar("T")


class EquilibriumModel(FinancePortfolio):
    """Abstract portfolio model owning a private copy of a MarketEquilibrium.

    Subclasses implement ``_calculate_asset_returns`` and
    ``_calculate_asset_weights``. Every mutator must call ``reset()``.
    """

    def __init__(self, market: "MarketEquilibrium | PortfolioContext") -> None:
        """Initialize EquilibriumModel.

        Args:
            market: Market equilibrium (copied) or a context supplying covariances
        """
        if isinstance(market, MarketEquilibrium):
            self._market = market.copy()
        else:
            self._market = MarketEquilibrium.from_context(market)
        self._generation = 0
        self._cache: dict[str, tuple[int, Any]] = {}

    @abstractmethod
    def _calculate_asset_returns(self) -> np.ndarray:
        """Compute the asset returns (1-D)."""

    @abstractmethod
    def _calculate_asset_weights(self) -> np.ndarray:
        """Compute the asset weights (1-D)."""

    def reset(self) -> None:
        """Invalidate all cached values."""
        self._generation += 1

    def _memoised(self, key: str, factory: Callable[[], T]) -> T:
        """Cached value for key, recomputed when the generation has moved on."""
        entry = self._cache.get(key)
        if entry is not None and entry[0] == self._generation:
            return entry[1]
        generation = self._generation
        value = factory()
        if isinstance(value, np.ndarray):
            value = np.array(value, dtype=float)
            value.setflags(write=False)
        self._cache[key] = (generation, value)
        return value

    @property
    def market_equilibrium(self) -> MarketEquilibrium:
        """Copy of the underlying market equilibrium."""
        return self._market.copy()

    @property
    def risk_aversion(self) -> float:
        return self._market.risk_aversion

    @risk_aversion.setter
    def risk_aversion(self, value: float) -> None:
        self._market.risk_aversion = value
        self.reset()

    def calibrate(self, weights: Any, returns: Any) -> None:
        """Set the risk aversion to the value implied by (weights, returns)."""
        self._market.calibrate(weights, returns)
        self.reset()

    def size(self) -> int:
        return self._market.size()

    def get_asset_keys(self) -> list[str]:
        return self._market.get_asset_keys()

    def get_asset_returns(self) -> np.ndarray:
        """Asset returns (cached, read-only)."""
        return self._memoised("asset_returns", self._calculate_asset_returns)

    def get_asset_weights(self) -> np.ndarray:
        """Asset weights (cached, read-only)."""
        return self._memoised("asset_weights", self._calculate_asset_weights)

    @property
    def weights(self) -> np.ndarray:
        return self.get_asset_weights()

    @property
    def mean_return(self) -> float:
        return self._memoised(
            "mean_return",
            lambda: MarketEquilibrium.calculate_portfolio_return(
                self.get_asset_weights(), self.get_asset_returns()
            ),
        )

    @property
    def return_variance(self) -> float:
        return self._memoised(
            "return_variance",
            lambda: self._market.calculate_portfolio_variance(self.get_asset_weights()),
        )

    def get_covariances(self) -> np.ndarray:
        return self._market.covariances

    def get_correlations(self) -> np.ndarray:
        return self._market.to_correlations()

    def get_asset_volatilities(self) -> np.ndarray:
        return self._market.to_volatilities()

    def calculate_asset_returns(self, weights: Any) -> np.ndarray:
        return self._market.calculate_asset_returns(weights)

    def calculate_asset_weights(self, returns: Any) -> np.ndarray:
        return self._market.calculate_asset_weights(returns)

    def calculate_portfolio_return(self, weights: Any) -> float:
        """Return of another weight vector under this model's asset returns."""
        return MarketEquilibrium.calculate_portfolio_return(weights, self.get_asset_returns())

    def calculate_portfolio_variance(self, weights: Any) -> float:
        return self._market.calculate_portfolio_variance(weights)

    def to_simple_portfolio(self) -> SimplePortfolio:
        """Snapshot as a SimplePortfolio (returns, volatilities, weights, correlations)."""
        assets = [
            SimpleAsset(float(r), float(v), float(w))
            for r, v, w in zip(
                self.get_asset_returns(),
                self.get_asset_volatilities(),
                self.get_asset_weights(),
            )
        ]
        return SimplePortfolio(assets, self.get_correlations())

    def normalise(self) -> SimplePortfolio:
        return self.to_simple_portfolio().normalise()

    def to_frame(self) -> pd.DataFrame:
        """Weight and return per asset key."""
        return pd.DataFrame(
            {
                "weight": self.get_asset_weights(),
                "return": self.get_asset_returns(),
            },
            index=pd.Index(self.get_asset_keys(), name="asset"),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self.size()}, risk_aversion={self.risk_aversion})"


class FixedReturnsPortfolio(EquilibriumModel):
    """Returns are given; weights are the unconstrained optimum for them."""

    def __init__(self, market: "MarketEquilibrium | PortfolioContext", returns: Any) -> None:
        super().__init__(market)
        self._returns = to_vector(returns, self.size())

    @classmethod
    def from_portfolio(cls, portfolio: SimplePortfolio) -> "FixedReturnsPortfolio":
        return cls(MarketEquilibrium.from_context(portfolio), portfolio.get_asset_returns())

    def _calculate_asset_returns(self) -> np.ndarray:
        return self._returns.copy()

    def _calculate_asset_weights(self) -> np.ndarray:
        return self.calculate_asset_weights(self._returns)


class FixedWeightsPortfolio(EquilibriumModel):
    """Weights are given; returns are the implied equilibrium returns."""

    def __init__(self, market: "MarketEquilibrium | PortfolioContext", weights: Any) -> None:
        super().__init__(market)
        self._weights = to_vector(weights, self.size())

    @classmethod
    def from_portfolio(cls, portfolio: SimplePortfolio) -> "FixedWeightsPortfolio":
        return cls(MarketEquilibrium.from_context(portfolio), portfolio.weights)

    def _calculate_asset_returns(self) -> np.ndarray:
        return self.calculate_asset_returns(self._weights)

    def _calculate_asset_weights(self) -> np.ndarray:
        return self._weights.copy()
