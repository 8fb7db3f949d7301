"""Portfolio Domain Objects - Weights with return and risk characteristics.

Provides:
- FinancePortfolio: abstract portfolio (weights, mean return, return variance)
- SimpleAsset: one asset's return, volatility and weight
- SimplePortfolio: assets plus a correlation matrix
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from equilibria.core.ports.context_port import PortfolioContext

# Tolerance for weight sum checks (floating point)
WEIGHT_SUM_TOLERANCE = 1e-6


class FinancePortfolio(ABC):
    """A set of asset weights with an expected return and a return variance."""

    @property
    @abstractmethod
    def weights(self) -> np.ndarray:
        """Asset weights (1-D)."""

    @property
    @abstractmethod
    def mean_return(self) -> float:
        """Expected portfolio return."""

    @property
    @abstractmethod
    def return_variance(self) -> float:
        """Portfolio return variance."""

    @abstractmethod
    def normalise(self) -> "FinancePortfolio":
        """Copy whose weights sum to 1."""

    @property
    def volatility(self) -> float:
        """Portfolio return standard deviation."""
        return math.sqrt(max(self.return_variance, 0.0))

    def sharpe_ratio(self, risk_free_return: float = 0.0) -> float:
        """Excess return per unit of volatility.

        Args:
            risk_free_return: Return of the risk-free asset

        Returns:
            Sharpe ratio (nan if the volatility is zero)
        """
        volatility = self.volatility
        if volatility == 0.0:
            return float("nan")
        return (self.mean_return - risk_free_return) / volatility

    def get_weights(self) -> list[float]:
        """Asset weights as a list of floats."""
        return [float(weight) for weight in self.weights]

    def is_fully_invested(self, tolerance: float = WEIGHT_SUM_TOLERANCE) -> bool:
        """Return True if the weights sum to 1."""
        return abs(float(np.sum(self.weights)) - 1.0) <= tolerance


@dataclass(frozen=True)
class SimpleAsset:
    """Single asset.

    Attributes:
        mean_return: Expected excess return
        volatility: Return standard deviation
        weight: Portfolio weight

    Invariants:
        - volatility >= 0
    """

    mean_return: float = 0.0
    volatility: float = 0.0
    weight: float = 0.0

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.volatility < 0:
            raise ValueError(f"volatility must be >= 0, got {self.volatility}")

    @property
    def return_variance(self) -> float:
        return self.volatility * self.volatility

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "mean_return": self.mean_return,
            "volatility": self.volatility,
            "weight": self.weight,
        }


class SimplePortfolio(FinancePortfolio):
    """Portfolio of SimpleAssets with a correlation matrix.

    Implements PortfolioContext so it can seed a MarketEquilibrium.
    """

    def __init__(
        self,
        assets: Sequence[SimpleAsset],
        correlations: np.ndarray | None = None,
    ) -> None:
        """Initialize SimplePortfolio.

        Args:
            assets: Assets in portfolio order
            correlations: Correlation matrix (identity when None)

        Raises:
            ValueError: If the correlation matrix does not match the assets
        """
        self._assets = tuple(assets)
        n = len(self._assets)
        if correlations is None:
            correlations = np.eye(n)
        correlations = np.array(correlations, dtype=float)
        if correlations.shape != (n, n):
            raise ValueError("Input dimensions don't match!")
        correlations.setflags(write=False)
        self._correlations = correlations

    @classmethod
    def from_weights(cls, weights: Sequence[float] | np.ndarray) -> "SimplePortfolio":
        """Portfolio with only weights (zero returns, zero volatilities)."""
        return cls([SimpleAsset(weight=float(weight)) for weight in np.ravel(weights)])

    @classmethod
    def from_context(
        cls,
        context: "PortfolioContext",
        weights_portfolio: FinancePortfolio,
    ) -> "SimplePortfolio":
        """Portfolio combining a context's market data with another portfolio's weights.

        Raises:
            ValueError: If the sizes differ
        """
        weights = np.ravel(weights_portfolio.weights)
        returns = np.ravel(context.get_asset_returns())
        volatilities = np.ravel(context.get_asset_volatilities())
        if not (weights.size == returns.size == volatilities.size == context.size()):
            raise ValueError("Input dimensions don't match!")
        assets = [
            SimpleAsset(float(r), float(v), float(w))
            for r, v, w in zip(returns, volatilities, weights)
        ]
        return cls(assets, context.get_correlations())

    @property
    def assets(self) -> tuple[SimpleAsset, ...]:
        return self._assets

    def size(self) -> int:
        return len(self._assets)

    @property
    def weights(self) -> np.ndarray:
        return np.array([asset.weight for asset in self._assets])

    def get_asset_returns(self) -> np.ndarray:
        return np.array([asset.mean_return for asset in self._assets])

    def get_asset_volatilities(self) -> np.ndarray:
        return np.array([asset.volatility for asset in self._assets])

    def get_correlations(self) -> np.ndarray:
        return self._correlations

    def get_covariances(self) -> np.ndarray:
        volatilities = self.get_asset_volatilities()
        return np.outer(volatilities, volatilities) * self._correlations

    @property
    def mean_return(self) -> float:
        return float(self.weights @ self.get_asset_returns())

    @property
    def return_variance(self) -> float:
        weights = self.weights
        return float(weights @ self.get_covariances() @ weights)

    def normalise(self) -> "SimplePortfolio":
        """Copy whose weights sum to 1 (unchanged if they sum to 0)."""
        total = float(np.sum(self.weights))
        if total == 0.0:
            return SimplePortfolio(self._assets, self._correlations)
        assets = [
            SimpleAsset(asset.mean_return, asset.volatility, asset.weight / total)
            for asset in self._assets
        ]
        return SimplePortfolio(assets, self._correlations)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "assets": [asset.to_dict() for asset in self._assets],
            "correlations": self._correlations.tolist(),
        }

    def __repr__(self) -> str:
        return (
            f"SimplePortfolio(size={self.size()}, mean_return={self.mean_return:.6f}, "
            f"volatility={self.volatility:.6f})"
        )
