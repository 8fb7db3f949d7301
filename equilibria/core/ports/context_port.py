"""PortfolioContext Protocol - Capability to supply market data for a set of assets."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np


@runtime_checkable
class PortfolioContext(Protocol):
    """Source of expected returns, volatilities, correlations and covariances.

    Implementations:
    - SimplePortfolio
    - EquilibriumModel (and subclasses)
    """

    def size(self) -> int:
        """Number of assets."""
        ...

    def get_asset_returns(self) -> "np.ndarray":
        """Expected excess return per asset."""
        ...

    def get_asset_volatilities(self) -> "np.ndarray":
        """Volatility per asset."""
        ...

    def get_correlations(self) -> "np.ndarray":
        """Correlation matrix (n x n)."""
        ...

    def get_covariances(self) -> "np.ndarray":
        """Covariance matrix (n x n)."""
        ...
