"""MarketEquilibrium - Bidirectional mapping between asset weights and equilibrium returns.

Given a covariance matrix C and a risk aversion factor raf:

    returns = C @ (raf * weights)
    weights = solve(C, returns) / raf

The mapping is unconstrained: no budget or bound constraints are applied.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
from loguru import logger

from equilibria.core.domain.matrix_structure import is_symmetric
from equilibria.core.domain.number_context import MACHINE_CONTEXT
from equilibria.core.finance_utils import to_correlations, to_covariances, to_volatilities
from equilibria.core.linalg.solver import make_solver_task

if TYPE_CHECKING:
    from equilibria.core.ports.context_port import PortfolioContext

# Don't change the default!
DEFAULT_RISK_AVERSION = 1.0
SYMBOL = "Asset_"


def make_symbols(count: int) -> list[str]:
    """Asset keys Asset_0 .. Asset_<count-1>, zero padded to equal width."""
    width = len(str(max(count - 1, 0)))
    return [f"{SYMBOL}{i:0{width}d}" for i in range(count)]


def to_vector(values: Any, size: int) -> np.ndarray:
    """Coerce a 1-D, row or column input to a 1-D float array of the given size.

    Raises:
        ValueError: If the number of elements is not ``size``
    """
    vector = np.asarray(values, dtype=float)
    if vector.ndim == 2 and 1 not in vector.shape:
        raise ValueError("Wrong dimensions!")
    vector = vector.ravel()
    if vector.size != size:
        raise ValueError("Wrong dimensions!")
    return vector


class MarketEquilibrium:
    """Covariance matrix plus risk aversion, with asset keys.

    Immutable except for the risk aversion factor.
    """

    def __init__(
        self,
        covariances: np.ndarray | pd.DataFrame,
        risk_aversion: float = DEFAULT_RISK_AVERSION,
        asset_keys: Sequence[str] | None = None,
    ) -> None:
        """Initialize MarketEquilibrium.

        Args:
            covariances: Square symmetric covariance matrix; a DataFrame's
                index supplies the asset keys
            risk_aversion: Risk aversion factor (0 means default, sign ignored)
            asset_keys: One unique key per asset (generated when None)

        Raises:
            ValueError: If the matrix is not square or the keys don't match
        """
        if asset_keys is None and isinstance(covariances, pd.DataFrame):
            asset_keys = [str(key) for key in covariances.index]

        matrix = np.array(covariances, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Covariance matrix must be square, got shape {matrix.shape}")
        matrix.setflags(write=False)

        n = matrix.shape[0]
        keys = list(asset_keys) if asset_keys is not None else make_symbols(n)
        if len(keys) != n:
            raise ValueError(
                f"Expected {n} asset keys, got {len(keys)}"
            )
        if len(set(keys)) != n:
            raise ValueError("Asset keys must be unique")

        self._covariances = matrix
        self._asset_keys = tuple(keys)
        self._risk_aversion = DEFAULT_RISK_AVERSION
        self.risk_aversion = risk_aversion

    @classmethod
    def from_context(
        cls,
        context: "PortfolioContext",
        risk_aversion: float = DEFAULT_RISK_AVERSION,
    ) -> "MarketEquilibrium":
        """Create from anything that supplies covariances."""
        return cls(context.get_covariances(), risk_aversion)

    @staticmethod
    def calculate_portfolio_return(weights: Any, returns: Any) -> float:
        """Portfolio return: weights . returns."""
        return float(np.dot(np.ravel(weights), np.ravel(returns)))

    @property
    def risk_aversion(self) -> float:
        return self._risk_aversion

    @risk_aversion.setter
    def risk_aversion(self, value: float) -> None:
        value = float(value)
        if value == 0.0:
            value = DEFAULT_RISK_AVERSION
        elif value < 0.0:
            value = -value
        self._risk_aversion = value

    def is_default_risk_aversion(self) -> bool:
        return self._risk_aversion == DEFAULT_RISK_AVERSION

    @property
    def covariances(self) -> np.ndarray:
        """Covariance matrix (read-only)."""
        return self._covariances

    @property
    def asset_keys(self) -> tuple[str, ...]:
        return self._asset_keys

    def size(self) -> int:
        return len(self._asset_keys)

    def get_asset_key(self, index: int) -> str:
        return self._asset_keys[index]

    def get_asset_keys(self) -> list[str]:
        return list(self._asset_keys)

    def to_correlations(self) -> np.ndarray:
        return to_correlations(self._covariances)

    def to_volatilities(self) -> np.ndarray:
        return to_volatilities(self._covariances)

    def calculate_asset_returns(self, weights: Any) -> np.ndarray:
        """Equilibrium excess returns implied by the weights.

        Args:
            weights: Asset weights (1-D, row or column)

        Returns:
            C @ (raf * weights) as a 1-D array
        """
        vector = to_vector(weights, self.size())
        if self.is_default_risk_aversion():
            return self._covariances @ vector
        return self._covariances @ (self._risk_aversion * vector)

    def calculate_asset_weights(self, returns: Any) -> np.ndarray:
        """Unconstrained optimal weights for the returns.

        Args:
            returns: Expected excess returns (1-D, row or column)

        Returns:
            solve(C, returns) / raf as a 1-D array
        """
        vector = to_vector(returns, self.size())
        task = make_solver_task(
            self._covariances,
            vector,
            symmetric=is_symmetric(self._covariances),
            positive_definite=False,
        )
        solution = np.ravel(task.solve(self._covariances, vector))
        if self.is_default_risk_aversion():
            return solution
        return solution / self._risk_aversion

    def calculate_portfolio_variance(self, weights: Any) -> float:
        """Portfolio return variance w' C w (row or column vector input)."""
        vector = to_vector(weights, self.size())
        return float(vector @ self._covariances @ vector)

    def calculate_implied_risk_aversion(self, weights: Any, returns: Any) -> float:
        """Risk aversion factor that best reconciles weights and returns.

        Solves (C @ w) * raf = returns in the least squares sense. A
        negligible result means "no information" and gives 1; a negative
        result is negated.
        """
        body = (self._covariances @ to_vector(weights, self.size())).reshape(-1, 1)
        rhs = to_vector(returns, self.size())

        task = make_solver_task(body, rhs)
        value = float(np.ravel(task.solve(body, rhs))[0])

        if not np.isfinite(value) or MACHINE_CONTEXT.is_small(1.0, value):
            return DEFAULT_RISK_AVERSION
        if value < 0.0:
            return -value
        return value

    def calibrate(self, weights: Any, returns: Any) -> None:
        """Set the risk aversion to the value implied by (weights, returns)."""
        implied = self.calculate_implied_risk_aversion(weights, returns)
        logger.debug(f"Calibrated risk aversion {self._risk_aversion} -> {implied}")
        self.risk_aversion = implied

    def clean(self) -> "MarketEquilibrium":
        """New instance with a repaired (positive definite) covariance matrix."""
        volatilities = to_volatilities(self._covariances, clean=True)
        correlations = to_correlations(self._covariances, clean=True)
        covariances = to_covariances(volatilities, correlations)
        return MarketEquilibrium(covariances, self._risk_aversion, self._asset_keys)

    def copy(self) -> "MarketEquilibrium":
        return MarketEquilibrium(self._covariances.copy(), self._risk_aversion, self._asset_keys)

    def to_frame(self) -> pd.DataFrame:
        """Covariance matrix labelled by asset keys."""
        keys = list(self._asset_keys)
        return pd.DataFrame(self._covariances.copy(), index=keys, columns=keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MarketEquilibrium):
            return NotImplemented
        return (
            self._asset_keys == other._asset_keys
            and self._risk_aversion == other._risk_aversion
            and np.array_equal(self._covariances, other._covariances)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"MarketEquilibrium(size={self.size()}, risk_aversion={self._risk_aversion})"
