"""Unit tests for MarketEquilibrium."""

import numpy as np
import pandas as pd
import pytest

from equilibria.core.domain.portfolio import SimpleAsset, SimplePortfolio
from equilibria.core.services.market_equilibrium import (
    DEFAULT_RISK_AVERSION,
    MarketEquilibrium,
    make_symbols,
    to_vector,
)


@pytest.fixture
def covariances() -> np.ndarray:
    return np.array([[0.04, 0.01], [0.01, 0.09]])


@pytest.fixture
def market(covariances: np.ndarray) -> MarketEquilibrium:
    return MarketEquilibrium(covariances)


class TestSymbols:
    """Test asset key generation and vector coercion."""

    def test_padding(self) -> None:
        assert make_symbols(3) == ["Asset_0", "Asset_1", "Asset_2"]
        assert make_symbols(12)[0] == "Asset_00"
        assert make_symbols(12)[-1] == "Asset_11"
        assert make_symbols(0) == []

    def test_to_vector_accepts_rows_and_columns(self) -> None:
        np.testing.assert_array_equal(to_vector([[1.0], [2.0]], 2), [1.0, 2.0])
        np.testing.assert_array_equal(to_vector([[1.0, 2.0]], 2), [1.0, 2.0])

    def test_to_vector_wrong_size_raises(self) -> None:
        with pytest.raises(ValueError, match="Wrong dimensions!"):
            to_vector([1.0, 2.0, 3.0], 2)

    def test_to_vector_matrix_raises(self) -> None:
        with pytest.raises(ValueError, match="Wrong dimensions!"):
            to_vector(np.eye(2), 4)


class TestMarketEquilibriumConstruction:
    """Test construction and invariants."""

    def test_generated_keys(self, market: MarketEquilibrium) -> None:
        assert market.asset_keys == ("Asset_0", "Asset_1")
        assert market.size() == 2
        assert market.get_asset_key(1) == "Asset_1"

    def test_dataframe_keys(self, covariances: np.ndarray) -> None:
        frame = pd.DataFrame(covariances, index=["Bonds", "Stocks"], columns=["Bonds", "Stocks"])

        market = MarketEquilibrium(frame)

        assert market.get_asset_keys() == ["Bonds", "Stocks"]
        assert market.to_frame().equals(frame)

    def test_non_square_raises(self) -> None:
        with pytest.raises(ValueError, match="square"):
            MarketEquilibrium(np.ones((2, 3)))

    def test_key_count_mismatch_raises(self, covariances: np.ndarray) -> None:
        with pytest.raises(ValueError, match="Expected 2 asset keys"):
            MarketEquilibrium(covariances, asset_keys=["A"])

    def test_duplicate_keys_raise(self, covariances: np.ndarray) -> None:
        with pytest.raises(ValueError, match="unique"):
            MarketEquilibrium(covariances, asset_keys=["A", "A"])

    def test_covariances_are_read_only(self, market: MarketEquilibrium) -> None:
        with pytest.raises(ValueError):
            market.covariances[0, 0] = 1.0

    def test_input_is_copied(self, covariances: np.ndarray) -> None:
        market = MarketEquilibrium(covariances)
        covariances[0, 0] = 1.0

        assert market.covariances[0, 0] == 0.04

    def test_from_context(self) -> None:
        portfolio = SimplePortfolio([SimpleAsset(volatility=0.2), SimpleAsset(volatility=0.3)])

        market = MarketEquilibrium.from_context(portfolio, risk_aversion=2.0)

        np.testing.assert_allclose(market.covariances, np.diag([0.04, 0.09]))
        assert market.risk_aversion == 2.0


class TestRiskAversion:
    """Test risk aversion normalisation."""

    def test_default(self, market: MarketEquilibrium) -> None:
        assert market.risk_aversion == DEFAULT_RISK_AVERSION
        assert market.is_default_risk_aversion()

    def test_zero_means_default(self, market: MarketEquilibrium) -> None:
        market.risk_aversion = 0.0

        assert market.risk_aversion == 1.0

    def test_negative_is_negated(self, market: MarketEquilibrium) -> None:
        market.risk_aversion = -2.5

        assert market.risk_aversion == 2.5
        assert not market.is_default_risk_aversion()


class TestMappings:
    """Test the weights <-> returns mapping."""

    def test_returns_from_weights(self, market: MarketEquilibrium) -> None:
        returns = market.calculate_asset_returns([0.5, 0.5])

        np.testing.assert_allclose(returns, [0.025, 0.05])

    def test_weights_from_returns(self, market: MarketEquilibrium) -> None:
        weights = market.calculate_asset_weights([0.025, 0.05])

        np.testing.assert_allclose(weights, [0.5, 0.5])

    def test_risk_aversion_scales_mapping(self, market: MarketEquilibrium) -> None:
        market.risk_aversion = 2.0

        returns = market.calculate_asset_returns([0.5, 0.5])

        np.testing.assert_allclose(returns, [0.05, 0.1])
        np.testing.assert_allclose(market.calculate_asset_weights(returns), [0.5, 0.5])

    def test_column_vector_input(self, market: MarketEquilibrium) -> None:
        returns = market.calculate_asset_returns(np.array([[0.5], [0.5]]))

        assert returns.shape == (2,)

    def test_wrong_size_raises(self, market: MarketEquilibrium) -> None:
        with pytest.raises(ValueError, match="Wrong dimensions!"):
            market.calculate_asset_returns([1.0, 0.0, 0.0])

    @pytest.mark.parametrize("dim", [1, 2, 3, 4, 5])
    def test_round_trip_closed_form_sizes(self, dim: int) -> None:
        """Weights -> returns -> weights is the identity for each kernel size."""
        rng = np.random.default_rng(dim)
        base = rng.standard_normal((dim, dim)) * 0.2
        market = MarketEquilibrium(base @ base.T + 0.02 * np.eye(dim), risk_aversion=2.5)
        weights = rng.uniform(-0.5, 1.0, dim)

        returns = market.calculate_asset_returns(weights)

        np.testing.assert_allclose(market.calculate_asset_weights(returns), weights, atol=1e-9)

    def test_round_trip_larger_than_closed_form(self) -> None:
        """The mapping also works where decompositions take over."""
        rng = np.random.default_rng(9)
        base = rng.standard_normal((8, 8)) * 0.1
        market = MarketEquilibrium(base @ base.T + 0.01 * np.eye(8), risk_aversion=3.0)
        weights = np.full(8, 1.0 / 8)

        returns = market.calculate_asset_returns(weights)

        np.testing.assert_allclose(market.calculate_asset_weights(returns), weights, atol=1e-10)

    def test_portfolio_variance(self, market: MarketEquilibrium) -> None:
        assert market.calculate_portfolio_variance([0.5, 0.5]) == pytest.approx(0.0375)

    def test_portfolio_return(self) -> None:
        result = MarketEquilibrium.calculate_portfolio_return([0.5, 0.5], [0.025, 0.05])

        assert result == pytest.approx(0.0375)

    def test_volatilities_and_correlations(self, market: MarketEquilibrium) -> None:
        np.testing.assert_allclose(market.to_volatilities(), [0.2, 0.3])
        assert market.to_correlations()[0, 1] == pytest.approx(0.01 / 0.06)


class TestImpliedRiskAversion:
    """Test calibration of the risk aversion."""

    def test_implied(self, market: MarketEquilibrium) -> None:
        weights = [0.3, 0.7]
        returns = 3.0 * market.covariances @ np.array(weights)

        assert market.calculate_implied_risk_aversion(weights, returns) == pytest.approx(3.0)

    def test_negative_is_negated(self, market: MarketEquilibrium) -> None:
        weights = [0.3, 0.7]
        returns = -3.0 * market.covariances @ np.array(weights)

        assert market.calculate_implied_risk_aversion(weights, returns) == pytest.approx(3.0)

    def test_no_information_gives_default(self, market: MarketEquilibrium) -> None:
        """Zero weights carry no information about the risk aversion."""
        assert market.calculate_implied_risk_aversion([0.0, 0.0], [0.05, 0.1]) == 1.0

    def test_calibrate(self, market: MarketEquilibrium) -> None:
        weights = [0.5, 0.5]
        returns = 4.0 * market.covariances @ np.array(weights)

        market.calibrate(weights, returns)

        assert market.risk_aversion == pytest.approx(4.0)


class TestCopyAndClean:
    """Test copy, equality and cleaning."""

    def test_copy_is_equal(self, market: MarketEquilibrium) -> None:
        copy = market.copy()

        assert copy == market
        assert copy is not market

    def test_copy_is_independent(self, market: MarketEquilibrium) -> None:
        copy = market.copy()
        copy.risk_aversion = 5.0

        assert copy != market
        assert market.risk_aversion == 1.0

    def test_unhashable(self, market: MarketEquilibrium) -> None:
        with pytest.raises(TypeError):
            hash(market)

    def test_clean_keeps_valid_matrix(self, market: MarketEquilibrium) -> None:
        market.risk_aversion = 2.0

        cleaned = market.clean()

        np.testing.assert_allclose(cleaned.covariances, market.covariances, atol=1e-12)
        assert cleaned.risk_aversion == 2.0
        assert cleaned.asset_keys == market.asset_keys

    def test_clean_repairs_indefinite_matrix(self) -> None:
        market = MarketEquilibrium(np.array([[0.04, 0.07], [0.07, 0.09]]))

        cleaned = market.clean()

        assert np.linalg.eigvalsh(cleaned.covariances).min() >= -1e-12
        np.testing.assert_allclose(np.diag(cleaned.covariances), [0.04, 0.09])
