"""Unit tests for PortfolioMixer."""

import numpy as np
import pytest

from equilibria.core.domain.optimisation import OptimisationState
from equilibria.core.domain.portfolio import SimplePortfolio
from equilibria.core.services.portfolio_mixer import (
    FULL_INVESTMENT,
    QUADRATIC_OBJECTIVE_PART,
    SELECTION_PENALTY,
    STRATEGY_COUNT,
    PortfolioMixer,
)
from tests.stubs.stub_solver import StubSolver, feasible_result, infeasible_result

# Check if cvxpy and a mixed-integer solver are available
try:
    import cvxpy

    HAS_SCIP = "SCIP" in cvxpy.installed_solvers()
except ImportError:
    HAS_SCIP = False


@pytest.fixture
def target() -> SimplePortfolio:
    return SimplePortfolio.from_weights([0.5, 0.5, 0.0])


@pytest.fixture
def components() -> dict[str, SimplePortfolio]:
    return {
        "Bonds": SimplePortfolio.from_weights([1.0, 0.0, 0.0]),
        "Stocks": SimplePortfolio.from_weights([0.0, 1.0, 0.0]),
        "Cash": SimplePortfolio.from_weights([0.0, 0.0, 1.0]),
    }


class TestPortfolioMixerModel:
    """Test the mixed-integer model structure."""

    def test_component_names(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        assert PortfolioMixer(target, components).component_names == ["Bonds", "Stocks", "Cash"]
        assert PortfolioMixer(target, list(components.values())).component_names == [
            "Component_0",
            "Component_1",
            "Component_2",
        ]

    def test_size_mismatch_raises(self, target: SimplePortfolio) -> None:
        with pytest.raises(ValueError, match="same number of contained assets"):
            PortfolioMixer(target, [SimplePortfolio.from_weights([1.0, 0.0])])

    def test_no_components_raises(self, target: SimplePortfolio) -> None:
        with pytest.raises(ValueError, match="At least one component"):
            PortfolioMixer(target, [])

    def test_variables(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        model = PortfolioMixer(target, components).make_model(2)

        names = [variable.name for variable in model.variables]
        assert names[:3] == ["Bonds", "Stocks", "Cash"]
        assert names[3:] == ["Bonds_Selected", "Stocks_Selected", "Cash_Selected"]
        assert [variable.weight for variable in model.variables[:3]] == [-1.0, -1.0, 0.0]
        assert all(variable.integer for variable in model.variables[3:])
        assert not any(variable.integer for variable in model.variables[:3])

    def test_expressions(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        model = PortfolioMixer(target, components).make_model(2)

        quadratic = model.get_expression(QUADRATIC_OBJECTIVE_PART).quadratic_factors(6)
        np.testing.assert_array_equal(quadratic[:3, :3], np.eye(3))
        np.testing.assert_array_equal(quadratic[3:, 3:], SELECTION_PENALTY * np.eye(3))
        assert model.get_expression(FULL_INVESTMENT).bounds.is_equality
        assert model.get_expression(STRATEGY_COUNT).upper == 2.0
        active = model.get_expression("Stocks_Active")
        assert active.linear == {1: -1.0, 4: 1.0}
        assert active.lower == 0.0

    def test_extra_constraints(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        mixer = PortfolioMixer(target, components)
        mixer.add_asset_constraint(2, None, 0.1)
        mixer.add_component_constraint(0, 0.2, None)

        model = mixer.make_model(2)

        assert model.get_expression("AC[2]").linear == {0: 0.0, 1: 0.0, 2: 1.0}
        assert model.get_expression("AC[2]").upper == 0.1
        assert model.get_expression("CC[0]").lower == 0.2

    def test_constraint_indices_are_checked(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        mixer = PortfolioMixer(target, components)

        with pytest.raises(ValueError, match="out of range"):
            mixer.add_asset_constraint(3, 0.0, 1.0)
        with pytest.raises(ValueError, match="out of range"):
            mixer.add_component_constraint(-1, 0.0, 1.0)


class TestPortfolioMixerMix:
    """Test mixing through a stub solver."""

    def test_weights_are_rounded(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        solver = StubSolver([feasible_result([0.49999999, 0.50000001, 0.0, 1.0, 1.0, 0.0])])
        mixer = PortfolioMixer(target, components, solver=solver)

        assert mixer.mix(2) == [0.5, 0.5, 0.0]
        assert mixer.optimisation_result.state is OptimisationState.OPTIMAL

    def test_infeasible_gives_zero_weights(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        mixer = PortfolioMixer(target, components, solver=StubSolver([infeasible_result(6)]))

        assert mixer.mix(1) == [0.0, 0.0, 0.0]
        assert mixer.optimisation_result.state is OptimisationState.INFEASIBLE

    def test_invalid_count_raises(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        with pytest.raises(ValueError, match="number_of_components"):
            PortfolioMixer(target, components).mix(0)

    def test_unexplored_before_mix(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        mixer = PortfolioMixer(target, components)

        assert mixer.optimisation_result.state is OptimisationState.UNEXPLORED


@pytest.mark.skipif(not HAS_SCIP, reason="cvxpy with SCIP not installed")
class TestPortfolioMixerWithScip:
    """Test mixing with a real mixed-integer solver."""

    def test_single_component(self, target: SimplePortfolio) -> None:
        mixer = PortfolioMixer(target, [SimplePortfolio.from_weights([0.2, 0.3, 0.5])])

        assert mixer.mix(1) == pytest.approx([1.0])

    def test_two_components(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        weights = PortfolioMixer(target, components).mix(2)

        assert weights == pytest.approx([0.5, 0.5, 0.0], abs=1e-5)

    def test_cardinality_limit(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        weights = PortfolioMixer(target, components).mix(1)

        assert sum(weight > 1e-6 for weight in weights) == 1
        assert sum(weights) == pytest.approx(1.0, abs=1e-5)
        assert weights[2] == pytest.approx(0.0, abs=1e-6)

    def test_component_constraint(
        self,
        target: SimplePortfolio,
        components: dict[str, SimplePortfolio],
    ) -> None:
        mixer = PortfolioMixer(target, components)
        mixer.add_component_constraint(0, None, 0.3)

        weights = mixer.mix(2)

        assert weights == pytest.approx([0.3, 0.7, 0.0], abs=1e-5)
