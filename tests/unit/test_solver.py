"""Unit tests for solver kernels and dispatch."""

import numpy as np
import pytest

from equilibria.adapters.decomposition_adapter import LUTask
from equilibria.core.linalg.kernels import Kernel
from equilibria.core.linalg.solver import (
    ClosedFormSolver,
    LeastSquaresSolver,
    make_solver_task,
    solve,
)
from equilibria.core.ports.linalg_port import SolverTaskPort


def random_matrix(dim: int, seed: int = 5) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.standard_normal((dim, dim)) + dim * np.eye(dim)


class RecordingFactory:
    """Decomposition factory stub recording which fallback was requested."""

    def __init__(self) -> None:
        self.requested: list[str] = []

    def _task(self, name: str) -> LUTask:
        self.requested.append(name)
        return LUTask()

    def cholesky(self) -> LUTask:
        return self._task("cholesky")

    def lu(self) -> LUTask:
        return self._task("lu")

    def qr(self) -> LUTask:
        return self._task("qr")

    def singular_value(self) -> LUTask:
        return self._task("singular_value")


class TestClosedFormSolver:
    """Test Cramer's rule kernels."""

    @pytest.mark.parametrize("dim", [1, 2, 3, 4, 5])
    def test_general(self, dim: int) -> None:
        """General kernels should match numpy."""
        body = random_matrix(dim, seed=dim)
        rhs = np.arange(1.0, dim + 1.0)

        solution = ClosedFormSolver(Kernel.of(dim)).solve(body, rhs)

        assert solution.shape == (dim,)
        np.testing.assert_allclose(solution, np.linalg.solve(body, rhs), rtol=1e-9, atol=1e-12)

    @pytest.mark.parametrize("dim", [2, 3, 4, 5])
    def test_symmetric(self, dim: int) -> None:
        base = random_matrix(dim, seed=30 + dim)
        body = base + base.T
        rhs = np.ones(dim)

        solution = ClosedFormSolver(Kernel.of(dim, symmetric=True)).solve(body, rhs)

        np.testing.assert_allclose(solution, np.linalg.solve(body, rhs), rtol=1e-9, atol=1e-12)

    def test_column_rhs_keeps_shape(self) -> None:
        """A column vector right-hand side gives a column vector solution."""
        body = np.array([[4.0, 1.0], [1.0, 3.0]])
        rhs = np.array([[1.0], [2.0]])

        solution = ClosedFormSolver(Kernel.FULL_2X2).solve(body, rhs)

        assert solution.shape == (2, 1)
        np.testing.assert_allclose(body @ solution, rhs)

    def test_preallocated_buffer_is_reused(self) -> None:
        solver = ClosedFormSolver(Kernel.FULL_2X2)
        body = np.array([[2.0, 0.0], [0.0, 4.0]])
        rhs = np.array([1.0, 1.0])
        buffer = solver.preallocate(body, rhs)

        result = solver.solve(body, rhs, buffer)

        assert result is buffer
        np.testing.assert_allclose(buffer, [0.5, 0.25])

    def test_wrong_rhs_rows_raise(self) -> None:
        with pytest.raises(ValueError, match="Right-hand side"):
            ClosedFormSolver(Kernel.FULL_2X2).solve(np.eye(2), np.ones(3))

    def test_singular_gives_non_finite(self) -> None:
        solution = ClosedFormSolver(Kernel.FULL_2X2).solve(
            np.array([[1.0, 2.0], [2.0, 4.0]]), np.array([1.0, 1.0])
        )

        assert not np.all(np.isfinite(solution))

    def test_least_squares_kernel_rejected(self) -> None:
        with pytest.raises(ValueError, match="LeastSquaresSolver"):
            ClosedFormSolver(Kernel.LEAST_SQUARES)

    def test_satisfies_port(self) -> None:
        assert isinstance(ClosedFormSolver(Kernel.FULL_2X2), SolverTaskPort)
        assert isinstance(LeastSquaresSolver(), SolverTaskPort)


class TestLeastSquaresSolver:
    """Test the normal equations kernel."""

    def test_matches_lstsq(self) -> None:
        rng = np.random.default_rng(11)
        body = rng.standard_normal((8, 3))
        rhs = rng.standard_normal(8)

        solution = LeastSquaresSolver().solve(body, rhs)

        expected = np.linalg.lstsq(body, rhs, rcond=None)[0]
        assert solution.shape == (3,)
        np.testing.assert_allclose(solution, expected, rtol=1e-8, atol=1e-10)

    def test_single_column(self) -> None:
        """One column gives the scalar least squares fit."""
        body = np.array([[1.0], [2.0], [3.0]])
        rhs = np.array([2.0, 4.0, 6.0])

        assert LeastSquaresSolver().solve(body, rhs)[0] == pytest.approx(2.0)

    def test_too_many_columns_raise(self) -> None:
        with pytest.raises(ValueError, match="at most 5 columns"):
            LeastSquaresSolver().solve(np.ones((8, 6)), np.ones(8))

    def test_multiple_rhs_raise(self) -> None:
        with pytest.raises(ValueError, match="single right-hand side"):
            LeastSquaresSolver().solve(np.ones((8, 2)), np.ones((8, 2)))


class TestSolverDispatch:
    """Test make_solver_task selection."""

    def test_small_square_uses_closed_form(self) -> None:
        task = make_solver_task(np.eye(3), np.ones(3), symmetric=True)

        assert isinstance(task, ClosedFormSolver)
        assert task.kernel is Kernel.SYMMETRIC_3X3

    def test_small_tall_uses_least_squares(self) -> None:
        task = make_solver_task(np.ones((8, 3)), np.ones(8))

        assert isinstance(task, LeastSquaresSolver)

    @pytest.mark.parametrize(
        "body,rhs,symmetric,positive_definite,expected",
        [
            ((6, 6), (6, 1), True, True, "cholesky"),
            ((6, 6), (6, 1), False, False, "lu"),
            ((3, 3), (3, 2), False, False, "lu"),
            ((3, 6), (3, 1), False, False, "singular_value"),
            ((8, 6), (8, 1), False, False, "qr"),
            ((8, 3), (8, 2), False, False, "qr"),
        ],
    )
    def test_fallbacks(
        self,
        body: tuple[int, int],
        rhs: tuple[int, int],
        symmetric: bool,
        positive_definite: bool,
        expected: str,
    ) -> None:
        """Everything without a closed-form kernel goes to a decomposition."""
        factory = RecordingFactory()

        make_solver_task(
            body,
            rhs,
            symmetric=symmetric,
            positive_definite=positive_definite,
            decompositions=factory,
        )

        assert factory.requested == [expected]

    @pytest.mark.parametrize("dim", [2, 10])
    def test_solve(self, dim: int) -> None:
        """The convenience function works either side of the closed-form limit."""
        body = random_matrix(dim, seed=dim)
        rhs = np.linspace(-1.0, 1.0, dim)

        np.testing.assert_allclose(
            np.ravel(solve(body, rhs)), np.linalg.solve(body, rhs), rtol=1e-9, atol=1e-12
        )

    def test_solve_fat_is_minimum_norm(self) -> None:
        body = np.array([[1.0, 1.0, 0.0], [0.0, 1.0, 1.0]])
        rhs = np.array([1.0, 1.0])

        np.testing.assert_allclose(solve(body, rhs), np.linalg.pinv(body) @ rhs, atol=1e-12)
