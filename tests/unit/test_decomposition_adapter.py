"""Unit tests for DecompositionAdapter."""

import numpy as np
import pytest

from equilibria.adapters.decomposition_adapter import (
    CholeskyTask,
    LUTask,
    QRTask,
    ScipyDecompositionFactory,
    SingularValueTask,
    create_decomposition_factory,
)
from equilibria.core.ports.linalg_port import (
    DecompositionFactoryPort,
    DecompositionTaskPort,
    RecoverableConditionError,
)


@pytest.fixture
def spd_matrix() -> np.ndarray:
    """Symmetric positive definite 6x6 matrix."""
    rng = np.random.default_rng(42)
    base = rng.standard_normal((6, 6))
    return base @ base.T + 6.0 * np.eye(6)


class TestFactory:
    """Test the scipy decomposition factory."""

    def test_create(self) -> None:
        factory = create_decomposition_factory()

        assert isinstance(factory, ScipyDecompositionFactory)
        assert isinstance(factory, DecompositionFactoryPort)

    def test_tasks(self) -> None:
        factory = create_decomposition_factory()

        assert isinstance(factory.cholesky(), CholeskyTask)
        assert isinstance(factory.lu(), LUTask)
        assert isinstance(factory.qr(), QRTask)
        assert isinstance(factory.singular_value(), SingularValueTask)
        assert isinstance(factory.lu(), DecompositionTaskPort)


class TestSquareDecompositions:
    """Test Cholesky and LU on square systems."""

    @pytest.mark.parametrize("task_class", [CholeskyTask, LUTask, QRTask, SingularValueTask])
    def test_solve(self, task_class: type, spd_matrix: np.ndarray) -> None:
        rhs = np.arange(6.0)

        solution = task_class().solve(spd_matrix, rhs)

        np.testing.assert_allclose(solution, np.linalg.solve(spd_matrix, rhs), rtol=1e-9)

    @pytest.mark.parametrize("task_class", [CholeskyTask, LUTask, QRTask, SingularValueTask])
    def test_determinant(self, task_class: type, spd_matrix: np.ndarray) -> None:
        result = task_class().calculate_determinant(spd_matrix)

        assert result == pytest.approx(np.linalg.det(spd_matrix), rel=1e-9)

    @pytest.mark.parametrize("task_class", [CholeskyTask, LUTask])
    def test_invert(self, task_class: type, spd_matrix: np.ndarray) -> None:
        inverse = task_class().invert(spd_matrix)

        np.testing.assert_allclose(inverse, np.linalg.inv(spd_matrix), rtol=1e-9, atol=1e-12)

    def test_lu_determinant_sign(self) -> None:
        """Row swaps flip the sign of the LU determinant."""
        matrix = np.array([[0.0, 1.0], [1.0, 0.0]])

        assert LUTask().calculate_determinant(matrix) == pytest.approx(-1.0)

    def test_cholesky_not_positive_definite_raises(self) -> None:
        with pytest.raises(RecoverableConditionError, match="Cholesky"):
            CholeskyTask().solve(np.array([[1.0, 2.0], [2.0, 1.0]]), np.ones(2))

    def test_lu_singular_raises(self) -> None:
        with pytest.raises(RecoverableConditionError, match="singular"):
            LUTask().solve(np.array([[1.0, 2.0], [2.0, 4.0]]), np.ones(2))

    def test_recoverable_condition_is_arithmetic_error(self) -> None:
        """Callers can catch decomposition failures as ArithmeticError."""
        with pytest.raises(ArithmeticError) as info:
            LUTask().invert(np.zeros((3, 3)))

        assert info.value.decomposition == "LU"

    def test_row_mismatch_raises(self, spd_matrix: np.ndarray) -> None:
        with pytest.raises(ValueError, match="Right-hand side"):
            LUTask().solve(spd_matrix, np.ones(5))

    def test_non_square_determinant_raises(self) -> None:
        with pytest.raises(ValueError, match="square"):
            LUTask().calculate_determinant(np.ones((3, 2)))


class TestRectangularDecompositions:
    """Test QR and SVD on tall and fat systems."""

    def test_qr_least_squares(self) -> None:
        rng = np.random.default_rng(1)
        body = rng.standard_normal((9, 4))
        rhs = rng.standard_normal(9)

        solution = QRTask().solve(body, rhs)

        np.testing.assert_allclose(
            solution, np.linalg.lstsq(body, rhs, rcond=None)[0], rtol=1e-9, atol=1e-12
        )

    def test_qr_rank_deficient_raises(self) -> None:
        body = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])

        with pytest.raises(RecoverableConditionError, match="QR"):
            QRTask().solve(body, np.ones(3))

    def test_qr_fat_raises(self) -> None:
        with pytest.raises(ValueError, match="rows >= columns"):
            QRTask().solve(np.ones((2, 3)), np.ones(2))

    def test_svd_minimum_norm(self) -> None:
        body = np.array([[1.0, 2.0, 3.0], [0.0, 1.0, 1.0]])
        rhs = np.array([1.0, 2.0])

        solution = SingularValueTask().solve(body, rhs)

        np.testing.assert_allclose(solution, np.linalg.pinv(body) @ rhs, atol=1e-12)

    def test_svd_multiple_rhs(self) -> None:
        body = np.array([[1.0, 2.0, 3.0], [0.0, 1.0, 1.0]])
        rhs = np.eye(2)

        np.testing.assert_allclose(
            SingularValueTask().solve(body, rhs), np.linalg.pinv(body), atol=1e-12
        )

    def test_svd_zero_matrix_raises(self) -> None:
        with pytest.raises(RecoverableConditionError, match="zero"):
            SingularValueTask().solve(np.zeros((2, 3)), np.ones(2))


class TestPreallocate:
    """Test output buffers."""

    def test_inverse_buffer_is_transposed_shape(self) -> None:
        assert LUTask().preallocate(np.ones((7, 3))).shape == (3, 7)

    def test_solution_buffers(self) -> None:
        task = QRTask()

        assert task.preallocate(np.ones((7, 3)), np.ones(7)).shape == (3,)
        assert task.preallocate(np.ones((7, 3)), np.ones((7, 2))).shape == (3, 2)

    def test_buffer_is_filled(self, spd_matrix: np.ndarray) -> None:
        task = CholeskyTask()
        rhs = np.ones(6)
        buffer = task.preallocate(spd_matrix, rhs)

        result = task.solve(spd_matrix, rhs, buffer)

        assert result is buffer
        np.testing.assert_allclose(spd_matrix @ buffer, rhs)
