"""Unit tests for inverter kernels and dispatch."""

import numpy as np
import pytest

from equilibria.adapters.decomposition_adapter import LUTask
from equilibria.core.linalg.inverter import ClosedFormInverter, invert, make_inverter_task
from equilibria.core.linalg.kernels import Kernel
from equilibria.core.ports.linalg_port import InverterTaskPort


def random_matrix(dim: int, seed: int = 3) -> np.ndarray:
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


class TestClosedFormInverter:
    """Test closed-form inverse kernels."""

    @pytest.mark.parametrize("dim", [1, 2, 3, 4, 5])
    def test_general(self, dim: int) -> None:
        """General kernels should match numpy."""
        matrix = random_matrix(dim, seed=dim)
        inverse = ClosedFormInverter(Kernel.of(dim)).invert(matrix)

        np.testing.assert_allclose(inverse, np.linalg.inv(matrix), rtol=1e-9, atol=1e-12)

    @pytest.mark.parametrize("dim", [2, 3, 4, 5])
    def test_symmetric(self, dim: int) -> None:
        """Symmetric kernels only read the upper triangle."""
        base = random_matrix(dim, seed=20 + dim)
        symmetric = base + base.T
        corrupted = symmetric.copy()
        corrupted[np.tril_indices(dim, -1)] = -5.0

        inverse = ClosedFormInverter(Kernel.of(dim, symmetric=True)).invert(corrupted)

        np.testing.assert_allclose(inverse, np.linalg.inv(symmetric), rtol=1e-9, atol=1e-12)

    def test_identity(self) -> None:
        inverse = ClosedFormInverter(Kernel.FULL_3X3).invert(np.eye(3))

        np.testing.assert_allclose(inverse, np.eye(3))

    def test_singular_gives_non_finite(self) -> None:
        """Singular input yields inf/nan entries instead of raising."""
        inverse = ClosedFormInverter(Kernel.FULL_2X2).invert(np.array([[1.0, 2.0], [2.0, 4.0]]))

        assert not np.all(np.isfinite(inverse))

    def test_preallocated_buffer_is_reused(self) -> None:
        inverter = ClosedFormInverter(Kernel.FULL_2X2)
        buffer = inverter.preallocate(np.eye(2))

        result = inverter.invert(np.array([[2.0, 0.0], [0.0, 4.0]]), buffer)

        assert result is buffer
        np.testing.assert_allclose(buffer, [[0.5, 0.0], [0.0, 0.25]])

    def test_wrong_buffer_raises(self) -> None:
        with pytest.raises(ValueError, match="Preallocated"):
            ClosedFormInverter(Kernel.FULL_2X2).invert(np.eye(2), np.zeros((3, 3)))

    def test_wrong_matrix_shape_raises(self) -> None:
        with pytest.raises(ValueError, match="Expected a 2x2"):
            ClosedFormInverter(Kernel.FULL_2X2).invert(np.eye(3))

    def test_satisfies_port(self) -> None:
        assert isinstance(ClosedFormInverter(Kernel.FULL_2X2), InverterTaskPort)


class TestInverterDispatch:
    """Test make_inverter_task selection."""

    def test_small_square_uses_closed_form(self) -> None:
        task = make_inverter_task(np.eye(5), symmetric=True)

        assert isinstance(task, ClosedFormInverter)
        assert task.kernel is Kernel.SYMMETRIC_5X5

    @pytest.mark.parametrize(
        "shape,symmetric,positive_definite,expected",
        [
            ((6, 6), True, True, "cholesky"),
            ((6, 6), True, False, "lu"),
            ((6, 6), False, True, "lu"),
            ((8, 3), False, False, "qr"),
            ((3, 8), False, False, "singular_value"),
            ((3, 2), False, False, "qr"),
        ],
    )
    def test_fallbacks(
        self,
        shape: tuple[int, int],
        symmetric: bool,
        positive_definite: bool,
        expected: str,
    ) -> None:
        """Everything without a closed-form kernel goes to a decomposition."""
        factory = RecordingFactory()

        make_inverter_task(
            shape,
            symmetric=symmetric,
            positive_definite=positive_definite,
            decompositions=factory,
        )

        assert factory.requested == [expected]

    @pytest.mark.parametrize("dim", [4, 9])
    def test_invert(self, dim: int) -> None:
        """The convenience function works either side of the closed-form limit."""
        matrix = random_matrix(dim, seed=dim)

        np.testing.assert_allclose(invert(matrix), np.linalg.inv(matrix), rtol=1e-9, atol=1e-12)

    def test_invert_tall_is_pseudo_inverse(self) -> None:
        rng = np.random.default_rng(0)
        matrix = rng.standard_normal((7, 3))

        np.testing.assert_allclose(invert(matrix), np.linalg.pinv(matrix), atol=1e-10)
