"""
Tests for Local Expansions

Covers initialization, coefficient accumulation, field evaluation and
debug printing of Taylor-series local expansions.
"""

import io

import pytest
import numpy as np

from seriesfmm.core.config import ExpansionConfig
from seriesfmm.core.expansion import LocalExpansion
from seriesfmm.core.series_aux import SeriesExpansionAux
from seriesfmm.kernels import GaussianKernel


@pytest.fixture
def sea():
    return SeriesExpansionAux(max_order=6, dimension=2)


@pytest.fixture
def sources():
    """Weighted sources clustered around (0, 0)."""
    rng = np.random.default_rng(7)
    data = 0.4 * (rng.random((25, 2)) - 0.5)
    weights = rng.random(25)
    return data, weights


class TestInitialization:
    """Test the two initialization modes."""

    def test_with_center(self, sea):
        local = LocalExpansion(1.0, sea, center=[1.0, -2.0])

        np.testing.assert_array_equal(local.center, [1.0, -2.0])
        assert local.order == 0
        assert local.max_order == 6
        assert local.bandwidth_sq == pytest.approx(1.0)
        assert len(local.coeffs) == sea.max_total_num_coeffs
        assert not np.any(local.coeffs)

    def test_without_center(self, sea):
        """Test the center defaults to the zero vector and can be set later."""
        local = LocalExpansion(0.5, sea)

        np.testing.assert_array_equal(local.center, [0.0, 0.0])
        assert local.order == 0
        assert not np.any(local.coeffs)

        local.center = np.array([0.3, 0.3])
        np.testing.assert_array_equal(local.center, [0.3, 0.3])

    def test_center_is_copied(self, sea):
        center = np.array([1.0, 1.0])
        local = LocalExpansion(1.0, sea, center=center)
        center[0] = 5.0
        assert local.center[0] == 1.0

    def test_center_assignment_checked(self, sea):
        """Test a center set after construction must match the table dimension."""
        local = LocalExpansion(1.0, sea)

        with pytest.raises(ValueError):
            local.center = np.array([5.0])
        with pytest.raises(ValueError):
            local.center = [0.0, 0.0, 0.0]
        np.testing.assert_array_equal(local.center, [0.0, 0.0])

    def test_missing_table(self):
        with pytest.raises(ValueError):
            LocalExpansion(1.0, None, center=[0.0, 0.0])

    def test_dimension_mismatch(self, sea):
        with pytest.raises(ValueError):
            LocalExpansion(1.0, sea, center=[0.0, 0.0, 0.0])


class TestOrderGrowth:
    """Test that the truncation order never decreases."""

    def test_grow_order(self, sea):
        local = LocalExpansion(1.0, sea)

        local.grow_order(3)
        assert local.order == 3
        local.grow_order(1)
        assert local.order == 3

    def test_grow_order_range(self, sea):
        local = LocalExpansion(1.0, sea)

        with pytest.raises(ValueError):
            local.grow_order(7)
        with pytest.raises(ValueError):
            local.grow_order(-1)

    def test_accumulate_sequence(self, sea, sources):
        """Test order is non-decreasing across accumulations of mixed order."""
        data, weights = sources
        local = LocalExpansion(1.0, sea, center=[1.0, 0.5])

        orders = []
        for requested in [2, 5, 1, 3, 6, 0]:
            local.accumulate_coeffs(data, weights, 0, len(data), requested)
            orders.append(local.order)

        assert orders == [2, 5, 5, 5, 6, 6]

    def test_zero_resets(self, sea, sources):
        data, weights = sources
        local = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        local.accumulate_coeffs(data, weights, 0, len(data), 4)

        local.zero()

        assert local.order == 0
        assert not np.any(local.coeffs)


class TestAccumulation:
    """Test accumulation of point contributions."""

    def test_single_point_at_center(self):
        """Test a unit point at the center in 1D, order 2.

        The zero-order term is h_0(0) times the zero-order constant (1), and
        the odd terms vanish with the displacement. The even term is the
        Taylor coefficient of exp(-t^2), which is -1.
        """
        sea = SeriesExpansionAux(max_order=4, dimension=1)
        local = LocalExpansion(1.0, sea, center=[0.25])

        local.accumulate_coeffs(np.array([[0.25]]), np.array([1.0]), 0, 1, 2)

        assert local.coeffs[0] == pytest.approx(1.0)
        assert local.coeffs[1] == pytest.approx(0.0, abs=1e-15)
        assert local.coeffs[2] == pytest.approx(-1.0)
        assert not np.any(local.coeffs[3:])

    def test_permutation_invariance(self, sea, sources):
        """Test accumulation does not depend on point order."""
        data, weights = sources
        perm = np.random.default_rng(11).permutation(len(data))

        local_a = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        local_b = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        local_a.accumulate_coeffs(data, weights, 0, len(data), 5)
        local_b.accumulate_coeffs(data[perm], weights[perm], 0, len(data), 5)

        np.testing.assert_allclose(local_a.coeffs, local_b.coeffs, rtol=1e-12, atol=1e-14)

    def test_range_split(self, sea, sources):
        """Test accumulating [0, k) then [k, n) equals accumulating [0, n)."""
        data, weights = sources
        whole = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        split = LocalExpansion(1.0, sea, center=[1.0, 0.5])

        whole.accumulate_coeffs(data, weights, 0, len(data), 4)
        split.accumulate_coeffs(data, weights, 0, 10, 4)
        split.accumulate_coeffs(data, weights, 10, len(data), 4)

        np.testing.assert_allclose(split.coeffs, whole.coeffs, rtol=1e-12, atol=1e-14)

    def test_empty_range(self, sea, sources):
        data, weights = sources
        local = LocalExpansion(1.0, sea, center=[1.0, 0.5])

        local.accumulate_coeffs(data, weights, 4, 4, 3)

        assert local.order == 3
        assert not np.any(local.coeffs)

    def test_invalid_range(self, sea, sources):
        data, weights = sources
        local = LocalExpansion(1.0, sea)

        with pytest.raises(ValueError):
            local.accumulate_coeffs(data, weights, 5, 2, 3)
        with pytest.raises(ValueError):
            local.accumulate_coeffs(data, weights, 0, len(data) + 1, 3)
        with pytest.raises(ValueError):
            local.accumulate_coeffs(data[:, :1], weights, 0, 3, 3)
        with pytest.raises(ValueError):
            local.accumulate_coeffs(data, 1.0, 0, 3, 3)
        with pytest.raises(ValueError):
            local.accumulate_coeffs(data, np.ones((len(data), 1)), 0, 3, 3)


class TestEvaluation:
    """Test field evaluation."""

    def test_order_zero_constant(self, sea, sources):
        """Test an order-0 expansion evaluates to its constant everywhere."""
        data, weights = sources
        local = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        local.accumulate_coeffs(data, weights, 0, len(data), 0)

        assert local.evaluate_field(x_q=local.center) == pytest.approx(local.coeffs[0])
        for point in [[0.0, 0.0], [3.0, -2.0], [1.1, 0.4]]:
            assert local.evaluate_field(x_q=np.array(point)) == pytest.approx(local.coeffs[0])

    def test_matches_direct_sum(self, sea, sources):
        """Test the local expansion against the exhaustive sum near its center."""
        data, weights = sources
        center = np.array([1.0, 0.5])
        local = LocalExpansion(1.0, sea, center=center)
        local.accumulate_coeffs(data, weights, 0, len(data), 6)
        kernel = GaussianKernel(1.0)

        for offset in [[0.0, 0.0], [0.1, -0.1], [-0.15, 0.05]]:
            x_q = center + np.array(offset)
            expected = kernel.direct_sum(data, weights, x_q)
            assert local.evaluate_field(x_q=x_q) == pytest.approx(expected, rel=1e-6)

    def test_error_decreases_with_order(self, sources):
        sea = SeriesExpansionAux(max_order=8, dimension=2)
        data, weights = sources
        center = np.array([1.0, 0.5])
        x_q = center + np.array([0.2, 0.2])
        expected = GaussianKernel(1.0).direct_sum(data, weights, x_q)

        errors = []
        for order in [1, 3, 5, 7]:
            local = LocalExpansion(1.0, sea, center=center)
            local.accumulate_coeffs(data, weights, 0, len(data), order)
            errors.append(abs(local.evaluate_field(x_q=x_q) - expected))

        assert errors == sorted(errors, reverse=True)

    def test_data_row_equals_point(self, sea, sources):
        """Test (data, row_num) and x_q select the same query."""
        data, weights = sources
        local = LocalExpansion(1.0, sea, center=[1.0, 0.5])
        local.accumulate_coeffs(data, weights, 0, len(data), 4)
        queries = np.array([[0.9, 0.4], [1.2, 0.6]])

        for row in range(len(queries)):
            assert (local.evaluate_field(data=queries, row_num=row) ==
                    pytest.approx(local.evaluate_field(x_q=queries[row])))

        np.testing.assert_allclose(
            local.evaluate(queries),
            [local.evaluate_field(x_q=q) for q in queries],
        )

    def test_query_arguments(self, sea):
        """Test exactly one query form must be supplied."""
        local = LocalExpansion(1.0, sea)
        queries = np.zeros((2, 2))

        with pytest.raises(ValueError):
            local.evaluate_field()
        with pytest.raises(ValueError):
            local.evaluate_field(data=queries, row_num=0, x_q=np.zeros(2))
        with pytest.raises(ValueError):
            local.evaluate_field(data=queries)
        with pytest.raises(ValueError):
            local.evaluate_field(x_q=np.zeros(3))

    def test_query_row_checked(self, sea):
        """Test a row outside data or a row without data is rejected."""
        local = LocalExpansion(1.0, sea)
        queries = np.zeros((2, 2))

        with pytest.raises(ValueError):
            local.evaluate_field(data=queries, row_num=2)
        with pytest.raises(ValueError):
            local.evaluate_field(data=queries, row_num=-1)
        with pytest.raises(ValueError):
            local.evaluate_field(row_num=0, x_q=np.zeros(2))


class TestPrintDebug:
    """Test the textual dump."""

    def test_print_debug(self):
        sea = SeriesExpansionAux(max_order=2, dimension=2)
        local = LocalExpansion(1.0, sea, center=[1.0, 2.0])
        local.accumulate_coeffs(np.array([[1.5, 2.0]]), np.array([1.0]), 0, 1, 1)
        stream = io.StringIO()

        local.print_debug("node", stream)

        text = stream.getvalue()
        assert "----- SERIESEXPANSION node ------" in text
        assert "Local expansion" in text
        assert "Center: 1 2" in text
        assert "f(x_q0,x_q1)" in text
        assert "(x_q0 - (1))^1 (x_q1 - (2))^0" in text
        # order 1 in 2D has three terms
        assert text.count(" + ") == 2


class TestConfig:
    """Test expansion configuration."""

    def test_defaults_build_expansions(self):
        config = ExpansionConfig(dimension=3, max_order=4, bandwidth=0.5)
        sea = config.build_aux()

        local = config.local_expansion(sea, center=[0.0, 1.0, 2.0])
        far = config.far_field_expansion(sea)

        assert sea.dimension == 3
        assert sea.max_order == 4
        assert local.bandwidth_sq == pytest.approx(0.25)
        assert far.center.shape == (3,)
        assert config.build_kernel().bandwidth == 0.5

    @pytest.mark.parametrize("kwargs", [
        {"dimension": 0},
        {"max_order": -1},
        {"bandwidth": 0.0},
        {"kernel": "unknown"},
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            ExpansionConfig(**kwargs)
