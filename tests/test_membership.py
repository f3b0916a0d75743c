"""
Tests for membership function shapes and the type-2 wrapper.
"""

import numpy as np
import pytest

from t2fis.errors import FISStructureError
from t2fis.membership import (
    MF_TYPES,
    ConstantMF,
    GaussianMF,
    TrapezoidalMF,
    TriangularMF,
    Type2MF,
    make_mf,
)


class TestShapes:
    """Type-1 shapes."""

    def test_triangular_evaluation(self):
        mf = TriangularMF(0.0, 0.5, 1.0)
        out = mf.evaluate(np.array([-0.5, 0.0, 0.25, 0.5, 0.75, 1.0, 1.5]))
        np.testing.assert_allclose(out, [0.0, 0.0, 0.5, 1.0, 0.5, 0.0, 0.0])
        assert mf.representative_value() == 0.5

    def test_triangular_shoulder_keeps_peak(self):
        mf = TriangularMF(0.0, 0.0, 1.0)
        np.testing.assert_allclose(mf.evaluate(np.array([0.0, 0.5])), [1.0, 0.5])

    def test_trapezoidal_evaluation(self):
        mf = TrapezoidalMF(0.0, 0.25, 0.75, 1.0)
        out = mf.evaluate(np.array([0.125, 0.25, 0.5, 0.75, 0.875, 2.0]))
        np.testing.assert_allclose(out, [0.5, 1.0, 1.0, 1.0, 0.5, 0.0])
        assert mf.representative_value() == pytest.approx(0.5)

    def test_gaussian_evaluation(self):
        mf = GaussianMF(0.5, 0.1)
        out = mf.evaluate(np.array([0.5, 0.6]))
        np.testing.assert_allclose(out, [1.0, np.exp(-0.5)])
        assert mf.peak() == 0.5

    def test_constant(self):
        mf = ConstantMF(0.7)
        np.testing.assert_allclose(mf.evaluate(np.array([0.7, 0.2])), [1.0, 0.0])
        assert mf.representative_value() == 0.7

    def test_with_params_repairs_shapes(self):
        tri = TriangularMF(0.0, 0.5, 1.0).with_params([1.0, 0.0, 0.5])
        assert tri.params == (0.0, 0.5, 1.0)
        gauss = GaussianMF(0.5, 0.1).with_params([0.2, -0.3])
        assert gauss.params == (0.2, 0.3)
        assert isinstance(gauss, GaussianMF)

    def test_registry(self):
        assert set(MF_TYPES) == {"triangular", "trapezoidal", "gaussian", "constant"}
        assert make_mf("gaussian", [0.1, 0.2]) == GaussianMF(0.1, 0.2)
        with pytest.raises(ValueError) as exc_info:
            make_mf("bell", [1, 2, 3])
        assert "Unknown membership function kind" in str(exc_info.value)


class TestType2MF:
    """Upper shape + lower scale/lag."""

    def test_degenerate_lower_equals_upper(self):
        mf = Type2MF(GaussianMF(0.5, 0.2))
        x = np.linspace(0.0, 1.0, 21)
        upper, lower = mf.evaluate(x)
        np.testing.assert_allclose(lower, upper)
        assert mf.is_type1

    def test_lower_never_exceeds_upper(self):
        mf = Type2MF(TriangularMF(0.1, 0.4, 0.9), lower_scale=0.6, lower_lag=(0.3, 0.5))
        x = np.random.default_rng(0).uniform(-0.5, 1.5, 500)
        upper, lower = mf.evaluate(x)
        assert np.all(lower <= upper + 1e-12)
        assert np.all(lower >= 0.0)
        assert not mf.is_type1

    def test_left_and_right_lag(self):
        mf = Type2MF(GaussianMF(0.5, 0.1), lower_lag=(0.5, 0.0))
        mu = np.exp(-0.5)
        left = mf.evaluate_lower(np.array([0.4]))[0]
        right = mf.evaluate_lower(np.array([0.6]))[0]
        assert left == pytest.approx((mu - 0.5) / 0.5)
        assert right == pytest.approx(mu)

    def test_scale_caps_lower(self):
        mf = Type2MF(GaussianMF(0.5, 0.1), lower_scale=0.4)
        assert mf.evaluate_lower(np.array([0.5]))[0] == pytest.approx(0.4)
        assert mf.evaluate_upper(np.array([0.5]))[0] == pytest.approx(1.0)

    def test_list_lag_is_coerced(self):
        mf = Type2MF(GaussianMF(0.5, 0.1), lower_lag=[0.1, 0.2])
        assert mf.lower_lag == (0.1, 0.2)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"lower_scale": 0.0},
            {"lower_scale": 1.2},
            {"lower_lag": (1.0, 0.0)},
            {"lower_lag": (0.0, -0.1)},
            {"lower_lag": (0.1, 0.1, 0.1)},
        ],
    )
    def test_invalid_modifiers(self, kwargs):
        with pytest.raises(FISStructureError):
            Type2MF(GaussianMF(0.5, 0.1), **kwargs)

    def test_replace_returns_new_instance(self):
        mf = Type2MF(GaussianMF(0.5, 0.1), name="mid")
        changed = mf.replace(lower_scale=0.5)
        assert changed.lower_scale == 0.5
        assert changed.name == "mid"
        assert mf.lower_scale == 1.0
