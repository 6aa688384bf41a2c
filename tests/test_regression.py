"""Tests for OLS and Huber line fits."""

import numpy as np
import pytest

from sprint_analysis.errors import RegressionError
from sprint_analysis.hfvp.regression import (
    RegressionMethod,
    fit_line,
    fit_without_outliers,
    huber_fit,
    mad_scale,
    weighted_least_squares,
)

VELOCITIES = np.arange(1.0, 9.0)
FORCES = 600.0 - 60.0 * VELOCITIES


class TestLeastSquares:
    """Ordinary and weighted least squares"""

    def test_exact_line(self):
        fit = weighted_least_squares(VELOCITIES, FORCES)
        assert fit.slope == pytest.approx(-60.0)
        assert fit.intercept == pytest.approx(600.0)
        assert fit.r_squared == pytest.approx(1.0)
        assert np.allclose(fit.residuals, 0.0, atol=1e-9)

    def test_predict(self):
        fit = weighted_least_squares(VELOCITIES, FORCES)
        assert fit.predict([10.0])[0] == pytest.approx(0.0, abs=1e-9)

    def test_zero_weight_ignores_point(self):
        forces = FORCES.copy()
        forces[0] += 500.0
        weights = np.ones_like(forces)
        weights[0] = 0.0
        fit = weighted_least_squares(VELOCITIES, forces, weights)
        assert fit.slope == pytest.approx(-60.0)

    def test_constant_velocity(self):
        with pytest.raises(RegressionError):
            weighted_least_squares([5.0, 5.0, 5.0], [100.0, 110.0, 90.0])

    def test_mismatched_lengths(self):
        with pytest.raises(RegressionError):
            weighted_least_squares([1.0, 2.0], [1.0])

    def test_non_finite_input(self):
        with pytest.raises(RegressionError):
            weighted_least_squares([1.0, 2.0, np.nan], [1.0, 2.0, 3.0])

    def test_default_reason(self):
        with pytest.raises(RegressionError) as excinfo:
            weighted_least_squares([1.0], [1.0])
        assert excinfo.value.reason == "invalid_regression"


class TestRobustFits:
    """Huber IRLS and outlier removal"""

    def test_mad_scale(self):
        assert mad_scale([1.0, -1.0, 2.0, -2.0, 3.0]) == pytest.approx(1.4826 * 2.0)

    def test_huber_exact_line(self):
        fit = huber_fit(VELOCITIES, FORCES)
        assert fit.slope == pytest.approx(-60.0)
        assert fit.intercept == pytest.approx(600.0)

    def test_huber_resists_outlier(self):
        forces = FORCES.copy()
        forces[3] += 200.0
        ols = fit_line(VELOCITIES, forces, RegressionMethod.OLS)
        huber = fit_line(VELOCITIES, forces, RegressionMethod.HUBER)
        assert abs(huber.slope + 60.0) < abs(ols.slope + 60.0)
        assert huber.weights[3] < 1.0

    def test_outlier_removed_and_refit(self):
        forces = FORCES.copy()
        forces[3] += 200.0
        fit, keep, removed = fit_without_outliers(VELOCITIES, forces)

        assert removed == [3]
        assert 3 not in keep
        assert fit.slope == pytest.approx(-60.0)
        assert fit.r_squared == pytest.approx(1.0)

    def test_no_removal_below_four_points(self):
        fit, keep, removed = fit_without_outliers([1.0, 2.0, 3.0], [10.0, 8.0, 30.0])
        assert keep == [0, 1, 2]
        assert removed == []
