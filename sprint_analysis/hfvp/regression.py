"""Straight-line fits used by the force-velocity models."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from sprint_analysis.errors import RegressionError

EPSILON = 1e-12
HUBER_K = 1.345
MAD_TO_SIGMA = 1.4826


class RegressionMethod(Enum):
    """Line fitting strategies."""
    OLS = "ols"
    HUBER = "huber"


@dataclass(frozen=True, eq=False)
class LineFit:
    """
    Result of fitting y = intercept + slope * x.

    Attributes:
        slope: Fitted slope.
        intercept: Fitted intercept.
        r_squared: (Weighted) coefficient of determination.
        residuals: y minus fitted values.
        weights: Final observation weights.
    """
    slope: float
    intercept: float
    r_squared: float
    residuals: np.ndarray
    weights: np.ndarray

    def predict(self, x: Sequence[float]) -> np.ndarray:
        """Fitted values at x."""
        return self.intercept + self.slope * np.asarray(x, dtype=float)


def weighted_least_squares(
    x: Sequence[float],
    y: Sequence[float],
    weights: Optional[Sequence[float]] = None,
) -> LineFit:
    """
    Fit a line by (weighted) least squares.

    Raises:
        RegressionError: On mismatched or too few points, or constant x.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape or x.size < 2:
        raise RegressionError(f"Need at least 2 paired points, got {x.size} and {y.size}")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise RegressionError("Non-finite values in regression input")

    w = np.ones_like(x) if weights is None else np.asarray(weights, dtype=float)

    sw = w.sum()
    sx = (w * x).sum()
    sy = (w * y).sum()
    sxx = (w * x * x).sum()
    sxy = (w * x * y).sum()

    denominator = sw * sxx - sx * sx
    if abs(denominator) < EPSILON:
        raise RegressionError("Velocities are constant; no line can be fitted")

    slope = (sw * sxy - sx * sy) / denominator
    intercept = (sy - slope * sx) / sw
    residuals = y - (intercept + slope * x)

    y_mean = sy / sw
    ss_res = float((w * residuals ** 2).sum())
    ss_tot = float((w * (y - y_mean) ** 2).sum())
    r_squared = 1.0 if ss_tot < EPSILON else 1.0 - ss_res / ss_tot

    return LineFit(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=r_squared,
        residuals=residuals,
        weights=w,
    )


def mad_scale(residuals: Sequence[float]) -> float:
    """Robust standard deviation estimate from the median absolute residual."""
    return MAD_TO_SIGMA * float(np.median(np.abs(residuals)))


def huber_fit(
    x: Sequence[float],
    y: Sequence[float],
    k: float = HUBER_K,
    max_iterations: int = 30,
) -> LineFit:
    """Huber M-estimate of a line by iteratively reweighted least squares."""
    weights = np.ones(len(x))
    previous_slope = None

    for _ in range(max_iterations):
        fit = weighted_least_squares(x, y, weights)
        scale = mad_scale(fit.residuals)
        if scale < 1e-9:
            return fit

        cutoff = k * scale
        magnitude = np.abs(fit.residuals)
        weights = np.where(magnitude <= cutoff, 1.0, cutoff / np.maximum(magnitude, EPSILON))

        if previous_slope is not None and abs(fit.slope - previous_slope) < 1e-10:
            return fit
        previous_slope = fit.slope

    return weighted_least_squares(x, y, weights)


def fit_line(
    x: Sequence[float],
    y: Sequence[float],
    method: RegressionMethod = RegressionMethod.OLS,
) -> LineFit:
    """Fit a line with the chosen method."""
    if method == RegressionMethod.HUBER:
        return huber_fit(x, y)
    return weighted_least_squares(x, y)


def fit_without_outliers(
    x: Sequence[float],
    y: Sequence[float],
    method: RegressionMethod = RegressionMethod.OLS,
    sigma: float = 3.5,
) -> Tuple[LineFit, List[int], List[int]]:
    """
    Fit, drop points whose residual exceeds sigma robust deviations, refit.

    At least three points are always kept; with fewer than four points no
    outlier removal happens.

    Returns:
        (fit, kept indices, removed indices)
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    base = fit_line(x, y, method)
    everything = list(range(len(x)))

    if len(x) < 4:
        return base, everything, []

    scale = mad_scale(base.residuals)
    if scale < 1e-9:
        return base, everything, []

    threshold = sigma * scale
    keep = [i for i in everything if abs(base.residuals[i]) <= threshold]
    removed = [i for i in everything if abs(base.residuals[i]) > threshold]
    if len(keep) < 3:
        return base, everything, []

    return fit_line(x[keep], y[keep], method), keep, removed
