"""Force-velocity profile from timing-gate split times."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from sprint_analysis.hfvp.modeler import QualityLevel
from sprint_analysis.hfvp.regression import RegressionMethod, fit_line, fit_without_outliers
from sprint_analysis.utils.logging_config import LoggerMixin

SLOPE_EPSILON = 1e-6
V0_PEAK_MARGIN = 0.05


def cumulative(values: Sequence[float]) -> List[float]:
    """[a, b, c] -> [0, a, a+b, a+b+c]; values must be positive."""
    totals = [0.0]
    for value in values:
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"Split values must be positive, got {value}")
        totals.append(totals[-1] + value)
    return totals


@dataclass
class SplitProfileConfig:
    """
    Configuration for the split-time profiler.

    Attributes:
        regression: "ols" or "huber".
        first_section: "from_rest" (a = 2d/t^2) or "speed_over_time" (a = v/t).
        remove_outliers: Whether to drop robust-residual outliers and refit.
        outlier_sigma: Outlier threshold in robust standard deviations.
        min_acceleration: Sections accelerating less are left out of the fit (m/s^2).
        speed_drop_allowance: Tolerated speed drop between sections (m/s).
    """
    regression: str = "huber"
    first_section: str = "from_rest"
    remove_outliers: bool = True
    outlier_sigma: float = 3.5
    min_acceleration: float = 0.2
    speed_drop_allowance: float = 0.10

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SplitProfileConfig":
        """Build from a config section, ignoring unknown keys."""
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class SplitSection:
    """Kinematics and kinetics of one section between two gates."""
    label: str
    start_distance: float
    end_distance: float
    split_time: float
    cumulative_time: float
    speed: float
    acceleration: float
    force: float
    power: float
    force_ratio: float
    excluded: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "label": self.label,
            "start_distance": self.start_distance,
            "end_distance": self.end_distance,
            "split_time": self.split_time,
            "cumulative_time": self.cumulative_time,
            "speed": self.speed,
            "acceleration": self.acceleration,
            "force": self.force,
            "power": self.power,
            "force_ratio": self.force_ratio,
            "excluded": self.excluded,
        }


@dataclass(frozen=True)
class SplitProfile:
    """
    Profile fitted from split times.

    Attributes:
        f0: Maximum horizontal force (N).
        v0: Maximum theoretical velocity (m/s).
        pmax: Maximum power (W).
        tau: Acceleration time constant V0 / (F0 / mass) (s).
        drf: Slope of force ratio against speed (% per m/s).
        peak_velocity: Fastest section speed (m/s).
        fv_r_squared: R2 of the force-velocity fit.
        position_r_squared: R2 of the modeled position curve, if computable.
        sections: Per-section values.
        used_sections: Labels of sections in the fit.
        excluded_sections: Labels of sections left out.
        level: Quality grade.
        warnings: Human readable findings.
        is_physically_valid: F0, V0 and Pmax positive with a negative slope.
    """
    f0: float
    v0: float
    pmax: float
    f0_relative: float
    pmax_relative: float
    tau: float
    drf: float
    peak_velocity: float
    fv_r_squared: float
    position_r_squared: Optional[float]
    sections: Tuple[SplitSection, ...]
    used_sections: Tuple[str, ...]
    excluded_sections: Tuple[str, ...]
    level: QualityLevel
    warnings: Tuple[str, ...]
    is_physically_valid: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "f0": self.f0,
            "v0": self.v0,
            "pmax": self.pmax,
            "f0_relative": self.f0_relative,
            "pmax_relative": self.pmax_relative,
            "tau": self.tau,
            "drf": self.drf,
            "peak_velocity": self.peak_velocity,
            "fv_r_squared": self.fv_r_squared,
            "position_r_squared": self.position_r_squared,
            "sections": [s.to_dict() for s in self.sections],
            "used_sections": list(self.used_sections),
            "excluded_sections": list(self.excluded_sections),
            "level": self.level.value,
            "warnings": list(self.warnings),
            "is_physically_valid": self.is_physically_valid,
        }


class SplitTimeProfiler(LoggerMixin):
    """
    Fits a force-velocity profile to cumulative times at marker distances.

    Only the acceleration phase enters the regression: sections must
    accelerate noticeably, must not slow down beyond a small allowance and
    must not lie past the fastest section.
    """

    def __init__(self, config: Optional[SplitProfileConfig] = None):
        """
        Initialize the profiler.

        Args:
            config: Profiler configuration. Uses defaults if not provided.
        """
        self.config = config or SplitProfileConfig()
        if self.config.first_section not in ("from_rest", "speed_over_time"):
            raise ValueError(f"Unknown first section model: {self.config.first_section}")
        self.regression = RegressionMethod(self.config.regression)

    def profile(
        self,
        distances: Sequence[float],
        times: Sequence[float],
        mass_kg: float,
    ) -> SplitProfile:
        """
        Build the profile.

        Args:
            distances: Marker distances (m), first marker usually 0.
            times: Cumulative times at each marker (s).
            mass_kg: Body mass (kg).

        Returns:
            SplitProfile.

        Raises:
            ValueError: On invalid mass or non-increasing distances/times.
            RegressionError: If no line can be fitted.
        """
        if not math.isfinite(mass_kg) or mass_kg <= 0:
            raise ValueError(f"Body mass must be positive, got {mass_kg}")
        if len(distances) != len(times) or len(distances) < 3:
            raise ValueError("Distances and times must have equal length of at least 3")

        d = np.asarray(distances, dtype=float) - distances[0]
        t = np.asarray(times, dtype=float) - times[0]
        for i in range(1, len(d)):
            if not d[i] > d[i - 1]:
                raise ValueError(f"Distances must increase (index {i})")
            if not t[i] > t[i - 1]:
                raise ValueError(f"Times must increase (index {i})")

        split_distances = np.diff(d)
        split_times = np.diff(t)
        speeds = split_distances / split_times
        accelerations = self._accelerations(split_distances, split_times, speeds)
        forces = mass_kg * accelerations
        labels = [f"{d[i]:.0f}-{d[i + 1]:.0f}m" for i in range(len(speeds))]

        phase = self._acceleration_phase(speeds, accelerations)
        use_phase = len(phase) >= 3
        candidates = phase if use_phase else list(range(len(speeds)))
        excluded_by_phase = [i for i in range(len(speeds)) if i not in candidates]

        fit, keep, removed = self._fit(speeds[candidates], forces[candidates])
        used = [candidates[i] for i in keep]
        removed_global = [candidates[i] for i in removed]
        excluded = sorted(excluded_by_phase + removed_global)

        slope = fit.slope
        f0 = fit.intercept
        v0 = -f0 / slope if slope < 0 else math.nan
        pmax = f0 * v0 / 4 if math.isfinite(v0) else math.nan
        f0_relative = f0 / mass_kg
        tau = v0 / f0_relative if math.isfinite(v0) and f0_relative > 0 else math.nan
        peak_velocity = float(speeds.max())

        valid = (
            slope < 0 and abs(slope) > SLOPE_EPSILON
            and math.isfinite(f0) and f0 > 0
            and math.isfinite(v0) and v0 > 0
            and math.isfinite(pmax) and pmax > 0
        )

        position_r2 = self._position_r_squared(d, t, v0, tau) if valid and tau > 0 else None
        force_ratios = forces / f0 * 100 if abs(f0) > 1e-12 else np.full_like(forces, math.nan)
        drf = fit_line(speeds[used], force_ratios[used], self.regression).slope if len(used) >= 2 else math.nan

        sections = tuple(
            SplitSection(
                label=labels[i],
                start_distance=float(d[i]),
                end_distance=float(d[i + 1]),
                split_time=float(split_times[i]),
                cumulative_time=float(t[i + 1]),
                speed=float(speeds[i]),
                acceleration=float(accelerations[i]),
                force=float(forces[i]),
                power=float(forces[i] * speeds[i]),
                force_ratio=float(force_ratios[i]),
                excluded=i in excluded,
            )
            for i in range(len(speeds))
        )

        warnings = self._warnings(
            use_phase, used, removed, excluded_by_phase, valid, slope, f0, v0, pmax,
            fit.r_squared, position_r2, sections, peak_velocity, drf,
        )
        level = self._grade(valid, fit.r_squared, position_r2, use_phase, len(used), warnings)

        for warning in warnings:
            self.logger.warning(warning)
        self.logger.info(
            f"Split profile: F0={f0:.1f} N, V0={v0:.2f} m/s, R2={fit.r_squared:.3f} ({level.value})"
        )

        return SplitProfile(
            f0=f0,
            v0=v0,
            pmax=pmax,
            f0_relative=f0_relative,
            pmax_relative=pmax / mass_kg,
            tau=tau,
            drf=drf,
            peak_velocity=peak_velocity,
            fv_r_squared=fit.r_squared,
            position_r_squared=position_r2,
            sections=sections,
            used_sections=tuple(labels[i] for i in used),
            excluded_sections=tuple(labels[i] for i in excluded),
            level=level,
            warnings=tuple(warnings),
            is_physically_valid=valid,
        )

    def _accelerations(
        self,
        split_distances: np.ndarray,
        split_times: np.ndarray,
        speeds: np.ndarray,
    ) -> np.ndarray:
        accelerations = np.empty_like(speeds)
        if self.config.first_section == "from_rest":
            accelerations[0] = 2 * split_distances[0] / split_times[0] ** 2
        else:
            accelerations[0] = speeds[0] / split_times[0]
        accelerations[1:] = 2 * (speeds[1:] - speeds[:-1]) / (split_times[1:] + split_times[:-1])
        return accelerations

    def _acceleration_phase(self, speeds: np.ndarray, accelerations: np.ndarray) -> List[int]:
        peak_index = int(np.argmax(speeds))
        phase = []
        for i in range(len(speeds)):
            accelerating = accelerations[i] > self.config.min_acceleration
            if i == 0:
                not_slowing = speeds[i] > 0
            else:
                not_slowing = speeds[i] >= speeds[i - 1] - self.config.speed_drop_allowance
            if accelerating and not_slowing and i <= peak_index:
                phase.append(i)
        return phase

    def _fit(self, speeds: np.ndarray, forces: np.ndarray):
        if self.config.remove_outliers:
            return fit_without_outliers(speeds, forces, self.regression, self.config.outlier_sigma)
        everything = list(range(len(speeds)))
        return fit_line(speeds, forces, self.regression), everything, []

    @staticmethod
    def _position_r_squared(d: np.ndarray, t: np.ndarray, v0: float, tau: float) -> float:
        """R2 of x(t) = V0 (t - tau (1 - exp(-t / tau))) against the markers."""
        actual = d[1:]
        predicted = v0 * (t[1:] - tau * (1 - np.exp(-t[1:] / tau)))
        ss_res = float(np.sum((actual - predicted) ** 2))
        ss_tot = float(np.sum((actual - actual.mean()) ** 2))
        return 1.0 if ss_tot < 1e-12 else max(0.0, 1 - ss_res / ss_tot)

    @staticmethod
    def _warnings(
        use_phase, used, removed, excluded_by_phase, valid, slope, f0, v0, pmax,
        fv_r2, position_r2, sections, peak_velocity, drf,
    ) -> List[str]:
        warnings = []
        if not use_phase:
            warnings.append("Fewer than 3 acceleration-phase sections; all sections were fitted")
        elif len(used) < 4:
            warnings.append(f"Only {len(used)} sections in the regression; estimates are rough")

        if not valid:
            if slope >= 0:
                warnings.append("Force-velocity slope is not negative; V0 cannot be estimated")
            elif abs(slope) <= SLOPE_EPSILON:
                warnings.append(f"Force-velocity slope is nearly flat ({abs(slope):.2e}); V0 diverges")
            if not math.isfinite(f0) or f0 <= 0:
                warnings.append("F0 is not positive")
            if not math.isfinite(v0) or v0 <= 0:
                warnings.append("V0 is not physically valid")
            if not math.isfinite(pmax) or pmax <= 0:
                warnings.append("Pmax is not physically valid")

        if fv_r2 < 0.8:
            warnings.append(f"Low force-velocity R2 ({fv_r2:.3f})")
        if position_r2 is not None and position_r2 < 0.85:
            warnings.append(f"Low position-fit R2 ({position_r2:.3f}); timing noise likely")
        if removed:
            warnings.append(f"{len(removed)} outlier sections removed before refitting")
        if excluded_by_phase:
            warnings.append(
                f"{len(excluded_by_phase)} decelerating or low-acceleration sections left out of the fit"
            )
        if any(s.end_distance >= 30 and s.force < 0 for s in sections):
            warnings.append("Negative force beyond 30 m; deceleration may be included")
        if valid and v0 < peak_velocity - V0_PEAK_MARGIN:
            warnings.append(
                f"V0 ({v0:.2f} m/s) is below the measured peak velocity ({peak_velocity:.2f} m/s)"
            )
        if math.isfinite(drf) and drf >= 0:
            warnings.append("Force ratio does not decrease with speed (DRF >= 0)")
        return warnings

    @staticmethod
    def _grade(valid, fv_r2, position_r2, use_phase, used_count, warnings) -> QualityLevel:
        position_bad = position_r2 is not None and position_r2 < 0.85
        position_weak = position_r2 is not None and position_r2 < 0.92
        if not valid or fv_r2 < 0.8 or position_bad or not use_phase or used_count < 3:
            return QualityLevel.POOR
        if fv_r2 < 0.9 or position_weak or used_count < 4 or warnings:
            return QualityLevel.FAIR
        return QualityLevel.GOOD
