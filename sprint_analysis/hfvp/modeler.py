"""Horizontal force-velocity-power profile from merged sprint steps."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from sprint_analysis.errors import RegressionError
from sprint_analysis.hfvp.regression import RegressionMethod, fit_line
from sprint_analysis.hfvp.velocity_models import VelocityModel, get_velocity_model
from sprint_analysis.models import AthleteProfile, MergedStep
from sprint_analysis.utils.logging_config import LoggerMixin

AIR_DENSITY = 1.225
DRAG_COEFFICIENT = 0.9
FRONTAL_AREA_COEFFICIENT = 0.16


class QualityLevel(Enum):
    """Ordinal quality of a fitted profile."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass
class HFVPConfig:
    """
    Configuration for the F-V-P modeler.

    Attributes:
        velocity_model: "finite_difference" or "constant_acceleration".
        angle_start_deg: Contact angle at rest; model default if None.
        angle_end_deg: Contact angle at peak velocity; model default if None.
        first_step: First-step rule of the constant-acceleration model.
        regression: "ols" or "huber".
        include_interpolated: Whether synthesized steps enter the fit.
        min_steps: Fewest valid steps accepted.
        max_mass_kg: Upper bound for body mass.
        max_height_m: Upper bound for height.
        v0_peak_ratio: V0 within this fraction above peak velocity is suspicious.
    """
    velocity_model: str = "finite_difference"
    angle_start_deg: Optional[float] = None
    angle_end_deg: Optional[float] = None
    first_step: str = "forward"
    regression: str = "ols"
    include_interpolated: bool = False
    min_steps: int = 3
    max_mass_kg: float = 200.0
    max_height_m: float = 2.5
    v0_peak_ratio: float = 0.05

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HFVPConfig":
        """Build from a config section, ignoring unknown keys."""
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def build_velocity_model(self) -> VelocityModel:
        """Instantiate the configured velocity model."""
        kwargs: Dict[str, Any] = {
            "angle_start_deg": self.angle_start_deg,
            "angle_end_deg": self.angle_end_deg,
        }
        if self.velocity_model == "constant_acceleration":
            kwargs["first_step"] = self.first_step
        return get_velocity_model(self.velocity_model, **kwargs)


@dataclass(frozen=True)
class HFVPPoint:
    """Force, velocity and power derived for one step."""
    distance: float
    velocity: float
    acceleration: float
    drag_force: float
    horizontal_force: float
    vertical_force: float
    resultant_force: float
    contact_angle: float
    power: float
    force_ratio: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "distance": self.distance,
            "velocity": self.velocity,
            "acceleration": self.acceleration,
            "drag_force": self.drag_force,
            "horizontal_force": self.horizontal_force,
            "vertical_force": self.vertical_force,
            "resultant_force": self.resultant_force,
            "contact_angle": self.contact_angle,
            "power": self.power,
            "force_ratio": self.force_ratio,
        }


@dataclass(frozen=True)
class MechanicalEffectiveness:
    """
    F0 and V0 relative to the balanced optimum sqrt(4 * Pmax).

    Computed on body-mass normalized values (N/kg, m/s, W/kg).

    Attributes:
        optimum: sqrt(4 * Pmax / mass).
        f0_ratio: (F0 / mass) / optimum.
        v0_ratio: V0 / optimum.
        orientation: "force", "velocity" or "balanced".
    """
    optimum: float
    f0_ratio: float
    v0_ratio: float
    orientation: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "optimum": self.optimum,
            "f0_ratio": self.f0_ratio,
            "v0_ratio": self.v0_ratio,
            "orientation": self.orientation,
        }


@dataclass(frozen=True)
class HFVPQuality:
    """Quality grade and warnings of a profile."""
    level: QualityLevel
    sample_count: int
    negative_force_count: int
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "level": self.level.value,
            "sample_count": self.sample_count,
            "negative_force_count": self.negative_force_count,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class HFVPSummary:
    """Derived descriptive values of a profile."""
    f0_relative: float
    pmax_relative: float
    tau: float
    average_force: float
    average_power: float
    peak_velocity: float
    mean_acceleration: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "f0_relative": self.f0_relative,
            "pmax_relative": self.pmax_relative,
            "tau": self.tau,
            "average_force": self.average_force,
            "average_power": self.average_power,
            "peak_velocity": self.peak_velocity,
            "mean_acceleration": self.mean_acceleration,
        }


@dataclass(frozen=True)
class HFVPResult:
    """
    Samozino-style sprint mechanical profile.

    Attributes:
        f0: Theoretical maximum horizontal force at zero velocity (N).
        v0: Theoretical maximum velocity at zero force (m/s).
        pmax: Maximum horizontal power, F0 * V0 / 4 (W).
        rf_max: Force ratio of the slowest sample, the largest of an accelerating run (%).
        drf: RFmax / V0 (% per m/s).
        slope: Slope of the force-velocity line (N per m/s).
        r_squared: Coefficient of determination of the fit.
        points: Per-step samples.
        effectiveness: Comparison with the balanced optimum.
        quality: Grade and warnings.
        summary: Derived descriptive values.
        velocity_model: Name of the acceleration model used.
        regression: Name of the regression method used.
    """
    f0: float
    v0: float
    pmax: float
    rf_max: float
    drf: float
    slope: float
    r_squared: float
    points: Tuple[HFVPPoint, ...]
    effectiveness: MechanicalEffectiveness
    quality: HFVPQuality
    summary: HFVPSummary
    velocity_model: str
    regression: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "f0": self.f0,
            "v0": self.v0,
            "pmax": self.pmax,
            "rf_max": self.rf_max,
            "drf": self.drf,
            "slope": self.slope,
            "r_squared": self.r_squared,
            "points": [p.to_dict() for p in self.points],
            "effectiveness": self.effectiveness.to_dict(),
            "quality": self.quality.to_dict(),
            "summary": self.summary.to_dict(),
            "velocity_model": self.velocity_model,
            "regression": self.regression,
        }


@dataclass(frozen=True)
class HFVPOutcome:
    """
    Result of a modeling attempt.

    Attributes:
        result: The profile, or None when preconditions or validity failed.
        reason: Reason code when result is None ("insufficient_steps",
            "invalid_mass", "invalid_height", "invalid_regression").
        message: Human readable explanation.
    """
    result: Optional[HFVPResult] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether a profile was produced."""
        return self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "result": self.result.to_dict() if self.result else None,
            "reason": self.reason,
            "message": self.message,
        }


def drag_force(velocity: float, height_m: float) -> float:
    """Aerodynamic drag (N) of a runner of the given height."""
    frontal_area = FRONTAL_AREA_COEFFICIENT * height_m ** 2
    return 0.5 * AIR_DENSITY * DRAG_COEFFICIENT * frontal_area * velocity ** 2


class HFVPModeler(LoggerMixin):
    """
    Fits the linear horizontal force-velocity relationship of a sprint.

    Data problems never raise out of model(); they come back as an
    HFVPOutcome without a result and with a reason code.
    """

    def __init__(self, config: Optional[HFVPConfig] = None):
        """
        Initialize the modeler.

        Args:
            config: Modeler configuration. Uses defaults if not provided.
        """
        self.config = config or HFVPConfig()
        self.velocity_model = self.config.build_velocity_model()
        self.regression = RegressionMethod(self.config.regression)

    def model(
        self,
        steps: Sequence[MergedStep],
        athlete: AthleteProfile,
    ) -> HFVPOutcome:
        """
        Build the profile of a merged run.

        Args:
            steps: Merged, globally indexed steps.
            athlete: Body mass and height.

        Returns:
            HFVPOutcome carrying the result or a reason code.
        """
        try:
            result = self.fit(steps, athlete.mass_kg, athlete.height_m)
        except RegressionError as e:
            self.logger.warning(f"F-V-P profile unavailable ({e.reason}): {e}")
            return HFVPOutcome(reason=e.reason, message=str(e))

        self.logger.info(
            f"F-V-P profile: F0={result.f0:.1f} N, V0={result.v0:.2f} m/s, "
            f"Pmax={result.pmax:.0f} W, R2={result.r_squared:.3f} ({result.quality.level.value})"
        )
        return HFVPOutcome(result=result)

    def fit(self, steps: Sequence[MergedStep], mass_kg: float, height_m: float) -> HFVPResult:
        """
        Fit the profile.

        Raises:
            RegressionError: On invalid athlete data, too few steps or a
                physically meaningless fit.
        """
        self._check_athlete(mass_kg, height_m)
        usable = self._usable_steps(steps)

        velocities = np.array([s.speed for s in usable])
        durations = np.array([s.step_time for s in usable])
        strides = np.array([s.stride_length for s in usable])
        accelerations = self.velocity_model.accelerations(velocities, durations, strides)

        points = self._derive_points(usable, velocities, accelerations, mass_kg, height_m)
        forces = np.array([p.horizontal_force for p in points])

        line = fit_line(velocities, forces, self.regression)
        f0 = line.intercept
        v0 = f0 / -line.slope if line.slope < 0 else math.nan
        if not (math.isfinite(f0) and math.isfinite(v0)) or f0 <= 0 or v0 <= 0:
            raise RegressionError(
                f"Force-velocity fit is not physical (F0={f0:.1f} N, slope={line.slope:.2f})",
                reason="invalid_regression",
            )

        pmax = f0 * v0 / 4
        # the force ratio falls with speed, so the slowest sample carries the maximum
        rf_max = min(points, key=lambda p: p.velocity).force_ratio
        peak_velocity = float(velocities.max())

        return HFVPResult(
            f0=f0,
            v0=v0,
            pmax=pmax,
            rf_max=rf_max,
            drf=rf_max / v0,
            slope=line.slope,
            r_squared=line.r_squared,
            points=tuple(points),
            effectiveness=self._effectiveness(f0, v0, pmax, mass_kg),
            quality=self._grade(line.r_squared, forces, v0, peak_velocity),
            summary=HFVPSummary(
                f0_relative=f0 / mass_kg,
                pmax_relative=pmax / mass_kg,
                tau=v0 / (f0 / mass_kg),
                average_force=float(forces.mean()),
                average_power=float(np.mean([p.power for p in points])),
                peak_velocity=peak_velocity,
                mean_acceleration=float((velocities[-1] - velocities[0]) / durations.sum()),
            ),
            velocity_model=self.velocity_model.name,
            regression=self.regression.value,
        )

    def _check_athlete(self, mass_kg: float, height_m: float) -> None:
        if not math.isfinite(mass_kg) or not 0 < mass_kg <= self.config.max_mass_kg:
            raise RegressionError(f"Body mass out of range: {mass_kg} kg", reason="invalid_mass")
        if not math.isfinite(height_m) or not 0 < height_m <= self.config.max_height_m:
            raise RegressionError(f"Height out of range: {height_m} m", reason="invalid_height")

    def _usable_steps(self, steps: Sequence[MergedStep]) -> List[MergedStep]:
        usable = sorted(
            (
                s for s in steps
                if (self.config.include_interpolated or not s.is_interpolated)
                and s.speed > 0 and s.stride_length > 0 and s.step_time > 0
            ),
            key=lambda s: s.global_distance,
        )
        if len(usable) < self.config.min_steps:
            raise RegressionError(
                f"Only {len(usable)} steps with positive speed and stride "
                f"(minimum {self.config.min_steps})",
                reason="insufficient_steps",
            )
        return usable

    def _derive_points(
        self,
        steps: Sequence[MergedStep],
        velocities: np.ndarray,
        accelerations: np.ndarray,
        mass_kg: float,
        height_m: float,
    ) -> List[HFVPPoint]:
        peak_velocity = float(velocities.max())
        points = []
        for step, velocity, acceleration in zip(steps, velocities, accelerations):
            drag = drag_force(velocity, height_m)
            horizontal = mass_kg * acceleration + drag
            angle = self.velocity_model.contact_angle(velocity, peak_velocity)
            # contact angle is measured from the vertical
            vertical = abs(horizontal) / math.tan(math.radians(angle))
            resultant = math.hypot(horizontal, vertical)
            points.append(HFVPPoint(
                distance=step.global_distance,
                velocity=float(velocity),
                acceleration=float(acceleration),
                drag_force=drag,
                horizontal_force=float(horizontal),
                vertical_force=vertical,
                resultant_force=resultant,
                contact_angle=angle,
                power=float(horizontal * velocity),
                force_ratio=float(horizontal / resultant * 100) if resultant > 0 else 0.0,
            ))
        return points

    @staticmethod
    def _effectiveness(f0: float, v0: float, pmax: float, mass_kg: float) -> MechanicalEffectiveness:
        optimum = math.sqrt(4 * pmax / mass_kg)
        f0_ratio = (f0 / mass_kg) / optimum
        v0_ratio = v0 / optimum
        balance = f0_ratio / v0_ratio
        if balance > 1.1:
            orientation = "force"
        elif balance < 0.9:
            orientation = "velocity"
        else:
            orientation = "balanced"
        return MechanicalEffectiveness(
            optimum=optimum,
            f0_ratio=f0_ratio,
            v0_ratio=v0_ratio,
            orientation=orientation,
        )

    def _grade(
        self,
        r_squared: float,
        forces: np.ndarray,
        v0: float,
        peak_velocity: float,
    ) -> HFVPQuality:
        samples = len(forces)
        negatives = int(np.sum(forces < 0))

        warnings = []
        if v0 < peak_velocity:
            warnings.append(
                f"V0 ({v0:.2f} m/s) is below the measured peak velocity ({peak_velocity:.2f} m/s)"
            )
        elif v0 <= peak_velocity * (1 + self.config.v0_peak_ratio):
            warnings.append(
                "V0 close to observed peak velocity; acceleration phase may be incomplete"
            )
        if r_squared < 0.8:
            warnings.append(f"Low force-velocity R2 ({r_squared:.3f})")
        if samples < 5:
            warnings.append(f"Only {samples} samples in the regression")
        if negatives:
            warnings.append(f"{negatives} samples with negative horizontal force (deceleration)")

        if r_squared >= 0.95 and samples >= 8 and negatives == 0:
            level = QualityLevel.EXCELLENT
        elif r_squared >= 0.9 and samples >= 5 and negatives <= 1:
            level = QualityLevel.GOOD
        elif r_squared >= 0.75 and negatives <= max(1, samples // 4):
            level = QualityLevel.FAIR
        else:
            level = QualityLevel.POOR

        return HFVPQuality(
            level=level,
            sample_count=samples,
            negative_force_count=negatives,
            warnings=tuple(warnings),
        )


def format_report(result: HFVPResult) -> str:
    """Plain-text summary of a profile."""
    lines = [
        "H-FVP Analysis Results",
        "======================",
        "",
        f"F0 (maximum force):      {result.f0:.1f} N ({result.summary.f0_relative:.2f} N/kg)",
        f"V0 (maximum velocity):   {result.v0:.2f} m/s",
        f"Pmax (maximum power):    {result.pmax:.1f} W ({result.summary.pmax_relative:.2f} W/kg)",
        f"RFmax:                   {result.rf_max:.1f} %",
        f"DRF:                     {result.drf:.2f} %/(m/s)",
        f"Tau:                     {result.summary.tau:.3f} s",
        f"R2:                      {result.r_squared:.3f}",
        f"Profile orientation:     {result.effectiveness.orientation}",
        f"Quality:                 {result.quality.level.value}",
    ]
    for warning in result.quality.warnings:
        lines.append(f"  - {warning}")
    return "\n".join(lines)
