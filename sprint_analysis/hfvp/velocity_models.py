"""Acceleration estimates from step speeds."""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Type

import numpy as np

from sprint_analysis.errors import RegressionError


class VelocityModel(ABC):
    """
    Strategy turning a series of step speeds into accelerations.

    Each model also carries the empirical contact-angle bounds used to
    split the ground reaction force: the angle moves linearly from
    angle_start_deg at rest to angle_end_deg at peak velocity.
    """

    name = ""
    default_angle_start_deg = 60.0
    default_angle_end_deg = 45.0

    def __init__(
        self,
        angle_start_deg: Optional[float] = None,
        angle_end_deg: Optional[float] = None,
    ):
        """
        Initialize the model.

        Args:
            angle_start_deg: Contact angle at zero velocity.
            angle_end_deg: Contact angle at the observed peak velocity.
        """
        self.angle_start_deg = (
            self.default_angle_start_deg if angle_start_deg is None else angle_start_deg
        )
        self.angle_end_deg = (
            self.default_angle_end_deg if angle_end_deg is None else angle_end_deg
        )

    @abstractmethod
    def accelerations(
        self,
        velocities: Sequence[float],
        durations: Sequence[float],
        strides: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        """
        Acceleration of each step.

        Args:
            velocities: Step speeds (m/s).
            durations: Step times, contact plus flight (s).
            strides: Step lengths (m), used by some models.

        Returns:
            Accelerations (m/s^2), one per step.
        """
        pass

    def contact_angle(self, velocity: float, peak_velocity: float) -> float:
        """Contact angle in degrees from the vertical for a velocity."""
        fraction = np.clip(velocity / peak_velocity, 0.0, 1.0) if peak_velocity > 0 else 0.0
        return float(self.angle_start_deg + (self.angle_end_deg - self.angle_start_deg) * fraction)

    @staticmethod
    def _validate(velocities: Sequence[float], durations: Sequence[float]) -> None:
        if len(velocities) != len(durations):
            raise RegressionError("Velocities and durations differ in length")
        if len(velocities) < 2:
            raise RegressionError("At least two steps are needed to estimate acceleration")
        if np.any(np.asarray(durations, dtype=float) <= 0):
            raise RegressionError("Step durations must be positive")


class FiniteDifferenceVelocityModel(VelocityModel):
    """
    Central differences of speed over step-midpoint times.

    Interior steps use their two neighbours; the first and last steps use
    one-sided differences.
    """

    name = "finite_difference"
    default_angle_start_deg = 60.0
    default_angle_end_deg = 45.0

    def accelerations(self, velocities, durations, strides=None) -> np.ndarray:
        self._validate(velocities, durations)
        v = np.asarray(velocities, dtype=float)
        d = np.asarray(durations, dtype=float)
        times = np.cumsum(d) - d / 2

        a = np.empty_like(v)
        a[0] = (v[1] - v[0]) / (times[1] - times[0])
        a[-1] = (v[-1] - v[-2]) / (times[-1] - times[-2])
        if len(v) > 2:
            a[1:-1] = (v[2:] - v[:-2]) / (times[2:] - times[:-2])
        return a


class ConstantAccelerationVelocityModel(VelocityModel):
    """
    Equal acceleration across each pair of adjacent steps.

    a_i = 2 (v_i - v_(i-1)) / (T_i + T_(i-1)). The first step either
    copies the second step's estimate or, for runs filmed from the start
    line, assumes acceleration from rest (a = 2 d / T^2).
    """

    name = "constant_acceleration"
    default_angle_start_deg = 65.0
    default_angle_end_deg = 48.0

    def __init__(
        self,
        angle_start_deg: Optional[float] = None,
        angle_end_deg: Optional[float] = None,
        first_step: str = "forward",
    ):
        super().__init__(angle_start_deg, angle_end_deg)
        if first_step not in ("forward", "from_rest"):
            raise ValueError(f"Unknown first step model: {first_step}")
        self.first_step = first_step

    def accelerations(self, velocities, durations, strides=None) -> np.ndarray:
        self._validate(velocities, durations)
        v = np.asarray(velocities, dtype=float)
        d = np.asarray(durations, dtype=float)

        a = np.empty_like(v)
        a[1:] = 2 * (v[1:] - v[:-1]) / (d[1:] + d[:-1])

        if self.first_step == "from_rest":
            if strides is None:
                raise RegressionError("Acceleration from rest needs step lengths")
            a[0] = 2 * strides[0] / d[0] ** 2
        else:
            a[0] = a[1]
        return a


VELOCITY_MODELS: Dict[str, Type[VelocityModel]] = {
    FiniteDifferenceVelocityModel.name: FiniteDifferenceVelocityModel,
    ConstantAccelerationVelocityModel.name: ConstantAccelerationVelocityModel,
}


def get_velocity_model(name: str, **kwargs) -> VelocityModel:
    """Instantiate a velocity model by name."""
    if name not in VELOCITY_MODELS:
        raise ValueError(f"Unknown velocity model: {name}")
    return VELOCITY_MODELS[name](**kwargs)
