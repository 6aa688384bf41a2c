"""Ground-plane calibration for fixed sprint cameras."""

from sprint_analysis.calibration.calibration import Calibration, ConeClicks, cone_world_points
from sprint_analysis.calibration.homography import Homography, solve_homography

__all__ = [
    "Calibration",
    "ConeClicks",
    "Homography",
    "cone_world_points",
    "solve_homography",
]
