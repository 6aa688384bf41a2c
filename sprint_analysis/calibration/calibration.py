"""Per-segment ground-plane calibration from four cone clicks."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from sprint_analysis.calibration.homography import (
    ROUND_TRIP_TOLERANCE,
    Homography,
    Point,
)
from sprint_analysis.errors import CalibrationError

logger = logging.getLogger(__name__)

DEFAULT_LANE_WIDTH = 1.22
CLICK_NAMES = ("x0_near", "x0_far", "x1_near", "x1_far")


@dataclass(frozen=True)
class ConeClicks:
    """
    Pixel positions of the four calibration cones.

    Attributes:
        x0_near: Near lane edge at the first marker distance.
        x0_far: Far lane edge at the first marker distance.
        x1_near: Near lane edge at the second marker distance.
        x1_far: Far lane edge at the second marker distance.
    """
    x0_near: Point
    x0_far: Point
    x1_near: Point
    x1_far: Point

    def as_list(self) -> List[Point]:
        """Clicks in x0_near, x0_far, x1_near, x1_far order."""
        return [self.x0_near, self.x0_far, self.x1_near, self.x1_far]

    def to_dict(self) -> Dict[str, List[float]]:
        """Convert to dictionary."""
        return {name: list(point) for name, point in zip(CLICK_NAMES, self.as_list())}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConeClicks":
        """Build from a mapping of click name to [x, y]."""
        missing = [name for name in CLICK_NAMES if name not in data]
        if missing:
            raise CalibrationError(f"Missing cone clicks: {', '.join(missing)}")
        return cls(**{name: (float(data[name][0]), float(data[name][1])) for name in CLICK_NAMES})


def cone_world_points(x0: float, x1: float, lane_width: float) -> List[Point]:
    """World coordinates of the cones: near edge at y=0, far edge at y=lane_width."""
    return [(x0, 0.0), (x0, lane_width), (x1, 0.0), (x1, lane_width)]


@dataclass(frozen=True, eq=False)
class Calibration:
    """
    Ground-plane calibration of one camera segment.

    World x is measured in absolute run meters along the track, world y
    across the lane.

    Attributes:
        cone_clicks: Pixel positions of the four cones.
        x0: Run distance of the first marker pair (m).
        x1: Run distance of the second marker pair (m).
        lane_width: Distance between near and far cones (m).
        homography: Solved pixel-to-world transform.
        frame_size: Native (width, height) of the video, if known.
        quality: Operator or detector confidence in the clicks, 0-1.
    """
    cone_clicks: ConeClicks
    x0: float
    x1: float
    lane_width: float
    homography: Homography
    frame_size: Optional[Tuple[int, int]] = None
    quality: float = 1.0

    @classmethod
    def from_cone_clicks(
        cls,
        cone_clicks: ConeClicks,
        x0: float,
        x1: float,
        lane_width: float = DEFAULT_LANE_WIDTH,
        frame_size: Optional[Tuple[int, int]] = None,
        quality: float = 1.0,
    ) -> "Calibration":
        """
        Solve a calibration from cone clicks and marker distances.

        Raises:
            ValueError: If distances, lane width or quality are out of range.
            CalibrationError: If the clicks form a degenerate configuration.
        """
        if lane_width <= 0:
            raise ValueError(f"Lane width must be positive, got {lane_width}")
        if x1 <= x0:
            raise ValueError(f"Second marker ({x1} m) must lie beyond the first ({x0} m)")
        if not 0.0 <= quality <= 1.0:
            raise ValueError(f"Calibration quality must be within 0-1, got {quality}")

        homography = Homography.from_points(
            cone_clicks.as_list(),
            cone_world_points(x0, x1, lane_width),
        )
        logger.debug(f"Calibrated markers {x0}-{x1} m, lane width {lane_width} m")
        return cls(
            cone_clicks=cone_clicks,
            x0=x0,
            x1=x1,
            lane_width=lane_width,
            homography=homography,
            frame_size=frame_size,
            quality=quality,
        )

    @property
    def world_points(self) -> List[Point]:
        """World coordinates matching the cone clicks."""
        return cone_world_points(self.x0, self.x1, self.lane_width)

    def world_position(self, pixel: Point) -> Point:
        """Project a pixel to (along-track, across-lane) meters."""
        return self.homography.apply(pixel[0], pixel[1])

    def distance_at(self, pixel: Point) -> float:
        """Absolute run distance (m) of a pixel on the ground plane."""
        return self.world_position(pixel)[0]

    def round_trip_error(self) -> float:
        """Largest reprojection error of the cone clicks (m)."""
        return self.homography.round_trip_error(self.cone_clicks.as_list(), self.world_points)

    def is_valid(self) -> bool:
        """Whether the calibration is finite, non-singular and reproduces its cones."""
        if not 0.0 <= self.quality <= 1.0 or not self.homography.is_valid():
            return False
        try:
            error = self.round_trip_error()
        except CalibrationError as e:
            logger.debug(f"Calibration self-check failed: {e}")
            return False
        return bool(np.isfinite(error) and error <= ROUND_TRIP_TOLERANCE)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cone_clicks": self.cone_clicks.to_dict(),
            "x0": self.x0,
            "x1": self.x1,
            "lane_width": self.lane_width,
            "homography": self.homography.to_list(),
            "frame_size": list(self.frame_size) if self.frame_size else None,
            "quality": self.quality,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Calibration":
        """
        Build from a dictionary.

        A stored "homography" matrix is reused as-is; otherwise it is solved
        from the cone clicks.
        """
        clicks = ConeClicks.from_dict(data["cone_clicks"])
        frame_size = tuple(data["frame_size"]) if data.get("frame_size") else None
        lane_width = float(data.get("lane_width", DEFAULT_LANE_WIDTH))
        quality = float(data.get("quality", 1.0))

        if data.get("homography") is not None:
            return cls(
                cone_clicks=clicks,
                x0=float(data["x0"]),
                x1=float(data["x1"]),
                lane_width=lane_width,
                homography=Homography.from_list(data["homography"]),
                frame_size=frame_size,
                quality=quality,
            )

        return cls.from_cone_clicks(
            clicks,
            x0=float(data["x0"]),
            x1=float(data["x1"]),
            lane_width=lane_width,
            frame_size=frame_size,
            quality=quality,
        )
