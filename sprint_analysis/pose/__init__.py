"""Pose input abstraction."""

from sprint_analysis.pose.base import FramePoseSource, KeypointData, PoseResult, PoseSource
from sprint_analysis.pose.landmarks import MEDIAPIPE_LANDMARKS, FootPosition, locate_grounded_foot

__all__ = [
    "PoseSource",
    "FramePoseSource",
    "PoseResult",
    "KeypointData",
    "FootPosition",
    "MEDIAPIPE_LANDMARKS",
    "locate_grounded_foot",
]
