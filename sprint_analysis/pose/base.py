"""Pose data containers and the pose source interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from sprint_analysis.pose.landmarks import MEDIAPIPE_LANDMARKS

logger = logging.getLogger(__name__)


@dataclass
class KeypointData:
    """
    Data for a single keypoint/landmark.

    Attributes:
        name: Name of the keypoint (e.g., "left_ankle").
        x: X coordinate (normalized 0-1 or pixel value).
        y: Y coordinate (normalized 0-1 or pixel value).
        z: Z coordinate (depth, optional for 2D models).
        confidence: Detection confidence (0-1).
    """
    name: str
    x: float
    y: float
    z: Optional[float] = None
    confidence: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "confidence": self.confidence,
        }

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, z, confidence]."""
        return np.array([
            self.x,
            self.y,
            self.z if self.z is not None else 0.0,
            self.confidence,
        ])


@dataclass
class PoseResult:
    """
    Landmarks of one athlete in a single frame.

    Attributes:
        frame_number: Frame index in the video.
        keypoints: Detected keypoints.
        normalized: Whether coordinates are 0-1 fractions of the frame size.
        is_valid: Whether pose detection was successful.
    """
    frame_number: int
    keypoints: List[KeypointData] = field(default_factory=list)
    normalized: bool = True
    is_valid: bool = True

    @classmethod
    def from_landmark_array(
        cls,
        frame_number: int,
        landmarks: Sequence[Sequence[float]],
        names: Sequence[str] = MEDIAPIPE_LANDMARKS,
        normalized: bool = True,
    ) -> "PoseResult":
        """
        Build from rows of [x, y], [x, y, confidence] or [x, y, z, confidence].

        Rows are matched to names by position.
        """
        array = np.asarray(landmarks, dtype=float)
        if array.ndim != 2 or array.shape[1] not in (2, 3, 4):
            raise ValueError(f"Landmark array must have 2-4 columns, got shape {array.shape}")
        if array.shape[0] > len(names):
            raise ValueError(f"{array.shape[0]} landmarks but only {len(names)} names")

        columns = array.shape[1]
        keypoints = []
        for name, row in zip(names, array):
            keypoints.append(KeypointData(
                name=name,
                x=float(row[0]),
                y=float(row[1]),
                z=float(row[2]) if columns == 4 else None,
                confidence=float(row[-1]) if columns > 2 else 1.0,
            ))

        return cls(frame_number=frame_number, keypoints=keypoints, normalized=normalized)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "frame_number": self.frame_number,
            "keypoints": [kp.to_dict() for kp in self.keypoints],
            "normalized": self.normalized,
            "is_valid": self.is_valid,
        }

    def get_keypoint(self, name: str) -> Optional[KeypointData]:
        """Get a keypoint by name."""
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None

    def get_keypoints_array(self) -> np.ndarray:
        """
        Get all keypoints as a numpy array.

        Returns:
            Array of shape (N, 4) with [x, y, z, confidence] for each keypoint.
        """
        if not self.keypoints:
            return np.array([])
        return np.stack([kp.to_array() for kp in self.keypoints])


class PoseSource(ABC):
    """
    Supplier of per-frame landmarks for one segment's video.

    Implementations wrap whatever pose estimator produced the landmarks;
    the analyzer only ever asks for single frames.
    """

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """Native (width, height) of the video, needed for normalized landmarks."""
        return None

    @abstractmethod
    def pose_at(self, frame: int) -> Optional[PoseResult]:
        """
        Landmarks at a frame.

        Args:
            frame: Frame index.

        Returns:
            PoseResult, or None when no athlete was detected.
        """
        pass


class FramePoseSource(PoseSource):
    """PoseSource backed by precomputed per-frame results."""

    def __init__(
        self,
        poses: Mapping[int, PoseResult],
        frame_size: Optional[Tuple[int, int]] = None,
    ):
        """
        Initialize the pose source.

        Args:
            poses: Pose results keyed by frame index.
            frame_size: Native (width, height) of the video.
        """
        self._poses = dict(poses)
        self._frame_size = frame_size

    @classmethod
    def from_landmark_frames(
        cls,
        frames: Mapping[int, Sequence[Sequence[float]]],
        frame_size: Optional[Tuple[int, int]] = None,
        normalized: bool = True,
    ) -> "FramePoseSource":
        """Build from raw landmark arrays keyed by frame index."""
        poses = {
            int(frame): PoseResult.from_landmark_array(int(frame), landmarks, normalized=normalized)
            for frame, landmarks in frames.items()
        }
        logger.debug(f"Loaded landmarks for {len(poses)} frames")
        return cls(poses, frame_size=frame_size)

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        return self._frame_size

    def pose_at(self, frame: int) -> Optional[PoseResult]:
        pose = self._poses.get(frame)
        if pose is None or not pose.is_valid:
            return None
        return pose

    def __len__(self) -> int:
        return len(self._poses)
