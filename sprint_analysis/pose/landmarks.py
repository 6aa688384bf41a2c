"""Landmark naming and grounded-foot location."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from sprint_analysis.pose.base import PoseResult

logger = logging.getLogger(__name__)

# MediaPipe Pose 33-point ordering
MEDIAPIPE_LANDMARKS = [
    "nose",
    "left_eye_inner",
    "left_eye",
    "left_eye_outer",
    "right_eye_inner",
    "right_eye",
    "right_eye_outer",
    "left_ear",
    "right_ear",
    "mouth_left",
    "mouth_right",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_pinky",
    "right_pinky",
    "left_index",
    "right_index",
    "left_thumb",
    "right_thumb",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
    "left_heel",
    "right_heel",
    "left_foot_index",
    "right_foot_index",
]

FOOT_LANDMARKS = {
    "left": ("left_ankle", "left_foot_index"),
    "right": ("right_ankle", "right_foot_index"),
}


@dataclass(frozen=True)
class FootPosition:
    """
    Pixel position of the foot in contact with the ground.

    Attributes:
        pixel: (x, y) in native video pixels.
        side: "left" or "right".
        confidence: Lowest confidence of the landmarks used.
    """
    pixel: Tuple[float, float]
    side: str
    confidence: float


def locate_grounded_foot(
    pose: "PoseResult",
    frame_size: Optional[Tuple[int, int]] = None,
    min_confidence: float = 0.3,
) -> Optional[FootPosition]:
    """
    Find the foot touching the ground in a frame.

    The grounded foot is the one lowest in the image. Its x is the
    ankle/toe midpoint and its y the lower of the two landmarks.

    Args:
        pose: Landmarks of the frame.
        frame_size: (width, height), required for normalized landmarks.
        min_confidence: Landmarks below this confidence are ignored.

    Returns:
        FootPosition, or None if neither foot was reliably detected.
    """
    if pose.normalized and frame_size is None:
        raise ValueError("Frame size is required to scale normalized landmarks")
    scale_x, scale_y = frame_size if pose.normalized else (1.0, 1.0)

    candidates: List[FootPosition] = []
    for side, (ankle_name, toe_name) in FOOT_LANDMARKS.items():
        ankle = pose.get_keypoint(ankle_name)
        toe = pose.get_keypoint(toe_name)
        if ankle is None or toe is None:
            continue
        confidence = min(ankle.confidence, toe.confidence)
        if confidence < min_confidence:
            continue
        candidates.append(FootPosition(
            pixel=((ankle.x + toe.x) / 2 * scale_x, max(ankle.y, toe.y) * scale_y),
            side=side,
            confidence=confidence,
        ))

    if not candidates:
        logger.debug(f"No reliable foot landmarks in frame {pose.frame_number}")
        return None

    return max(candidates, key=lambda c: c.pixel[1])
