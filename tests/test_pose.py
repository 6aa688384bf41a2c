"""Tests for pose containers and grounded-foot location."""

import numpy as np
import pytest

from sprint_analysis.pose.base import FramePoseSource, PoseResult
from sprint_analysis.pose.landmarks import MEDIAPIPE_LANDMARKS, locate_grounded_foot


def landmark_rows(overrides=None, confidence=0.9):
    """33 [x, y, confidence] rows with selected landmarks overridden."""
    rows = [[0.5, 0.5, confidence] for _ in MEDIAPIPE_LANDMARKS]
    for name, row in (overrides or {}).items():
        rows[MEDIAPIPE_LANDMARKS.index(name)] = row
    return rows


class TestPoseResult:
    """Landmark array parsing"""

    def test_three_columns(self):
        pose = PoseResult.from_landmark_array(7, landmark_rows())
        assert pose.frame_number == 7
        assert len(pose.keypoints) == 33
        ankle = pose.get_keypoint("left_ankle")
        assert ankle.confidence == pytest.approx(0.9)
        assert ankle.z is None

    def test_four_columns(self):
        rows = [[0.1, 0.2, -0.3, 0.8]] * 33
        pose = PoseResult.from_landmark_array(0, rows)
        nose = pose.get_keypoint("nose")
        assert nose.z == pytest.approx(-0.3)
        assert nose.confidence == pytest.approx(0.8)

    def test_two_columns_default_confidence(self):
        pose = PoseResult.from_landmark_array(0, [[0.1, 0.2]] * 33)
        assert pose.get_keypoint("nose").confidence == 1.0

    def test_bad_shape(self):
        with pytest.raises(ValueError):
            PoseResult.from_landmark_array(0, [[0.1]] * 33)

    def test_too_many_rows(self):
        with pytest.raises(ValueError):
            PoseResult.from_landmark_array(0, [[0.1, 0.2]] * 40)

    def test_keypoints_array(self):
        pose = PoseResult.from_landmark_array(0, landmark_rows())
        array = pose.get_keypoints_array()
        assert array.shape == (33, 4)
        assert np.all(array[:, 2] == 0.0)

    def test_unknown_keypoint(self):
        pose = PoseResult.from_landmark_array(0, landmark_rows())
        assert pose.get_keypoint("tail") is None


class TestLocateGroundedFoot:
    """Grounded foot selection"""

    def test_lowest_foot_wins(self):
        rows = landmark_rows({
            "left_ankle": [0.40, 0.80, 0.9],
            "left_foot_index": [0.44, 0.84, 0.9],
            "right_ankle": [0.60, 0.90, 0.9],
            "right_foot_index": [0.64, 0.95, 0.9],
        })
        pose = PoseResult.from_landmark_array(0, rows)
        foot = locate_grounded_foot(pose, frame_size=(1000, 500))

        assert foot.side == "right"
        assert foot.pixel[0] == pytest.approx(620.0)
        assert foot.pixel[1] == pytest.approx(475.0)

    def test_pixel_landmarks_are_not_scaled(self):
        rows = landmark_rows({
            "left_ankle": [300.0, 400.0, 0.9],
            "left_foot_index": [320.0, 410.0, 0.9],
            "right_ankle": [500.0, 100.0, 0.9],
            "right_foot_index": [520.0, 110.0, 0.9],
        })
        pose = PoseResult.from_landmark_array(0, rows, normalized=False)
        foot = locate_grounded_foot(pose)
        assert foot.side == "left"
        assert foot.pixel == pytest.approx((310.0, 410.0))

    def test_low_confidence_foot_ignored(self):
        rows = landmark_rows({
            "left_ankle": [0.40, 0.80, 0.9],
            "left_foot_index": [0.44, 0.84, 0.9],
            "right_ankle": [0.60, 0.90, 0.1],
            "right_foot_index": [0.64, 0.95, 0.9],
        })
        pose = PoseResult.from_landmark_array(0, rows)
        foot = locate_grounded_foot(pose, frame_size=(1000, 500))
        assert foot.side == "left"

    def test_no_reliable_foot(self):
        pose = PoseResult.from_landmark_array(0, landmark_rows(confidence=0.1))
        assert locate_grounded_foot(pose, frame_size=(1000, 500)) is None

    def test_normalized_needs_frame_size(self):
        pose = PoseResult.from_landmark_array(0, landmark_rows())
        with pytest.raises(ValueError):
            locate_grounded_foot(pose)


class TestFramePoseSource:
    """Precomputed pose source"""

    def test_lookup_by_frame(self):
        source = FramePoseSource.from_landmark_frames({10: landmark_rows()}, frame_size=(640, 480))
        assert len(source) == 1
        assert source.frame_size == (640, 480)
        assert source.pose_at(10).frame_number == 10
        assert source.pose_at(11) is None

    def test_invalid_pose_is_skipped(self):
        pose = PoseResult.from_landmark_array(3, landmark_rows())
        pose.is_valid = False
        assert FramePoseSource({3: pose}).pose_at(3) is None
