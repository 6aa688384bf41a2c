"""
Shared fixtures for sprint analysis tests.

A synthetic camera with a known projective transform maps ground
positions (relative to the segment start) to pixels, so every test can
build exact cone clicks and foot pixels for any run distance.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest
import yaml

from sprint_analysis.analysis.segment_analyzer import ContactEvent, SegmentInput
from sprint_analysis.calibration.calibration import Calibration, ConeClicks
from sprint_analysis.models import AthleteProfile, MergedStep, Run, RunSegment, Step
from sprint_analysis.pose.base import FramePoseSource
from sprint_analysis.pose.landmarks import MEDIAPIPE_LANDMARKS

# Ground (meters from segment start, meters across lane) -> pixels
CAMERA = np.array([
    [100.0, 20.0, 200.0],
    [5.0, -150.0, 600.0],
    [0.01, 0.02, 1.0],
])

FPS = 100.0
STEP_FRAMES = 45
CONTACT_FRAMES = 10
FOOT_Y = 0.3


def project(local_x: float, y: float) -> Tuple[float, float]:
    """Pixel seen by the synthetic camera for a ground point."""
    u, v, w = CAMERA @ np.array([local_x, y, 1.0])
    return float(u / w), float(v / w)


def make_calibration(
    start: float,
    end: float,
    lane_width: float = 1.22,
    quality: float = 1.0,
) -> Calibration:
    """Calibration of a camera whose cones sit at the segment start and end."""
    clicks = ConeClicks(
        x0_near=project(0.0, 0.0),
        x0_far=project(0.0, lane_width),
        x1_near=project(end - start, 0.0),
        x1_far=project(end - start, lane_width),
    )
    return Calibration.from_cone_clicks(clicks, x0=start, x1=end, lane_width=lane_width, quality=quality)


def make_segment(
    segment_id: str,
    start: float,
    end: float,
    index: Optional[int] = None,
    quality: float = 1.0,
    calibrated: bool = True,
) -> RunSegment:
    return RunSegment(
        id=segment_id,
        start_distance=start,
        end_distance=end,
        fps=FPS,
        calibration=make_calibration(start, end, quality=quality) if calibrated else None,
        index=index,
    )


def make_contacts(
    segment: RunSegment,
    distances: Sequence[float],
    first_frame: int = 0,
) -> Tuple[ContactEvent, ...]:
    """Evenly timed contacts at absolute run distances."""
    contacts = []
    for i, distance in enumerate(distances):
        frame = first_frame + i * STEP_FRAMES
        contacts.append(ContactEvent(
            contact_frame=frame,
            toe_off_frame=frame + CONTACT_FRAMES,
            foot_pixel=project(distance - segment.start_distance, FOOT_Y),
        ))
    return tuple(contacts)


def make_input(segment: RunSegment, distances: Sequence[float]) -> SegmentInput:
    return SegmentInput(segment=segment, contacts=make_contacts(segment, distances))


def landmark_input(
    segment: RunSegment,
    distances: Sequence[float],
    frame_size: Tuple[int, int] = (2000, 1000),
    source_frame_size: Optional[Tuple[int, int]] = None,
) -> SegmentInput:
    """Contacts without foot pixels, backed by normalized landmarks of the left foot."""
    width, height = frame_size
    frames = {}
    contacts = []
    for i, distance in enumerate(distances):
        frame = i * STEP_FRAMES
        px, py = project(distance - segment.start_distance, FOOT_Y)
        rows = [[0.0, 0.0, 0.9] for _ in MEDIAPIPE_LANDMARKS]
        rows[MEDIAPIPE_LANDMARKS.index("left_ankle")] = [px / width, py / height, 0.9]
        rows[MEDIAPIPE_LANDMARKS.index("left_foot_index")] = [px / width, py / height, 0.9]
        frames[frame] = rows
        contacts.append(ContactEvent(contact_frame=frame, toe_off_frame=frame + CONTACT_FRAMES))
    source = FramePoseSource.from_landmark_frames(frames, frame_size=source_frame_size)
    return SegmentInput(segment=segment, contacts=tuple(contacts), pose_source=source)


def make_step(
    index: int,
    local_distance: float,
    stride: float = 1.0,
    step_time: float = 0.45,
    confidence: float = 1.0,
    segment_id: Optional[str] = None,
) -> Step:
    contact_time = 0.1
    return Step(
        index=index,
        contact_frame=index * STEP_FRAMES,
        toe_off_frame=index * STEP_FRAMES + CONTACT_FRAMES,
        next_contact_frame=(index + 1) * STEP_FRAMES,
        contact_time=contact_time,
        flight_time=step_time - contact_time,
        local_distance=local_distance,
        stride_length=stride,
        speed=stride / step_time,
        cadence=60.0 / step_time,
        foot_pixel=(0.0, 0.0),
        confidence=confidence,
        segment_id=segment_id,
    )


def sprint_steps(
    v0: float = 10.0,
    tau: float = 1.2,
    step_time: float = 0.45,
    count: int = 12,
) -> List[MergedStep]:
    """Steps of a mono-exponential sprint x(t) = V0 (t - tau (1 - exp(-t / tau)))."""
    times = np.arange(count + 1) * step_time
    positions = v0 * (times - tau * (1 - np.exp(-times / tau)))
    steps = []
    for i in range(count):
        stride = float(positions[i + 1] - positions[i])
        steps.append(MergedStep(
            global_index=i,
            global_distance=float(positions[i]),
            segment_id="sprint",
            local_index=i,
            contact_time=0.1,
            flight_time=step_time - 0.1,
            stride_length=stride,
            speed=stride / step_time,
            cadence=60.0 / step_time,
        ))
    return steps


@pytest.fixture
def calibration():
    """Calibration of a 0-5 m segment."""
    return make_calibration(0.0, 5.0)


@pytest.fixture
def athlete():
    return AthleteProfile(mass_kg=70.0, height_m=1.8, name="Test Athlete")


@pytest.fixture
def two_segment_run(athlete):
    """Run of 10 m filmed by two cameras covering 0-5 m and 5-10 m."""
    first = make_segment("A", 0.0, 5.0, index=0)
    second = make_segment("B", 5.0, 10.0, index=1)
    run = Run(id="run-1", total_distance=10.0, segments=(first, second), athlete=athlete)
    inputs = {
        "A": make_input(first, [2.0, 3.0, 4.0, 5.0, 6.0]),
        "B": make_input(second, [5.15, 6.15, 7.15, 8.15, 9.15]),
    }
    return run, inputs


def segment_definition(segment_id, start, end, distances, index=None):
    """Run-file entry for one segment with exact cone clicks and foot pixels."""
    lane = 1.22
    local_end = end - start
    return {
        "id": segment_id,
        "index": index,
        "start_distance": start,
        "end_distance": end,
        "fps": 100,
        "calibration": {
            "cone_clicks": {
                "x0_near": list(project(0.0, 0.0)),
                "x0_far": list(project(0.0, lane)),
                "x1_near": list(project(local_end, 0.0)),
                "x1_far": list(project(local_end, lane)),
            },
            "lane_width": lane,
            "quality": 0.9,
        },
        "contacts": [
            {
                "contact_frame": i * STEP_FRAMES,
                "toe_off_frame": i * STEP_FRAMES + CONTACT_FRAMES,
                "foot_pixel": list(project(d - start, FOOT_Y)),
            }
            for i, d in enumerate(distances)
        ],
    }


def run_definition():
    return {
        "run": {
            "id": "trial-1",
            "total_distance": 10.0,
            "athlete": {"mass_kg": 72.5, "height_m": 1.78, "name": "Runner"},
        },
        "segments": [
            segment_definition("A", 0.0, 5.0, [2.0, 3.0, 4.0, 5.0, 6.0], index=0),
            segment_definition("B", 5.0, 10.0, [5.15, 6.15, 7.15, 8.15, 9.15], index=1),
        ],
    }


@pytest.fixture
def run_file(tmp_path):
    """YAML run file of the two-segment run."""
    path = tmp_path / "run.yaml"
    path.write_text(yaml.safe_dump(run_definition()))
    return path
