"""Loading run definitions and exporting results."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import pandas as pd
import yaml

from sprint_analysis.analysis.segment_analyzer import ContactEvent, SegmentInput
from sprint_analysis.calibration.calibration import Calibration
from sprint_analysis.errors import CalibrationError
from sprint_analysis.hfvp.modeler import HFVPResult
from sprint_analysis.models import (
    AthleteProfile,
    MergedAnalysisResult,
    Run,
    RunSegment,
    SegmentStatus,
)
from sprint_analysis.pose.base import FramePoseSource

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class RunDefinition:
    """
    A run together with the contact data of each segment.

    Attributes:
        run: Run in the setup state.
        inputs: Analyzer input per segment id.
    """
    run: Run
    inputs: Mapping[str, SegmentInput]


def load_run_file(path: PathLike) -> RunDefinition:
    """
    Load a run definition from a YAML or JSON file.

    Args:
        path: Path to a .yaml, .yml or .json file.

    Returns:
        RunDefinition.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Run file not found: {path}")

    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    logger.info(f"Loaded run definition from {path}")
    return parse_run_definition(data or {})


def parse_run_definition(data: Dict[str, Any]) -> RunDefinition:
    """
    Build a run definition from parsed data.

    Calibration marker distances default to the segment's start and end.
    A calibration that cannot be solved is logged and left out, so the
    segment fails analysis with a missing-calibration error.
    """
    run_data = data.get("run") or {}
    if "segments" not in data or not data["segments"]:
        raise ValueError("Run definition has no segments")

    athlete = None
    if run_data.get("athlete"):
        athlete_data = run_data["athlete"]
        athlete = AthleteProfile(
            mass_kg=float(athlete_data["mass_kg"]),
            height_m=float(athlete_data["height_m"]),
            name=athlete_data.get("name"),
        )

    segments = []
    inputs: Dict[str, SegmentInput] = {}
    for i, seg_data in enumerate(data["segments"]):
        segment = _parse_segment(seg_data, default_id=f"seg{i + 1}")
        segments.append(segment)
        inputs[segment.id] = SegmentInput(
            segment=segment,
            contacts=tuple(_parse_contact(c) for c in seg_data.get("contacts", [])),
            pose_source=_parse_landmarks(seg_data, segment),
        )

    total_distance = run_data.get("total_distance")
    if total_distance is None:
        total_distance = max(s.end_distance for s in segments)

    run = Run(
        id=str(run_data.get("id", "run")),
        total_distance=float(total_distance),
        segments=tuple(segments),
        athlete=athlete,
    )
    return RunDefinition(run=run, inputs=inputs)


def _parse_segment(data: Dict[str, Any], default_id: str) -> RunSegment:
    segment_id = str(data.get("id", default_id))
    start = float(data["start_distance"])
    end = float(data["end_distance"])

    calibration = None
    if data.get("calibration"):
        cal_data = dict(data["calibration"])
        cal_data.setdefault("x0", start)
        cal_data.setdefault("x1", end)
        try:
            calibration = Calibration.from_dict(cal_data)
        except CalibrationError as e:
            logger.error(f"Segment {segment_id}: calibration rejected: {e}")

    return RunSegment(
        id=segment_id,
        start_distance=start,
        end_distance=end,
        fps=float(data.get("fps", 120.0)),
        calibration=calibration,
        index=data.get("index"),
        status=SegmentStatus.PENDING,
        video_path=data.get("video_path"),
    )


def _parse_contact(data: Dict[str, Any]) -> ContactEvent:
    pixel = data.get("foot_pixel")
    return ContactEvent(
        contact_frame=int(data["contact_frame"]),
        toe_off_frame=int(data["toe_off_frame"]) if data.get("toe_off_frame") is not None else None,
        foot_pixel=(float(pixel[0]), float(pixel[1])) if pixel is not None else None,
        confidence=float(data.get("confidence", 1.0)),
    )


def _parse_landmarks(data: Dict[str, Any], segment: RunSegment) -> Optional[FramePoseSource]:
    landmarks = data.get("landmarks")
    if not landmarks:
        return None
    frame_size = data.get("frame_size")
    if frame_size is None and segment.calibration is not None:
        frame_size = segment.calibration.frame_size
    return FramePoseSource.from_landmark_frames(
        {int(frame): rows for frame, rows in landmarks.items()},
        frame_size=tuple(frame_size) if frame_size else None,
        normalized=bool(data.get("landmarks_normalized", True)),
    )


def steps_dataframe(merged: MergedAnalysisResult) -> pd.DataFrame:
    """Merged steps as a table, one row per step."""
    df = pd.DataFrame([step.to_dict() for step in merged.steps])
    if not df.empty:
        df = df.set_index("global_index")
    return df


def hfvp_points_dataframe(result: HFVPResult) -> pd.DataFrame:
    """Per-step force, velocity and power samples as a table."""
    return pd.DataFrame([point.to_dict() for point in result.points])


def write_steps_csv(merged: MergedAnalysisResult, path: PathLike) -> Path:
    """Write merged steps to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    steps_dataframe(merged).to_csv(path)
    logger.info(f"Wrote {len(merged.steps)} steps to {path}")
    return path


def write_json(data: Dict[str, Any], path: PathLike) -> Path:
    """Write a result dictionary as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Wrote results to {path}")
    return path
