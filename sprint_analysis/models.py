"""Immutable data model for runs, segments and steps."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sprint_analysis.calibration.calibration import Calibration
from sprint_analysis.errors import AnalysisIssue, ValidationWarning

Point = Tuple[float, float]


class RunStatus(Enum):
    """Run lifecycle states."""
    SETUP = "setup"
    ANALYZING = "analyzing"
    MERGING = "merging"
    COMPLETE = "complete"
    ERROR = "error"


class SegmentStatus(Enum):
    """RunSegment lifecycle states."""
    PENDING = "pending"
    UPLOADED = "uploaded"
    CALIBRATED = "calibrated"
    ANALYZED = "analyzed"
    MERGED = "merged"


class StepQuality(Enum):
    """Quality tag attached to steps."""
    GOOD = "good"
    WARNING = "warning"
    INTERPOLATED = "interpolated"


@dataclass(frozen=True)
class AthleteProfile:
    """
    Athlete data needed by the force-velocity model.

    Attributes:
        mass_kg: Body mass in kilograms.
        height_m: Standing height in meters.
        name: Optional display name.
    """
    mass_kg: float
    height_m: float
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"mass_kg": self.mass_kg, "height_m": self.height_m, "name": self.name}


@dataclass(frozen=True)
class RunSegment:
    """
    One camera's coverage of a sub-interval of the run.

    Attributes:
        id: Segment identifier.
        start_distance: Start of the covered interval (m).
        end_distance: End of the covered interval (m).
        fps: Video frame rate.
        calibration: Ground-plane calibration, once clicked.
        index: Optional explicit ordering index.
        status: Lifecycle state.
        video_path: Source video, recorded when uploaded.
    """
    id: str
    start_distance: float
    end_distance: float
    fps: float
    calibration: Optional[Calibration] = None
    index: Optional[int] = None
    status: SegmentStatus = SegmentStatus.PENDING
    video_path: Optional[str] = None

    @property
    def length(self) -> float:
        """Covered distance (m)."""
        return self.end_distance - self.start_distance

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "start_distance": self.start_distance,
            "end_distance": self.end_distance,
            "fps": self.fps,
            "index": self.index,
            "status": self.status.value,
            "video_path": self.video_path,
            "calibration": self.calibration.to_dict() if self.calibration else None,
        }


def order_segments(segments: Sequence[RunSegment]) -> List[RunSegment]:
    """
    Order segments along the run.

    Explicit indices win when every segment has one; otherwise segments are
    sorted by start distance, with any explicit index breaking ties.
    """
    if segments and all(s.index is not None for s in segments):
        return sorted(segments, key=lambda s: (s.index, s.start_distance))

    return sorted(
        segments,
        key=lambda s: (s.start_distance, s.index if s.index is not None else float("inf")),
    )


def generate_segments(
    run_id: str,
    total_distance: float,
    segment_length: float,
    fps: float = 120.0,
) -> List[RunSegment]:
    """
    Split a run into consecutive, equally sized camera segments.

    The last segment is shortened to end exactly at total_distance.
    """
    if total_distance <= 0 or segment_length <= 0:
        raise ValueError("Total distance and segment length must be positive")

    segments = []
    start = 0.0
    index = 0
    while start < total_distance - 1e-9:
        end = min(start + segment_length, total_distance)
        segments.append(RunSegment(
            id=f"{run_id}-seg{index + 1}",
            start_distance=start,
            end_distance=end,
            fps=fps,
            index=index,
        ))
        start = end
        index += 1
    return segments


@dataclass(frozen=True)
class Run:
    """
    One physical sprint attempt.

    Attributes:
        id: Run identifier.
        total_distance: Distance of the sprint (m).
        segments: Camera segments covering the run.
        athlete: Athlete profile, if known.
        status: Lifecycle state.
        error: Reason for the error state, if any.
    """
    id: str
    total_distance: float
    segments: Tuple[RunSegment, ...] = ()
    athlete: Optional[AthleteProfile] = None
    status: RunStatus = RunStatus.SETUP
    error: Optional[str] = None

    def segment(self, segment_id: str) -> RunSegment:
        """Look up a segment by id."""
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        raise KeyError(f"Unknown segment: {segment_id}")

    def with_segment(self, segment: RunSegment) -> "Run":
        """Snapshot with one segment replaced."""
        self.segment(segment.id)
        return replace(
            self,
            segments=tuple(segment if s.id == segment.id else s for s in self.segments),
        )

    def ordered_segments(self) -> List[RunSegment]:
        """Segments in run order."""
        return order_segments(self.segments)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "total_distance": self.total_distance,
            "status": self.status.value,
            "error": self.error,
            "athlete": self.athlete.to_dict() if self.athlete else None,
            "segments": [s.to_dict() for s in self.ordered_segments()],
        }


@dataclass(frozen=True)
class Step:
    """
    One footfall within a segment, spanning to the next contact.

    Attributes:
        index: Zero-based step index within the segment.
        contact_frame: Frame of ground contact.
        toe_off_frame: Frame the foot leaves the ground.
        next_contact_frame: Frame of the following contact.
        contact_time: Ground contact duration (s).
        flight_time: Flight duration until the next contact (s).
        local_distance: Contact position from the segment start (m).
        stride_length: Distance to the next contact (m).
        speed: Stride length over step time (m/s).
        cadence: Steps per minute for this step.
        foot_pixel: Pixel position of the grounded foot.
        confidence: Combined pose and calibration confidence, 0-1.
        quality: Quality tag.
        segment_id: Owning segment.
    """
    index: int
    contact_frame: int
    toe_off_frame: int
    next_contact_frame: int
    contact_time: float
    flight_time: float
    local_distance: float
    stride_length: float
    speed: float
    cadence: float
    foot_pixel: Point
    confidence: float = 1.0
    quality: StepQuality = StepQuality.GOOD
    segment_id: Optional[str] = None

    @property
    def step_time(self) -> float:
        """Contact plus flight time (s)."""
        return self.contact_time + self.flight_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "index": self.index,
            "segment_id": self.segment_id,
            "contact_frame": self.contact_frame,
            "toe_off_frame": self.toe_off_frame,
            "next_contact_frame": self.next_contact_frame,
            "contact_time": self.contact_time,
            "flight_time": self.flight_time,
            "local_distance": self.local_distance,
            "stride_length": self.stride_length,
            "speed": self.speed,
            "cadence": self.cadence,
            "foot_pixel": list(self.foot_pixel),
            "confidence": self.confidence,
            "quality": self.quality.value,
        }


@dataclass(frozen=True)
class SegmentSummary:
    """Mean step metrics of one segment."""
    step_count: int
    mean_contact_time: float
    mean_flight_time: float
    mean_stride: float
    median_stride: float
    mean_speed: float
    cadence: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "step_count": self.step_count,
            "mean_contact_time": self.mean_contact_time,
            "mean_flight_time": self.mean_flight_time,
            "mean_stride": self.mean_stride,
            "median_stride": self.median_stride,
            "mean_speed": self.mean_speed,
            "cadence": self.cadence,
        }


@dataclass(frozen=True)
class SegmentAnalysisResult:
    """
    Output of the segment analyzer for one segment.

    Attributes:
        segment_id: Analyzed segment.
        steps: Steps ordered by contact frame.
        summary: Mean metrics, absent when no step could be built.
        warnings: Non-fatal findings.
        errors: Fatal findings; a result with errors cannot be merged.
        calibration_quality: Quality of the calibration used.
    """
    segment_id: str
    steps: Tuple[Step, ...] = ()
    summary: Optional[SegmentSummary] = None
    warnings: Tuple[ValidationWarning, ...] = ()
    errors: Tuple[AnalysisIssue, ...] = ()
    calibration_quality: float = 0.0

    @property
    def is_valid(self) -> bool:
        """Whether the result carries no fatal finding."""
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "segment_id": self.segment_id,
            "steps": [s.to_dict() for s in self.steps],
            "summary": self.summary.to_dict() if self.summary else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": [e.to_dict() for e in self.errors],
            "calibration_quality": self.calibration_quality,
        }


@dataclass(frozen=True)
class MergedStep:
    """
    A step placed on the run's global distance axis.

    Attributes:
        global_index: Zero-based index along the run, None until assigned.
        global_distance: Contact position from the run start (m).
        segment_id: Source segment, None for interpolated steps.
        local_index: Step index within the source segment.
        contact_time: Ground contact duration (s).
        flight_time: Flight duration (s).
        stride_length: Distance to the next contact (m).
        speed: Step speed (m/s).
        cadence: Steps per minute.
        confidence: Combined pose and calibration confidence.
        is_interpolated: Whether the step was synthesized to fill a gap.
        quality: Quality tag.
    """
    global_index: Optional[int]
    global_distance: float
    segment_id: Optional[str]
    local_index: Optional[int]
    contact_time: float
    flight_time: float
    stride_length: float
    speed: float
    cadence: float
    confidence: float = 1.0
    is_interpolated: bool = False
    quality: StepQuality = StepQuality.GOOD

    @classmethod
    def from_step(cls, step: Step, segment: RunSegment) -> "MergedStep":
        """Place a segment-local step on the global axis."""
        return cls(
            global_index=None,
            global_distance=segment.start_distance + step.local_distance,
            segment_id=segment.id,
            local_index=step.index,
            contact_time=step.contact_time,
            flight_time=step.flight_time,
            stride_length=step.stride_length,
            speed=step.speed,
            cadence=step.cadence,
            confidence=step.confidence,
            quality=step.quality,
        )

    @property
    def step_time(self) -> float:
        """Contact plus flight time (s)."""
        return self.contact_time + self.flight_time

    @property
    def key(self) -> Tuple[Optional[str], Optional[int], float]:
        """Identity of the step independent of its global index."""
        return (self.segment_id, self.local_index, self.global_distance)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "global_index": self.global_index,
            "global_distance": self.global_distance,
            "segment_id": self.segment_id,
            "local_index": self.local_index,
            "contact_time": self.contact_time,
            "flight_time": self.flight_time,
            "stride_length": self.stride_length,
            "speed": self.speed,
            "cadence": self.cadence,
            "confidence": self.confidence,
            "is_interpolated": self.is_interpolated,
            "quality": self.quality.value,
        }


@dataclass(frozen=True)
class BoundaryGroup:
    """
    Steps from adjacent segments found around one segment boundary.

    Attributes:
        boundary_distance: Run distance of the boundary (m).
        left_segment_id: Segment ending at the boundary.
        right_segment_id: Segment starting at the boundary.
        candidates: All steps inside the overlap window.
        accepted: The representative kept in the merged stream.
        duplicates: Candidates excluded as the same footfall.
    """
    boundary_distance: float
    left_segment_id: str
    right_segment_id: str
    candidates: Tuple[MergedStep, ...]
    accepted: MergedStep
    duplicates: Tuple[MergedStep, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        """More than two candidates competed for the boundary."""
        return len(self.candidates) > 2

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "boundary_distance": self.boundary_distance,
            "left_segment_id": self.left_segment_id,
            "right_segment_id": self.right_segment_id,
            "candidates": [c.to_dict() for c in self.candidates],
            "accepted": self.accepted.to_dict(),
            "duplicates": [d.to_dict() for d in self.duplicates],
        }


@dataclass(frozen=True)
class RunSummary:
    """Run-level aggregates of the merged step stream."""
    total_steps: int
    real_steps: int
    interpolated_steps: int
    duplicate_steps: int
    total_distance: float
    total_time: float
    average_speed: float
    max_speed: float
    mean_stride: float
    median_stride: float
    mean_cadence: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_steps": self.total_steps,
            "real_steps": self.real_steps,
            "interpolated_steps": self.interpolated_steps,
            "duplicate_steps": self.duplicate_steps,
            "total_distance": self.total_distance,
            "total_time": self.total_time,
            "average_speed": self.average_speed,
            "max_speed": self.max_speed,
            "mean_stride": self.mean_stride,
            "median_stride": self.median_stride,
            "mean_cadence": self.mean_cadence,
        }


@dataclass(frozen=True)
class MergedAnalysisResult:
    """
    Continuous, duplicate-free step stream of a whole run.

    Attributes:
        run_id: Merged run.
        steps: Globally indexed steps in increasing distance order.
        summary: Run-level aggregates.
        boundary_groups: Audit trail of boundary deduplication.
        warnings: Non-fatal findings.
        errors: Always empty. A merge with a fatal finding raises DataError
            instead of returning a result; the field keeps the result shape
            aligned with SegmentAnalysisResult.
    """
    run_id: str
    steps: Tuple[MergedStep, ...]
    summary: RunSummary
    boundary_groups: Tuple[BoundaryGroup, ...] = ()
    warnings: Tuple[ValidationWarning, ...] = ()
    errors: Tuple[AnalysisIssue, ...] = ()

    @property
    def duplicates(self) -> List[MergedStep]:
        """All steps excluded as boundary duplicates."""
        return [d for group in self.boundary_groups for d in group.duplicates]

    @property
    def real_steps(self) -> List[MergedStep]:
        """Measured steps only."""
        return [s for s in self.steps if not s.is_interpolated]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "steps": [s.to_dict() for s in self.steps],
            "summary": self.summary.to_dict(),
            "boundary_groups": [g.to_dict() for g in self.boundary_groups],
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": [e.to_dict() for e in self.errors],
        }
