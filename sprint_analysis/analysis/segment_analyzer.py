"""Per-segment step metrics from contact events and a calibration."""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from sprint_analysis.errors import (
    AnalysisIssue,
    CalibrationError,
    DataError,
    Severity,
    ValidationWarning,
    WarningType,
)
from sprint_analysis.models import (
    Point,
    RunSegment,
    SegmentAnalysisResult,
    SegmentSummary,
    Step,
    StepQuality,
)
from sprint_analysis.pose.base import PoseSource
from sprint_analysis.pose.landmarks import locate_grounded_foot
from sprint_analysis.utils.logging_config import LoggerMixin


@dataclass
class AnalyzerConfig:
    """
    Configuration for the segment analyzer.

    Attributes:
        stride_anomaly_factor: Strides outside [median / f, median * f] are flagged.
        min_steps: Fewest usable steps a segment may produce.
        default_contact_frames: Contact length assumed when a toe-off is missing.
        min_pose_confidence: Foot landmarks below this confidence are ignored.
    """
    stride_anomaly_factor: float = 1.5
    min_steps: int = 3
    default_contact_frames: int = 10
    min_pose_confidence: float = 0.3

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnalyzerConfig":
        """Build from a config section, ignoring unknown keys."""
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class ContactEvent:
    """
    One marked ground contact.

    Attributes:
        contact_frame: Frame of touchdown.
        toe_off_frame: Frame of toe-off, if marked.
        foot_pixel: Grounded foot position; looked up from the pose source if absent.
        confidence: Confidence of an explicitly given foot position.
    """
    contact_frame: int
    toe_off_frame: Optional[int] = None
    foot_pixel: Optional[Point] = None
    confidence: float = 1.0


@dataclass(frozen=True, eq=False)
class SegmentInput:
    """
    Everything the analyzer needs for one segment.

    Attributes:
        segment: Segment with fps, start distance and calibration.
        contacts: Marked contact events.
        pose_source: Landmark supplier for contacts without a foot pixel.
    """
    segment: RunSegment
    contacts: Tuple[ContactEvent, ...]
    pose_source: Optional[PoseSource] = None


@dataclass(frozen=True)
class _ResolvedContact:
    contact_frame: int
    toe_off_frame: int
    toe_off_defaulted: bool
    foot_pixel: Optional[Point]
    distance: Optional[float]
    confidence: float


class SegmentAnalyzer(LoggerMixin):
    """
    Turns one segment's contact events into Step records.

    Each consecutive pair of contacts yields one step: timing comes from
    the frame indices and fps, distances from projecting the grounded
    foot through the segment's calibration.
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        """
        Initialize the analyzer.

        Args:
            config: Analyzer configuration. Uses defaults if not provided.
        """
        self.config = config or AnalyzerConfig()

    def analyze(self, segment_input: SegmentInput) -> SegmentAnalysisResult:
        """
        Analyze one segment.

        Args:
            segment_input: Segment, contacts and optional pose source.

        Returns:
            SegmentAnalysisResult. Missing or invalid calibration and too
            few usable steps are reported in its errors.
        """
        segment = segment_input.segment
        calibration = segment.calibration

        if calibration is None:
            return self._failed(segment, "missing_calibration", "Segment has no calibration")
        if not calibration.is_valid():
            return self._failed(segment, "invalid_calibration", "Segment calibration failed validation")
        if segment.fps <= 0:
            return self._failed(segment, "invalid_fps", f"Invalid frame rate: {segment.fps}")

        log = self.segment_logger(segment.id)
        log.info(
            f"Analyzing ({segment.start_distance}-{segment.end_distance} m, "
            f"{len(segment_input.contacts)} contacts)"
        )

        warnings: List[ValidationWarning] = []
        try:
            contacts = self._resolve_contacts(segment_input, warnings)
        except DataError as e:
            return self._failed(segment, e.code, str(e))
        steps = self._build_steps(segment, contacts, calibration.quality, warnings)
        steps = self._flag_stride_anomalies(segment, steps, warnings)

        errors = []
        if len(steps) < self.config.min_steps:
            errors.append(AnalysisIssue(
                code="insufficient_steps",
                message=f"Only {len(steps)} usable steps (minimum {self.config.min_steps})",
                segment_id=segment.id,
            ))
            log.error(errors[-1].message)

        for warning in warnings:
            log.warning(warning.message)

        summary = self._summarize(segment, steps) if steps else None
        if summary:
            log.info(
                f"{summary.step_count} steps, "
                f"mean stride {summary.mean_stride:.2f} m, mean speed {summary.mean_speed:.2f} m/s"
            )

        return SegmentAnalysisResult(
            segment_id=segment.id,
            steps=tuple(steps),
            summary=summary,
            warnings=tuple(warnings),
            errors=tuple(errors),
            calibration_quality=calibration.quality,
        )

    def _failed(self, segment: RunSegment, code: str, message: str) -> SegmentAnalysisResult:
        self.segment_logger(segment.id).error(message)
        quality = segment.calibration.quality if segment.calibration else 0.0
        return SegmentAnalysisResult(
            segment_id=segment.id,
            errors=(AnalysisIssue(code=code, message=message, segment_id=segment.id),),
            calibration_quality=quality,
        )

    def _resolve_contacts(
        self,
        segment_input: SegmentInput,
        warnings: List[ValidationWarning],
    ) -> List[_ResolvedContact]:
        """Sort contacts, fill in toe-offs and project foot positions."""
        segment = segment_input.segment
        ordered = sorted(segment_input.contacts, key=lambda c: c.contact_frame)

        unique: List[ContactEvent] = []
        for contact in ordered:
            if unique and unique[-1].contact_frame == contact.contact_frame:
                warnings.append(ValidationWarning(
                    type=WarningType.INVALID_TIMING,
                    message=f"Duplicate contact at frame {contact.contact_frame} ignored",
                    segment_id=segment.id,
                ))
                continue
            unique.append(contact)

        resolved = []
        for i, contact in enumerate(unique):
            next_frame = unique[i + 1].contact_frame if i + 1 < len(unique) else None
            toe_off, defaulted = self._toe_off_frame(contact, next_frame)
            if defaulted and next_frame is not None:
                warnings.append(ValidationWarning(
                    type=WarningType.DEFAULTED_TOE_OFF,
                    message=f"No toe-off for contact at frame {contact.contact_frame}; using frame {toe_off}",
                    severity=Severity.INFO,
                    segment_id=segment.id,
                ))

            pixel, confidence = self._foot_pixel(contact, segment_input, warnings)
            distance = None
            if pixel is not None:
                try:
                    distance = segment.calibration.distance_at(pixel)
                except CalibrationError as e:
                    warnings.append(ValidationWarning(
                        type=WarningType.INVALID_PROJECTION,
                        message=f"Contact at frame {contact.contact_frame} could not be projected: {e}",
                        segment_id=segment.id,
                    ))
                else:
                    if not np.isfinite(distance):
                        warnings.append(ValidationWarning(
                            type=WarningType.INVALID_PROJECTION,
                            message=f"Contact at frame {contact.contact_frame} projects to a non-finite distance",
                            segment_id=segment.id,
                        ))
                        distance = None

            resolved.append(_ResolvedContact(
                contact_frame=contact.contact_frame,
                toe_off_frame=toe_off,
                toe_off_defaulted=defaulted,
                foot_pixel=pixel,
                distance=distance,
                confidence=confidence,
            ))
        return resolved

    def _toe_off_frame(self, contact: ContactEvent, next_frame: Optional[int]) -> Tuple[int, bool]:
        if contact.toe_off_frame is not None:
            return contact.toe_off_frame, False

        toe_off = contact.contact_frame + self.config.default_contact_frames
        if next_frame is not None:
            # Keep at least one flight frame before the next contact
            toe_off = max(contact.contact_frame + 1, min(toe_off, next_frame - 1))
        return toe_off, True

    def _foot_pixel(
        self,
        contact: ContactEvent,
        segment_input: SegmentInput,
        warnings: List[ValidationWarning],
    ) -> Tuple[Optional[Point], float]:
        if contact.foot_pixel is not None:
            return contact.foot_pixel, contact.confidence

        source = segment_input.pose_source
        pose = source.pose_at(contact.contact_frame) if source is not None else None
        foot = None
        if pose is not None:
            frame_size = source.frame_size or segment_input.segment.calibration.frame_size
            if pose.normalized and frame_size is None:
                raise DataError(
                    f"Normalized landmarks at frame {contact.contact_frame} need a frame size "
                    "on the pose source or the calibration",
                    code="missing_frame_size",
                    segment_id=segment_input.segment.id,
                )
            foot = locate_grounded_foot(pose, frame_size, self.config.min_pose_confidence)

        if foot is None:
            warnings.append(ValidationWarning(
                type=WarningType.MISSING_POSE,
                message=f"No foot position for contact at frame {contact.contact_frame}",
                segment_id=segment_input.segment.id,
            ))
            return None, 0.0
        return foot.pixel, foot.confidence

    def _build_steps(
        self,
        segment: RunSegment,
        contacts: Sequence[_ResolvedContact],
        calibration_quality: float,
        warnings: List[ValidationWarning],
    ) -> List[Step]:
        steps: List[Step] = []
        for current, following in zip(contacts, contacts[1:]):
            if current.distance is None or following.distance is None:
                continue

            if not current.contact_frame < current.toe_off_frame < following.contact_frame:
                warnings.append(ValidationWarning(
                    type=WarningType.INVALID_TIMING,
                    message=(
                        f"Toe-off at frame {current.toe_off_frame} is outside contact "
                        f"{current.contact_frame}-{following.contact_frame}"
                    ),
                    segment_id=segment.id,
                ))
                continue

            contact_time = (current.toe_off_frame - current.contact_frame) / segment.fps
            flight_time = (following.contact_frame - current.toe_off_frame) / segment.fps
            stride = following.distance - current.distance
            if stride <= 0:
                warnings.append(ValidationWarning(
                    type=WarningType.STRIDE_ANOMALY,
                    message=f"Non-positive stride {stride:.3f} m at frame {current.contact_frame}",
                    severity=Severity.ERROR,
                    segment_id=segment.id,
                ))
                continue

            step_time = contact_time + flight_time
            steps.append(Step(
                index=len(steps),
                contact_frame=current.contact_frame,
                toe_off_frame=current.toe_off_frame,
                next_contact_frame=following.contact_frame,
                contact_time=contact_time,
                flight_time=flight_time,
                local_distance=current.distance - segment.start_distance,
                stride_length=stride,
                speed=stride / step_time,
                cadence=60.0 / step_time,
                foot_pixel=current.foot_pixel,
                confidence=current.confidence * calibration_quality,
                quality=StepQuality.WARNING if current.toe_off_defaulted else StepQuality.GOOD,
                segment_id=segment.id,
            ))
        return steps

    def _flag_stride_anomalies(
        self,
        segment: RunSegment,
        steps: List[Step],
        warnings: List[ValidationWarning],
    ) -> List[Step]:
        if not steps:
            return steps

        median = float(np.median([s.stride_length for s in steps]))
        factor = self.config.stride_anomaly_factor
        low, high = median / factor, median * factor

        flagged = []
        for step in steps:
            if low <= step.stride_length <= high:
                flagged.append(step)
                continue
            warnings.append(ValidationWarning(
                type=WarningType.STRIDE_ANOMALY,
                message=(
                    f"Stride {step.stride_length:.2f} m at step {step.index} is outside "
                    f"{low:.2f}-{high:.2f} m"
                ),
                segment_id=segment.id,
                step_index=step.index,
            ))
            flagged.append(replace(step, quality=StepQuality.WARNING))
        return flagged

    def _summarize(self, segment: RunSegment, steps: Sequence[Step]) -> SegmentSummary:
        window = (steps[-1].next_contact_frame - steps[0].contact_frame) / segment.fps
        strides = [s.stride_length for s in steps]
        return SegmentSummary(
            step_count=len(steps),
            mean_contact_time=float(np.mean([s.contact_time for s in steps])),
            mean_flight_time=float(np.mean([s.flight_time for s in steps])),
            mean_stride=float(np.mean(strides)),
            median_stride=float(np.median(strides)),
            mean_speed=float(np.mean([s.speed for s in steps])),
            cadence=60.0 * len(steps) / window if window > 0 else 0.0,
        )
