"""Stitching per-segment steps into one continuous run."""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np

from sprint_analysis.errors import DataError, Severity, ValidationWarning, WarningType
from sprint_analysis.models import (
    BoundaryGroup,
    MergedAnalysisResult,
    MergedStep,
    Run,
    RunSegment,
    RunSummary,
    SegmentAnalysisResult,
    StepQuality,
)
from sprint_analysis.utils.logging_config import LoggerMixin

StepKey = Tuple[Optional[str], Optional[int], float]


@dataclass
class MergerConfig:
    """
    Configuration for the segment merger.

    Attributes:
        overlap_window: Half-width of the window around a boundary (m).
        gap_multiplier: Gaps longer than this many median strides are filled.
        min_stride: Strides below this are flagged as outliers (m).
        max_stride: Strides above this are flagged as outliers (m).
        fallback_median_stride: Median stride used when no real stride exists (m).
        low_calibration_quality: Calibrations below this quality are reported.
    """
    overlap_window: float = 0.3
    gap_multiplier: float = 1.5
    min_stride: float = 0.6
    max_stride: float = 2.5
    fallback_median_stride: float = 1.6
    low_calibration_quality: float = 0.5

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MergerConfig":
        """Build from a config section, ignoring unknown keys."""
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


class SegmentMerger(LoggerMixin):
    """
    Combines all segments of a run into one globally indexed step stream.

    Steps are placed on the run axis, footfalls seen by two adjacent
    cameras are resolved to one representative, gaps are filled with a
    single interpolated step, strides are recomputed along the merged
    stream and run-level aggregates are computed.
    """

    def __init__(self, config: Optional[MergerConfig] = None):
        """
        Initialize the merger.

        Args:
            config: Merger configuration. Uses defaults if not provided.
        """
        self.config = config or MergerConfig()

    def merge(
        self,
        run: Run,
        results: Mapping[str, SegmentAnalysisResult],
    ) -> MergedAnalysisResult:
        """
        Merge every segment's analysis into one run.

        Args:
            run: Run whose segments are merged.
            results: Analysis results keyed by segment id.

        Returns:
            MergedAnalysisResult.

        Raises:
            DataError: If any segment lacks a calibration or a valid result.
        """
        segments = run.ordered_segments()
        self._check_inputs(run, segments, results)

        self.logger.info(f"Merging {len(segments)} segments of run {run.id}")
        warnings: List[ValidationWarning] = []

        for segment in segments:
            if segment.calibration.quality < self.config.low_calibration_quality:
                warnings.append(ValidationWarning(
                    type=WarningType.LOW_CALIBRATION_QUALITY,
                    message=f"Calibration quality {segment.calibration.quality:.2f} is low",
                    segment_id=segment.id,
                ))

        placed = {
            segment.id: [MergedStep.from_step(step, segment) for step in results[segment.id].steps]
            for segment in segments
        }

        groups, duplicate_keys = self._deduplicate(segments, placed, warnings)
        stream = sorted(
            (step for steps in placed.values() for step in steps if step.key not in duplicate_keys),
            key=lambda s: s.global_distance,
        )

        stream = self._flag_stride_outliers(stream, warnings)
        median_stride = self._median_stride(stream)
        stream = self._interpolate_gaps(stream, median_stride, warnings)
        stream = self._recompute_strides(stream)

        indexed = [replace(step, global_index=i) for i, step in enumerate(stream)]
        by_key = {step.key: step for step in indexed}
        groups = [replace(g, accepted=by_key.get(g.accepted.key, g.accepted)) for g in groups]

        summary = self._summarize(run, segments, indexed, sum(len(g.duplicates) for g in groups))

        for warning in warnings:
            if warning.severity != Severity.INFO:
                self.logger.warning(warning.message)

        self.logger.info(
            f"Run {run.id} merged: {summary.total_steps} steps ({summary.real_steps} real, "
            f"{summary.interpolated_steps} interpolated, {summary.duplicate_steps} duplicates), "
            f"average speed {summary.average_speed:.2f} m/s"
        )

        return MergedAnalysisResult(
            run_id=run.id,
            steps=tuple(indexed),
            summary=summary,
            boundary_groups=tuple(groups),
            warnings=tuple(warnings),
        )

    def _check_inputs(
        self,
        run: Run,
        segments: Sequence[RunSegment],
        results: Mapping[str, SegmentAnalysisResult],
    ) -> None:
        if not segments:
            raise DataError(f"Run {run.id} has no segments", code="no_segments")

        for segment in segments:
            if segment.calibration is None:
                raise DataError(
                    f"Segment {segment.id} has no calibration",
                    code="missing_calibration",
                    segment_id=segment.id,
                )
            result = results.get(segment.id)
            if result is None:
                raise DataError(
                    f"Segment {segment.id} has no analysis result",
                    code="missing_analysis",
                    segment_id=segment.id,
                )
            if not result.is_valid:
                raise result.errors[0].to_error()

    def _deduplicate(
        self,
        segments: Sequence[RunSegment],
        placed: Mapping[str, List[MergedStep]],
        warnings: List[ValidationWarning],
    ) -> Tuple[List[BoundaryGroup], Set[StepKey]]:
        """Resolve footfalls seen by both cameras at each boundary."""
        window = self.config.overlap_window
        groups: List[BoundaryGroup] = []
        duplicate_keys: Set[StepKey] = set()

        for left, right in zip(segments, segments[1:]):
            boundary = right.start_distance
            candidates = [
                step
                for segment_id in (left.id, right.id)
                for step in placed[segment_id]
                if abs(step.global_distance - boundary) <= window and step.key not in duplicate_keys
            ]
            if len({c.segment_id for c in candidates}) < 2:
                continue

            accepted = max(
                candidates,
                key=lambda s: (s.confidence, -abs(s.global_distance - boundary)),
            )
            duplicates = [c for c in candidates if c is not accepted]
            duplicate_keys.update(d.key for d in duplicates)

            group = BoundaryGroup(
                boundary_distance=boundary,
                left_segment_id=left.id,
                right_segment_id=right.id,
                candidates=tuple(sorted(candidates, key=lambda s: s.global_distance)),
                accepted=accepted,
                duplicates=tuple(duplicates),
            )
            groups.append(group)

            for duplicate in duplicates:
                self.logger.info(
                    f"Boundary {boundary:.2f} m: dropping duplicate from {duplicate.segment_id} "
                    f"at {duplicate.global_distance:.2f} m, keeping {accepted.segment_id} "
                    f"at {accepted.global_distance:.2f} m"
                )
                warnings.append(ValidationWarning(
                    type=WarningType.DUPLICATE,
                    message=(
                        f"Step at {duplicate.global_distance:.2f} m from {duplicate.segment_id} "
                        f"duplicates {accepted.segment_id} at boundary {boundary:.2f} m"
                    ),
                    severity=Severity.INFO,
                    segment_id=duplicate.segment_id,
                    step_index=duplicate.local_index,
                ))

            if group.is_ambiguous:
                warnings.append(ValidationWarning(
                    type=WarningType.AMBIGUOUS_BOUNDARY,
                    message=(
                        f"{len(candidates)} candidate steps within {window} m "
                        f"of boundary {boundary:.2f} m"
                    ),
                    segment_id=right.id,
                ))

        return groups, duplicate_keys

    def _median_stride(self, stream: Sequence[MergedStep]) -> float:
        strides = [s.stride_length for s in stream if not s.is_interpolated and s.stride_length > 0]
        if not strides:
            self.logger.warning(
                f"No measured strides; using {self.config.fallback_median_stride} m as median"
            )
            return self.config.fallback_median_stride
        return float(np.median(strides))

    def _flag_stride_outliers(
        self,
        stream: Sequence[MergedStep],
        warnings: List[ValidationWarning],
    ) -> List[MergedStep]:
        flagged = []
        for step in stream:
            if self.config.min_stride <= step.stride_length <= self.config.max_stride:
                flagged.append(step)
                continue
            warnings.append(ValidationWarning(
                type=WarningType.STRIDE_OUTLIER,
                message=(
                    f"Stride {step.stride_length:.2f} m at {step.global_distance:.2f} m is outside "
                    f"{self.config.min_stride}-{self.config.max_stride} m"
                ),
                segment_id=step.segment_id,
                step_index=step.local_index,
            ))
            flagged.append(replace(step, quality=StepQuality.WARNING))
        return flagged

    def _interpolate_gaps(
        self,
        stream: Sequence[MergedStep],
        median_stride: float,
        warnings: List[ValidationWarning],
    ) -> List[MergedStep]:
        """Insert one synthetic step in the middle of every oversized gap."""
        threshold = self.config.gap_multiplier * median_stride
        filled: List[MergedStep] = []

        for i, step in enumerate(stream):
            filled.append(step)
            if i + 1 == len(stream):
                break

            following = stream[i + 1]
            gap = following.global_distance - step.global_distance
            if gap <= threshold:
                continue

            filled.append(MergedStep(
                global_index=None,
                global_distance=step.global_distance + gap / 2,
                segment_id=None,
                local_index=None,
                contact_time=(step.contact_time + following.contact_time) / 2,
                flight_time=(step.flight_time + following.flight_time) / 2,
                stride_length=gap / 2,
                speed=(step.speed + following.speed) / 2,
                cadence=(step.cadence + following.cadence) / 2,
                confidence=0.0,
                is_interpolated=True,
                quality=StepQuality.INTERPOLATED,
            ))
            warnings.append(ValidationWarning(
                type=WarningType.GAP_INTERPOLATED,
                message=(
                    f"Gap of {gap:.2f} m between {step.global_distance:.2f} m and "
                    f"{following.global_distance:.2f} m exceeds {threshold:.2f} m; "
                    "interpolated one step"
                ),
                segment_id=step.segment_id,
            ))

        return filled

    def _recompute_strides(self, stream: Sequence[MergedStep]) -> List[MergedStep]:
        """Stride and speed from the next merged contact; the last step keeps its measured values."""
        recomputed = []
        for step, following in zip(stream, stream[1:]):
            stride = following.global_distance - step.global_distance
            speed = stride / step.step_time if step.step_time > 0 else step.speed
            if abs(stride - step.stride_length) > 1e-9:
                self.logger.debug(
                    f"Stride at {step.global_distance:.2f} m: {step.stride_length:.3f} m measured, "
                    f"{stride:.3f} m to the next merged step"
                )
            recomputed.append(replace(step, stride_length=stride, speed=speed))
        recomputed.extend(stream[-1:])
        return recomputed

    def _summarize(
        self,
        run: Run,
        segments: Sequence[RunSegment],
        steps: Sequence[MergedStep],
        duplicate_count: int,
    ) -> RunSummary:
        real = [s for s in steps if not s.is_interpolated]
        strides = [s.stride_length for s in steps]
        total_distance = run.total_distance if run.total_distance > 0 else sum(s.length for s in segments)
        total_time = float(sum(s.step_time for s in steps))

        return RunSummary(
            total_steps=len(steps),
            real_steps=len(real),
            interpolated_steps=len(steps) - len(real),
            duplicate_steps=duplicate_count,
            total_distance=total_distance,
            total_time=total_time,
            average_speed=total_distance / total_time if total_time > 0 else 0.0,
            max_speed=max((s.speed for s in real), default=0.0),
            mean_stride=float(np.mean(strides)) if strides else 0.0,
            median_stride=float(np.median(strides)) if strides else 0.0,
            mean_cadence=float(np.mean([s.cadence for s in real])) if real else 0.0,
        )
