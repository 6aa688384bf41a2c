"""Run and segment lifecycle state machines."""

import logging
from dataclasses import replace
from typing import Dict, FrozenSet, Optional

from sprint_analysis.calibration.calibration import Calibration
from sprint_analysis.errors import StateTransitionError
from sprint_analysis.models import Run, RunSegment, RunStatus, SegmentStatus

logger = logging.getLogger(__name__)

RUN_TRANSITIONS: Dict[RunStatus, FrozenSet[RunStatus]] = {
    RunStatus.SETUP: frozenset({RunStatus.ANALYZING, RunStatus.ERROR}),
    RunStatus.ANALYZING: frozenset({RunStatus.MERGING, RunStatus.ERROR}),
    RunStatus.MERGING: frozenset({RunStatus.COMPLETE, RunStatus.ERROR}),
    RunStatus.COMPLETE: frozenset(),
    RunStatus.ERROR: frozenset(),
}

SEGMENT_TRANSITIONS: Dict[SegmentStatus, FrozenSet[SegmentStatus]] = {
    SegmentStatus.PENDING: frozenset({SegmentStatus.UPLOADED}),
    SegmentStatus.UPLOADED: frozenset({SegmentStatus.CALIBRATED}),
    SegmentStatus.CALIBRATED: frozenset({SegmentStatus.ANALYZED}),
    SegmentStatus.ANALYZED: frozenset({SegmentStatus.MERGED}),
    SegmentStatus.MERGED: frozenset(),
}


def transition_run(run: Run, status: RunStatus, error: Optional[str] = None) -> Run:
    """
    Move a run to a new lifecycle state.

    Args:
        run: Current run snapshot.
        status: Target state.
        error: Reason, recorded when entering the error state.

    Returns:
        New run snapshot.

    Raises:
        StateTransitionError: If the transition is not allowed or a guard fails.
    """
    if status not in RUN_TRANSITIONS[run.status]:
        raise StateTransitionError(
            f"Run {run.id}: cannot go from {run.status.value} to {status.value}"
        )

    if status == RunStatus.ANALYZING and not run.segments:
        raise StateTransitionError(f"Run {run.id}: no segments to analyze")

    if status == RunStatus.MERGING:
        pending = [s.id for s in run.segments if s.status != SegmentStatus.ANALYZED]
        if pending:
            raise StateTransitionError(
                f"Run {run.id}: segments not analyzed: {', '.join(pending)}"
            )

    logger.info(f"Run {run.id}: {run.status.value} -> {status.value}")
    return replace(run, status=status, error=error if status == RunStatus.ERROR else None)


def transition_segment(segment: RunSegment, status: SegmentStatus) -> RunSegment:
    """
    Move a segment to a new lifecycle state.

    Raises:
        StateTransitionError: If the transition is not allowed or a guard fails.
    """
    if status not in SEGMENT_TRANSITIONS[segment.status]:
        raise StateTransitionError(
            f"Segment {segment.id}: cannot go from {segment.status.value} to {status.value}"
        )

    if status == SegmentStatus.CALIBRATED and segment.calibration is None:
        raise StateTransitionError(f"Segment {segment.id}: no calibration attached")

    logger.debug(f"Segment {segment.id}: {segment.status.value} -> {status.value}")
    return replace(segment, status=status)


def mark_uploaded(segment: RunSegment, video_path: Optional[str] = None) -> RunSegment:
    """Record the segment's source video."""
    return transition_segment(replace(segment, video_path=video_path), SegmentStatus.UPLOADED)


def attach_calibration(segment: RunSegment, calibration: Calibration) -> RunSegment:
    """Attach a calibration and move the segment to the calibrated state."""
    if not calibration.is_valid():
        raise StateTransitionError(f"Segment {segment.id}: calibration failed validation")
    return transition_segment(replace(segment, calibration=calibration), SegmentStatus.CALIBRATED)
