"""Exception hierarchy and warning records for sprint analysis."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class SprintAnalysisError(Exception):
    """Base class for all sprint analysis errors."""


class CalibrationError(SprintAnalysisError):
    """Degenerate or near-singular calibration point configuration."""


class ProjectionError(CalibrationError):
    """A pixel projects onto the horizon line (homogeneous w close to zero)."""


class DataError(SprintAnalysisError):
    """
    Missing or unusable input data that is fatal to a run's merge.

    Attributes:
        code: Machine readable reason, e.g. "missing_calibration".
        segment_id: Segment that caused the failure, if any.
    """

    def __init__(self, message: str, code: str = "data_error", segment_id: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.segment_id = segment_id


class RegressionError(SprintAnalysisError):
    """Insufficient or numerically invalid force-velocity data."""

    def __init__(self, message: str, reason: str = "invalid_regression"):
        super().__init__(message)
        self.reason = reason


class StateTransitionError(SprintAnalysisError):
    """Illegal run or segment lifecycle transition."""


class WarningType(Enum):
    """Kinds of non-fatal findings."""
    STRIDE_ANOMALY = "stride_anomaly"
    STRIDE_OUTLIER = "stride_outlier"
    GAP_INTERPOLATED = "gap_interpolated"
    LOW_CALIBRATION_QUALITY = "low_calibration_quality"
    AMBIGUOUS_BOUNDARY = "ambiguous_boundary"
    DUPLICATE = "duplicate"
    MISSING_POSE = "missing_pose"
    DEFAULTED_TOE_OFF = "defaulted_toe_off"
    INVALID_TIMING = "invalid_timing"
    INVALID_PROJECTION = "invalid_projection"


class Severity(Enum):
    """Severity of a validation finding."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ValidationWarning:
    """
    Non-fatal finding reported alongside a still-valid result.

    Attributes:
        type: Kind of finding.
        message: Human readable description.
        severity: How much the finding should worry the reader.
        segment_id: Segment the finding belongs to, if any.
        step_index: Step index (local or global) the finding belongs to.
    """
    type: WarningType
    message: str
    severity: Severity = Severity.WARNING
    segment_id: Optional[str] = None
    step_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
            "segment_id": self.segment_id,
            "step_index": self.step_index,
        }


@dataclass(frozen=True)
class AnalysisIssue:
    """
    Fatal validation finding attached to a segment analysis result.

    Attributes:
        code: Machine readable reason ("insufficient_steps", ...).
        message: Human readable description.
        segment_id: Segment the issue belongs to.
    """
    code: str
    message: str
    segment_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"code": self.code, "message": self.message, "segment_id": self.segment_id}

    def to_error(self) -> DataError:
        """Build the matching DataError."""
        return DataError(self.message, code=self.code, segment_id=self.segment_id)
