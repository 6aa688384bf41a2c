"""Sprint force-velocity-power modeling."""

from sprint_analysis.hfvp.modeler import (
    HFVPConfig,
    HFVPModeler,
    HFVPOutcome,
    HFVPPoint,
    HFVPResult,
    QualityLevel,
    format_report,
)
from sprint_analysis.hfvp.regression import RegressionMethod, fit_line
from sprint_analysis.hfvp.splits import SplitProfile, SplitProfileConfig, SplitTimeProfiler
from sprint_analysis.hfvp.velocity_models import (
    ConstantAccelerationVelocityModel,
    FiniteDifferenceVelocityModel,
    VelocityModel,
)

__all__ = [
    "HFVPConfig",
    "HFVPModeler",
    "HFVPOutcome",
    "HFVPPoint",
    "HFVPResult",
    "QualityLevel",
    "format_report",
    "RegressionMethod",
    "fit_line",
    "SplitProfile",
    "SplitProfileConfig",
    "SplitTimeProfiler",
    "VelocityModel",
    "FiniteDifferenceVelocityModel",
    "ConstantAccelerationVelocityModel",
]
