"""Pipeline module for orchestrating sprint run analysis."""

from sprint_analysis.pipeline.orchestrator import (
    PipelineConfig,
    RunAnalysisOutcome,
    RunOrchestrator,
    process_run,
)

__all__ = ["PipelineConfig", "RunAnalysisOutcome", "RunOrchestrator", "process_run"]
