"""Run orchestrator driving analysis, merging and modeling."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from tqdm import tqdm

from sprint_analysis.analysis.merger import MergerConfig, SegmentMerger
from sprint_analysis.analysis.segment_analyzer import AnalyzerConfig, SegmentAnalyzer, SegmentInput
from sprint_analysis.errors import DataError, StateTransitionError
from sprint_analysis.hfvp.modeler import HFVPConfig, HFVPModeler, HFVPOutcome
from sprint_analysis.hfvp.splits import SplitProfileConfig
from sprint_analysis.lifecycle import transition_run, transition_segment
from sprint_analysis.models import (
    MergedAnalysisResult,
    Run,
    RunStatus,
    SegmentAnalysisResult,
    SegmentStatus,
)
from sprint_analysis.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PipelineConfig:
    """
    Configuration for the sprint analysis pipeline.

    Attributes:
        analyzer: Segment analyzer settings.
        merger: Segment merger settings.
        hfvp: F-V-P modeler settings.
        splits: Split-time profiler settings.
        max_workers: Threads used for per-segment analysis.
        show_progress: Whether to show progress bars.
    """
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    merger: MergerConfig = field(default_factory=MergerConfig)
    hfvp: HFVPConfig = field(default_factory=HFVPConfig)
    splits: SplitProfileConfig = field(default_factory=SplitProfileConfig)
    max_workers: int = 4
    show_progress: bool = True

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> "PipelineConfig":
        """Build from the parsed YAML configuration."""
        cfg = cfg or {}
        pipeline = cfg.get("pipeline", {}) or {}
        return cls(
            analyzer=AnalyzerConfig.from_dict(cfg.get("analyzer")),
            merger=MergerConfig.from_dict(cfg.get("merger")),
            hfvp=HFVPConfig.from_dict(cfg.get("hfvp")),
            splits=SplitProfileConfig.from_dict(cfg.get("splits")),
            max_workers=int(pipeline.get("max_workers", 4)),
            show_progress=bool(pipeline.get("show_progress", True)),
        )


@dataclass(frozen=True)
class RunAnalysisOutcome:
    """
    Final state of a processed run.

    Attributes:
        run: Run snapshot, complete or in the error state.
        segment_results: Analyzer output per segment id.
        merged: Merged result, absent when the run failed.
        hfvp: F-V-P outcome, absent without an athlete profile or merge.
        error_code: Reason code of the failure, if any.
    """
    run: Run
    segment_results: Mapping[str, SegmentAnalysisResult]
    merged: Optional[MergedAnalysisResult] = None
    hfvp: Optional[HFVPOutcome] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether the run completed."""
        return self.run.status == RunStatus.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run": self.run.to_dict(),
            "segment_results": {k: v.to_dict() for k, v in self.segment_results.items()},
            "merged": self.merged.to_dict() if self.merged else None,
            "hfvp": self.hfvp.to_dict() if self.hfvp else None,
            "error_code": self.error_code,
        }


class RunOrchestrator:
    """
    End-to-end processing of one run.

    Segments are analyzed in parallel; the merge waits for every result
    and runs only if all segments succeeded. The F-V-P model runs last and
    its failure never fails the run.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the orchestrator.

        Args:
            config: Pipeline configuration. Uses defaults if not provided.
        """
        self.config = config or PipelineConfig()

        self._analyzer: Optional[SegmentAnalyzer] = None
        self._merger: Optional[SegmentMerger] = None
        self._modeler: Optional[HFVPModeler] = None

    @property
    def analyzer(self) -> SegmentAnalyzer:
        """Get or create the segment analyzer."""
        if self._analyzer is None:
            self._analyzer = SegmentAnalyzer(self.config.analyzer)
        return self._analyzer

    @property
    def merger(self) -> SegmentMerger:
        """Get or create the segment merger."""
        if self._merger is None:
            self._merger = SegmentMerger(self.config.merger)
        return self._merger

    @property
    def modeler(self) -> HFVPModeler:
        """Get or create the F-V-P modeler."""
        if self._modeler is None:
            self._modeler = HFVPModeler(self.config.hfvp)
        return self._modeler

    def process(self, run: Run, inputs: Mapping[str, SegmentInput]) -> RunAnalysisOutcome:
        """
        Analyze, merge and model a run.

        Args:
            run: Run in the setup state.
            inputs: Contact data per segment id.

        Returns:
            RunAnalysisOutcome. Fatal data problems put the run in the
            error state instead of raising.
        """
        logger.info(f"Processing run {run.id} with {len(run.segments)} segments")
        results: Mapping[str, SegmentAnalysisResult] = MappingProxyType({})

        try:
            run = transition_run(run, RunStatus.ANALYZING)
            run = self._prepare_segments(run, inputs)
            results = self._analyze_segments(run, inputs)
            run = self._record_analysis(run, results)

            run = transition_run(run, RunStatus.MERGING)
            merged = self.merger.merge(run, results)
            for segment in run.segments:
                run = run.with_segment(transition_segment(segment, SegmentStatus.MERGED))
            run = transition_run(run, RunStatus.COMPLETE)

        except (DataError, StateTransitionError) as e:
            logger.error(f"Run {run.id} failed: {e}")
            code = e.code if isinstance(e, DataError) else "invalid_state"
            return RunAnalysisOutcome(
                run=transition_run(run, RunStatus.ERROR, error=str(e)),
                segment_results=results,
                error_code=code,
            )

        hfvp = None
        if run.athlete is not None:
            hfvp = self.modeler.model(merged.steps, run.athlete)
        else:
            logger.info(f"Run {run.id} has no athlete profile; skipping F-V-P model")

        return RunAnalysisOutcome(run=run, segment_results=results, merged=merged, hfvp=hfvp)

    def _prepare_segments(self, run: Run, inputs: Mapping[str, SegmentInput]) -> Run:
        """Advance every segment with contact data to the calibrated state where possible."""
        for segment in run.ordered_segments():
            if segment.id not in inputs:
                raise DataError(
                    f"No contact data for segment {segment.id}",
                    code="missing_analysis",
                    segment_id=segment.id,
                )
            if segment.status == SegmentStatus.PENDING:
                segment = transition_segment(segment, SegmentStatus.UPLOADED)
            if (
                segment.status == SegmentStatus.UPLOADED
                and segment.calibration is not None
                and segment.calibration.is_valid()
            ):
                segment = transition_segment(segment, SegmentStatus.CALIBRATED)
            run = run.with_segment(segment)
        return run

    def _analyze_segments(
        self,
        run: Run,
        inputs: Mapping[str, SegmentInput],
    ) -> Mapping[str, SegmentAnalysisResult]:
        """Analyze all segments in parallel; results are written once each."""
        results: Dict[str, SegmentAnalysisResult] = {}
        workers = max(1, min(self.config.max_workers, len(run.segments)))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    self.analyzer.analyze,
                    replace(inputs[segment.id], segment=segment),
                ): segment.id
                for segment in run.segments
            }
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Analyzing segments",
                disable=not self.config.show_progress,
            ):
                results[futures[future]] = future.result()

        return MappingProxyType(results)

    def _record_analysis(self, run: Run, results: Mapping[str, SegmentAnalysisResult]) -> Run:
        """Fail on any invalid segment, otherwise mark all segments analyzed."""
        failed = [results[s.id] for s in run.ordered_segments() if not results[s.id].is_valid]
        if failed:
            for result in failed:
                for issue in result.errors:
                    logger.error(f"Segment {result.segment_id}: {issue.code}: {issue.message}")
            raise failed[0].errors[0].to_error()

        for segment in run.segments:
            run = run.with_segment(transition_segment(segment, SegmentStatus.ANALYZED))
        return run


def process_run(
    run: Run,
    inputs: Mapping[str, SegmentInput],
    config: Optional[PipelineConfig] = None,
) -> RunAnalysisOutcome:
    """Process a run with a fresh orchestrator."""
    return RunOrchestrator(config).process(run, inputs)

