"""Segment analysis and cross-segment merging."""

from sprint_analysis.analysis.merger import MergerConfig, SegmentMerger
from sprint_analysis.analysis.segment_analyzer import (
    AnalyzerConfig,
    ContactEvent,
    SegmentAnalyzer,
    SegmentInput,
)

__all__ = [
    "AnalyzerConfig",
    "ContactEvent",
    "SegmentAnalyzer",
    "SegmentInput",
    "MergerConfig",
    "SegmentMerger",
]
