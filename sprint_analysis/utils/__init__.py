"""Utility modules for sprint analysis."""

from sprint_analysis.utils.logging_config import (
    LoggerMixin,
    SegmentLoggerAdapter,
    get_logger,
    setup_logging,
    setup_logging_from_config,
)

__all__ = [
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    "LoggerMixin",
    "SegmentLoggerAdapter",
]
