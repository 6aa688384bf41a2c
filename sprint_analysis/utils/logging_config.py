"""Logging configuration for the sprint analysis system."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, Tuple

LOGGER_NAMESPACE = "sprint_analysis"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = logging.INFO
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

# Libraries whose debug output drowns the per-step logs
QUIET_LOGGERS = ("numpy", "pandas")


def _numeric_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), DEFAULT_LEVEL)


def _component_logger_name(component: str) -> str:
    if component == LOGGER_NAMESPACE or component.startswith(f"{LOGGER_NAMESPACE}."):
        return component
    return f"{LOGGER_NAMESPACE}.{component}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    console_output: bool = True,
    component_levels: Optional[Mapping[str, str]] = None,
) -> logging.Logger:
    """
    Set up logging for the application.

    Handlers pass every record; levels are decided by the loggers, so a
    single component (e.g. "analysis.merger") can be turned up to DEBUG
    while the rest of the run logs at INFO.

    Args:
        level: Root logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file (optional).
        log_format: Log message format.
        date_format: Date format for log messages.
        max_bytes: Maximum size of log file before rotation.
        backup_count: Number of backup log files to keep.
        console_output: Whether to log to stderr.
        component_levels: Levels per sprint_analysis subpackage or module,
            relative ("hfvp") or fully qualified ("sprint_analysis.hfvp").

    Returns:
        Root logger instance.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_numeric_level(level))
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format, date_format)

    if console_output:
        # stderr keeps command output on stdout clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for component, component_level in (component_levels or {}).items():
        logging.getLogger(_component_logger_name(component)).setLevel(_numeric_level(component_level))

    root_logger.debug(
        f"Logging configured: level={level}, file={log_file}, components={dict(component_levels or {})}"
    )

    return root_logger


def setup_logging_from_config(
    config: Optional[Mapping[str, Any]],
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure logging from the ``logging`` section of the YAML config.

    Recognized keys: level, file, format, max_bytes, backup_count and
    levels (component name to level). ``verbose`` forces DEBUG at the root.
    """
    section = (config or {}).get("logging") or {}
    return setup_logging(
        level="DEBUG" if verbose else section.get("level", "INFO"),
        log_file=section.get("file"),
        log_format=section.get("format", DEFAULT_FORMAT),
        max_bytes=int(section.get("max_bytes", DEFAULT_MAX_BYTES)),
        backup_count=int(section.get("backup_count", DEFAULT_BACKUP_COUNT)),
        component_levels=section.get("levels"),
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


class SegmentLoggerAdapter(logging.LoggerAdapter):
    """Prefixes records with the run and camera segment they concern."""

    def process(
        self,
        msg: Any,
        kwargs: MutableMapping[str, Any],
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        context = [
            f"{label} {self.extra[key]}"
            for key, label in (("run_id", "run"), ("segment_id", "segment"))
            if self.extra.get(key) is not None
        ]
        if context:
            msg = f"[{', '.join(context)}] {msg}"
        return msg, kwargs


class LoggerMixin:
    """
    Mixin class that provides a logger property.

    Classes that inherit from this mixin will have access to a
    self.logger attribute configured for that class, and to
    segment_logger() for messages about one camera segment.

    Example:
        class SegmentMerger(LoggerMixin):
            def merge(self, run, results):
                self.logger.info("Merging segments")
    """

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        if not hasattr(self, "_logger"):
            self._logger = logging.getLogger(
                f"{self.__class__.__module__}.{self.__class__.__name__}"
            )
        return self._logger

    def segment_logger(self, segment_id: str, run_id: Optional[str] = None) -> SegmentLoggerAdapter:
        """Logger whose messages carry the segment (and run) id."""
        return SegmentLoggerAdapter(self.logger, {"run_id": run_id, "segment_id": segment_id})
