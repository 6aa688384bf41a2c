"""Tests for logging setup and segment-scoped loggers."""

import logging

import pytest

from sprint_analysis.analysis.segment_analyzer import SegmentAnalyzer
from sprint_analysis.utils.logging_config import (
    SegmentLoggerAdapter,
    setup_logging,
    setup_logging_from_config,
)
from tests.conftest import make_input, make_segment

COMPONENTS = ("sprint_analysis.analysis", "sprint_analysis.hfvp")


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in COMPONENTS:
        logging.getLogger(name).setLevel(logging.NOTSET)


class TestSetupLogging:
    """Handlers and levels"""

    def test_log_file_created(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(level="INFO", log_file=str(log_file), console_output=False)

        logging.getLogger("sprint_analysis.pipeline").info("run started")

        assert "run started" in log_file.read_text()

    def test_unknown_level_falls_back_to_info(self):
        root = setup_logging(level="LOUD", console_output=False)
        assert root.level == logging.INFO

    def test_component_levels(self, tmp_path):
        log_file = tmp_path / "run.log"
        setup_logging(
            level="WARNING",
            log_file=str(log_file),
            console_output=False,
            component_levels={"analysis": "DEBUG", "sprint_analysis.hfvp": "ERROR"},
        )

        logging.getLogger("sprint_analysis.analysis.merger").debug("merger detail")
        logging.getLogger("sprint_analysis.hfvp.modeler").warning("fit warning")
        logging.getLogger("sprint_analysis.pipeline").info("pipeline info")

        text = log_file.read_text()
        assert "merger detail" in text
        assert "fit warning" not in text
        assert "pipeline info" not in text


class TestSetupFromConfig:
    """The logging section of the YAML config"""

    def test_level_from_config(self):
        root = setup_logging_from_config({"logging": {"level": "WARNING"}})
        assert root.level == logging.WARNING

    def test_verbose_forces_debug(self):
        root = setup_logging_from_config({"logging": {"level": "WARNING"}}, verbose=True)
        assert root.level == logging.DEBUG

    def test_missing_section(self):
        root = setup_logging_from_config(None)
        assert root.level == logging.INFO

    def test_component_levels_from_config(self):
        setup_logging_from_config({"logging": {"levels": {"hfvp": "ERROR"}}})
        assert logging.getLogger("sprint_analysis.hfvp").level == logging.ERROR


class TestSegmentLogger:
    """Run and segment context on messages"""

    def test_prefix_with_run_and_segment(self):
        adapter = SegmentLoggerAdapter(logging.getLogger("test"), {"run_id": "trial-1", "segment_id": "A"})
        message, _ = adapter.process("4 steps", {})
        assert message == "[run trial-1, segment A] 4 steps"

    def test_prefix_with_segment_only(self):
        adapter = SegmentLoggerAdapter(logging.getLogger("test"), {"run_id": None, "segment_id": "B"})
        message, _ = adapter.process("4 steps", {})
        assert message == "[segment B] 4 steps"

    def test_analyzer_messages_carry_segment(self, caplog):
        segment = make_segment("cam-2", 0.0, 5.0, calibrated=False)
        with caplog.at_level(logging.INFO):
            SegmentAnalyzer().analyze(make_input(segment, [1.0, 2.0, 3.0]))

        assert "[segment cam-2] Segment has no calibration" in caplog.text
