"""Tests for logging and the progress display."""

import io
import json
import logging

import pytest

from repograph.core.errors import GraphBuildError
from repograph.core.logging import LogLevel, StructuredLogger, configure_logging, get_logger
from repograph.core.progress import ProgressIndicator


def _json_lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestStructuredLogger:
    """Test analysis pass events."""

    def test_completed_pass_fields(self):
        stream = io.StringIO()
        logger = StructuredLogger(json_output=True, stream=stream)
        with logger.analysis_pass("import_graph") as fields:
            fields.update(nodes=3, edges=2)
        started, completed = _json_lines(stream)
        assert started["status"] == "started"
        assert completed["message"] == "Analysis pass import_graph completed"
        assert completed["pass_name"] == "import_graph"
        assert completed["nodes"] == 3
        assert completed["edges"] == 2
        assert "duration_ms" in completed

    def test_failed_pass_is_logged_and_reraised(self):
        stream = io.StringIO()
        logger = StructuredLogger(json_output=True, stream=stream)
        with pytest.raises(GraphBuildError):
            with logger.analysis_pass("import_graph"):
                raise GraphBuildError("File not found: /w/a.ts")
        failed = _json_lines(stream)[-1]
        assert failed["levelname"] == "ERROR"
        assert failed["status"] == "failed"
        assert failed["error_type"] == "GraphBuildError"

    def test_plain_output_folds_fields_into_message(self):
        stream = io.StringIO()
        logger = StructuredLogger(stream=stream)
        logger.event(logging.INFO, "Scanned", files=4)
        assert "Scanned (files=4)" in stream.getvalue()

    def test_level_filters_module_loggers(self):
        stream = io.StringIO()
        StructuredLogger(level=LogLevel.WARNING, stream=stream)
        logging.getLogger("repograph.analysis.heatmap").info("hidden")
        logging.getLogger("repograph.analysis.heatmap").warning("shown")
        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_configure_logging_reuses_logger(self, tmp_path):
        log_file = tmp_path / "logs" / "repograph.log"
        logger = configure_logging(level="debug", json_output=False, log_file=str(log_file))
        assert logger is get_logger()
        assert logger.level == LogLevel.DEBUG
        logging.getLogger("repograph.core.config").debug("to file")
        assert "to file" in log_file.read_text(encoding="utf-8")
        configure_logging(level="ERROR")
        assert logger.log_file == log_file


class TestProgressIndicator:
    """Test the stderr progress display."""

    def test_disabled_indicator_is_silent(self):
        stream = io.StringIO()
        progress = ProgressIndicator(enabled=False, stream=stream)
        with progress.stage("Building"):
            progress.update("scanning")
            progress.done("3 nodes", ["w"])
        assert stream.getvalue() == ""

    def test_done_and_warnings(self):
        stream = io.StringIO()
        progress = ProgressIndicator(stream=stream)
        with progress.stage("Building workspace import graph"):
            progress.update("Scanning files")
            progress.done("3 nodes, 2 edges", ["File search limit reached"])
        output = stream.getvalue()
        assert "Building workspace import graph: 3 nodes, 2 edges" in output
        assert "File search limit reached" in output

    def test_failure_is_echoed(self):
        stream = io.StringIO()
        progress = ProgressIndicator(stream=stream)
        with pytest.raises(GraphBuildError):
            with progress.stage("Building"):
                raise GraphBuildError("Folder not found: /w/x")
        assert "Folder not found: /w/x" in stream.getvalue()
