"""Logging setup and analysis pass logging for repograph."""

import logging
import sys
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "repograph"


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.value)


def build_formatter(json_output: bool) -> logging.Formatter:
    """JSON lines carry pass fields as keys; plain lines fold them into the message."""
    if json_output:
        return jsonlogger.JsonFormatter("%(timestamp)s %(levelname)s %(name)s %(message)s", timestamp=True)
    return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def _format_fields(fields: dict[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in fields.items())


class StructuredLogger:
    """
    Owner of the ``repograph`` logger's handlers.

    Library modules log through ``logging.getLogger(__name__)`` and inherit
    whatever level, format and destinations are configured here. Analysis
    passes are logged as events with machine-readable fields, which the JSON
    formatter emits as top-level keys.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        json_output: bool = False,
        log_file: Optional[Path] = None,
        stream=None,
    ):
        """
        Initialize structured logger.

        Args:
            level: Threshold for every handler
            json_output: Emit JSON lines instead of plain text
            log_file: Also append to this file
            stream: Console stream (default: current sys.stderr)
        """
        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.logger.propagate = False
        self.stream = stream or sys.stderr
        self.level = level
        self.json_output = json_output
        self.log_file: Optional[Path] = None
        self.configure(level=level, json_output=json_output, log_file=log_file)

    def configure(
        self,
        level: Optional[LogLevel] = None,
        json_output: Optional[bool] = None,
        log_file: Optional[Path] = None,
    ) -> None:
        """Rebuild the handlers; arguments left as None keep their current value."""
        if level is not None:
            self.level = level
        if json_output is not None:
            self.json_output = json_output
        if log_file is not None:
            self.log_file = log_file

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            if isinstance(handler, logging.FileHandler):
                handler.close()

        handlers: list[logging.Handler] = [logging.StreamHandler(self.stream)]
        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_file, encoding="utf-8"))

        formatter = build_formatter(self.json_output)
        for handler in handlers:
            handler.setLevel(self.level.numeric)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
        self.logger.setLevel(self.level.numeric)

    def event(self, level: int, message: str, **fields: Any) -> None:
        """Log message with fields attached to the record."""
        if not self.logger.isEnabledFor(level):
            return
        if fields and not self.json_output:
            message = f"{message} ({_format_fields(fields)})"
        self.logger.log(level, message, extra=fields)

    @contextmanager
    def analysis_pass(self, pass_name: str) -> Iterator[dict[str, Any]]:
        """
        Log the start and outcome of one graph build or analysis pass.

        The yielded dict collects result fields (node and edge counts, ...)
        that are attached to the completion event. An exception is logged as
        a failed pass and re-raised.
        """
        self.event(logging.INFO, f"Analysis pass {pass_name} started", pass_name=pass_name, status="started")
        started = time.perf_counter()
        result: dict[str, Any] = {}
        try:
            yield result
        except Exception as e:
            self.event(
                logging.ERROR,
                f"Analysis pass {pass_name} failed",
                pass_name=pass_name,
                status="failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        self.event(
            logging.INFO,
            f"Analysis pass {pass_name} completed",
            pass_name=pass_name,
            status="completed",
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            **result,
        )


_default_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """The process-wide structured logger, created with defaults on first use."""
    global _default_logger
    if _default_logger is None:
        _default_logger = StructuredLogger()
    return _default_logger


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON-formatted logs
        log_file: Optional file path to write logs to

    Returns:
        Configured StructuredLogger instance
    """
    logger = get_logger()
    logger.configure(
        level=LogLevel[level.upper()],
        json_output=bool(json_output),
        log_file=Path(log_file) if log_file else None,
    )
    return logger
