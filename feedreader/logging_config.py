"""Structured logging configuration for the feed reader."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

LOGGER_PREFIX = "feedreader"

# Record attributes copied into the JSON payload when present.
CONTEXT_FIELDS = (
    "execution_id",
    "component",
    "feed_id",
    "feed_url",
    "entry_id",
    "metrics",
)

COMPONENTS = (
    "main",
    "fetcher",
    "feed_parser",
    "resolver",
    "reconciler",
    "feed_store",
    "cloudwatch_metrics",
)


class StructuredFormatter(logging.Formatter):
    """Formats log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ExecutionLogger:
    """Logger bound to an execution id and a component name.

    Keyword arguments passed to the logging methods are attached to the
    record as ``extra`` fields, so they end up in the JSON output when the
    field is listed in ``CONTEXT_FIELDS``.
    """

    def __init__(self, execution_id: str, component: str = "main"):
        self.execution_id = execution_id
        self.component = component
        self.logger = logging.getLogger(f"{LOGGER_PREFIX}.{component}")
        self.start_time: datetime | None = None

    def _log(self, level: int, message: str, **kwargs) -> None:
        extra = {
            "execution_id": self.execution_id,
            "component": self.component,
            **kwargs,
        }
        self.logger.log(level, message, extra=extra)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def log_execution_start(self, **kwargs) -> None:
        """Log the start of a run and remember when it began."""
        self.start_time = datetime.now(UTC)
        self.info(
            f"Starting {self.component} execution",
            execution_start=self.start_time.isoformat(),
            **kwargs,
        )

    def log_execution_end(self, success: bool = True, **kwargs) -> None:
        """Log the end of a run with its duration."""
        end_time = datetime.now(UTC)
        duration_seconds = None
        if self.start_time:
            duration_seconds = (end_time - self.start_time).total_seconds()

        self.info(
            f"Completed {self.component} execution",
            execution_end=end_time.isoformat(),
            execution_duration_seconds=duration_seconds,
            execution_success=success,
            **kwargs,
        )

    def log_feed_reconciled(
        self, feed_id: str, feed_url: str, total_entries: int, new_entries: int
    ) -> None:
        self.info(
            f"Reconciled feed: {new_entries} new of {total_entries} entries",
            feed_id=feed_id,
            feed_url=feed_url,
            total_entries=total_entries,
            new_entries=new_entries,
        )

    def log_feed_failed(self, feed_id: str, feed_url: str, error: str) -> None:
        self.error(
            f"Failed to reconcile feed {feed_url}: {error}",
            feed_id=feed_id,
            feed_url=feed_url,
            error=error,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self.info("Execution metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Send JSON logs for the whole process to stdout.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    for component in COMPONENTS:
        logger = logging.getLogger(f"{LOGGER_PREFIX}.{component}")
        logger.setLevel(level)
        logger.propagate = True


def create_execution_logger(
    component: str, execution_id: str | None = None
) -> ExecutionLogger:
    """Create an execution logger for a component.

    A fresh execution id is generated when none is given.
    """
    if not execution_id:
        execution_id = f"exec_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"

    return ExecutionLogger(execution_id, component)
