"""Structured logging utilities for policyscan.

This module provides thread-safe structured logging using structlog.
Every log line emitted during a scan carries that scan's scan_id.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for scan tracking
scan_id_var: ContextVar[Optional[str]] = ContextVar("scan_id", default=None)


def add_scan_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add scan_id to log context if available."""
    scan_id = scan_id_var.get()
    if scan_id and "scan_id" not in event_dict:
        event_dict["scan_id"] = scan_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    """Bind to whatever sys.stderr is at call time, not at configure time."""
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False
) -> None:
    """Configure structured logging for the application.

    Logs go to stderr so that rendered scan results on stdout stay clean.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_scan_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "policyscan") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for tracking stage performance."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        slow_ms: float = 1000.0,
        **fields: Any,
    ):
        """Initialize performance logger.

        Args:
            operation: Name of the operation being timed
            logger: Logger instance to use (creates new if None)
            slow_ms: Durations above this are logged at warning level
            fields: Extra key/value pairs attached to the timing log line
        """
        self.operation = operation
        self.logger = logger or get_logger()
        self.slow_ms = slow_ms
        self.fields = fields
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop timing and log performance."""
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                **self.fields,
            )
        else:
            log_method = self.logger.warning if duration_ms > self.slow_ms else self.logger.debug
            log_method(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.fields,
            )

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        if self.end_time == 0:
            return (time.perf_counter() - self.start_time) * 1000
        return (self.end_time - self.start_time) * 1000


def set_scan_id(scan_id: str) -> None:
    """Set scan ID in context for all subsequent logs.

    Worker threads do not inherit context variables, so the orchestrator
    calls this again at the start of each worker task.

    Args:
        scan_id: Unique identifier for the scan
    """
    scan_id_var.set(scan_id)


def clear_scan_id() -> None:
    """Clear scan ID from context."""
    scan_id_var.set(None)


# Initialize logging with sensible defaults
# This will be reconfigured by the CLI based on config
configure_logging()
