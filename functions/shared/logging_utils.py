"""
Structured logging utilities for CloudWatch Logs Insights.
"""

import json
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request correlation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_RESERVED_ATTRS = (
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "asctime", "taskName",
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
            "function_name": os.environ.get("AWS_LAMBDA_FUNCTION_NAME", ""),
        }

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure structured JSON logging for Lambda.

    Call this at the start of your handler.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)

    return root_logger


def set_request_id(event: dict) -> str:
    """
    Extract or generate request ID and set in context.

    Args:
        event: Lambda event

    Returns:
        Request ID string
    """
    request_id = (event.get("requestContext") or {}).get("requestId")

    if not request_id:
        headers = event.get("headers") or {}
        request_id = headers.get("x-request-id") or headers.get("X-Request-Id")

    if not request_id:
        request_id = str(uuid.uuid4())

    request_id_var.set(request_id)
    return request_id


def log_external_call(
    logger: logging.Logger,
    service: str,
    operation: str,
    success: bool,
    latency_ms: float,
    error: Optional[str] = None,
) -> None:
    """Log external service call."""
    level = logging.INFO if success else logging.WARNING
    logger.log(
        level,
        f"External call to {service}: {operation} -> {'success' if success else 'failed'}",
        extra={
            "service": service,
            "operation": operation,
            "success": success,
            "latency_ms": latency_ms,
            "error": error,
        },
    )


class PipelineTrace:
    """
    Per-run diagnostic trace of pipeline stages.

    Collects labelled lines and stage timings while a pipeline runs and
    emits them in one block via summary(). A disabled trace ignores every
    call, so stages can log unconditionally.
    """

    def __init__(self, enabled: bool, logger: Optional[logging.Logger] = None):
        self.enabled = enabled
        self.logger = logger or logging.getLogger("usedby.trace")
        self.entries: list[dict] = []
        self._timers: dict[str, float] = {}

    def log(self, label: str, message: str) -> None:
        if not self.enabled:
            return
        self.entries.append({"label": label, "message": message, "time": None})

    def time_start(self, label: str) -> None:
        if not self.enabled:
            return
        self._timers[label] = time.monotonic()

    def time_end(self, label: str) -> None:
        if not self.enabled:
            return

        start = self._timers.pop(label, None)
        if start is None:
            return

        elapsed = f"{round((time.monotonic() - start) * 1000)}ms"

        # Attach to the latest line with the same label, if any
        for entry in reversed(self.entries):
            if entry["label"] == label:
                entry["time"] = elapsed
                return

        self.entries.append({"label": label, "message": "", "time": elapsed})

    def summary(self) -> None:
        if not self.enabled or not self.entries:
            return

        width = max(len(e["label"]) for e in self.entries)
        for entry in self.entries:
            time_part = entry["time"].rjust(8) if entry["time"] else ""
            gap = "  " if entry["time"] and entry["message"] else ""
            line = f"[trace]   {entry['label'].ljust(width)}   {entry['message']}{gap}{time_part}"
            self.logger.info(line.rstrip())
