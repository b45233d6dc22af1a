"""
Tests for structured logging utilities module.

Tests cover JSON formatting, request ID correlation, external call
logging and the per-run pipeline trace.
"""

import json
import logging
import os
import uuid
from unittest.mock import MagicMock, patch

from shared.logging_utils import (
    PipelineTrace,
    StructuredFormatter,
    configure_structured_logging,
    log_external_call,
    request_id_var,
    set_request_id,
)


def make_record(msg="Test", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter class."""

    def test_format_includes_required_fields(self):
        """Formatter should include timestamp, level, logger, message."""
        parsed = json.loads(StructuredFormatter().format(make_record("Warning message", logging.WARNING)))

        assert "timestamp" in parsed
        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "test.logger"
        assert parsed["message"] == "Warning message"

    def test_format_includes_request_id_from_context(self):
        """Formatter should include request_id from context variable."""
        token = request_id_var.set("req-12345")
        try:
            parsed = json.loads(StructuredFormatter().format(make_record()))
            assert parsed["request_id"] == "req-12345"
        finally:
            request_id_var.reset(token)

    def test_format_includes_lambda_function_name(self):
        """Formatter should include AWS_LAMBDA_FUNCTION_NAME env var."""
        with patch.dict(os.environ, {"AWS_LAMBDA_FUNCTION_NAME": "usedby-data"}):
            parsed = json.loads(StructuredFormatter().format(make_record()))

        assert parsed["function_name"] == "usedby-data"

    def test_format_includes_extra_fields(self):
        """Extra fields passed to the log call end up in the JSON."""
        parsed = json.loads(StructuredFormatter().format(make_record(platform="npm", repos=12)))

        assert parsed["platform"] == "npm"
        assert parsed["repos"] == 12

    def test_format_handles_non_serializable_extra(self):
        """Non-JSON values are stringified instead of failing."""
        parsed = json.loads(StructuredFormatter().format(make_record(obj=object())))

        assert parsed["obj"].startswith("<object object")


class TestConfigureStructuredLogging:
    def test_replaces_root_handlers(self):
        root = logging.getLogger()
        original = root.handlers[:]
        try:
            logger = configure_structured_logging()

            assert logger is root
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = original


class TestSetRequestId:
    """Tests for request ID extraction."""

    def test_from_request_context(self):
        assert set_request_id({"requestContext": {"requestId": "ctx-1"}}) == "ctx-1"
        assert request_id_var.get() == "ctx-1"

    def test_from_header(self):
        assert set_request_id({"headers": {"x-request-id": "hdr-1"}}) == "hdr-1"

    def test_generates_uuid(self):
        request_id = set_request_id({})
        assert uuid.UUID(request_id)


class TestLogExternalCall:
    def test_success_logs_info(self):
        logger = MagicMock()

        log_external_call(logger, "github", "search_code", True, 120.5)

        level, message = logger.log.call_args.args
        assert level == logging.INFO
        assert "success" in message
        assert logger.log.call_args.kwargs["extra"]["latency_ms"] == 120.5

    def test_failure_logs_warning(self):
        logger = MagicMock()

        log_external_call(logger, "github", "graphql", False, 10, error="timeout")

        assert logger.log.call_args.args[0] == logging.WARNING
        assert logger.log.call_args.kwargs["extra"]["error"] == "timeout"


class TestPipelineTrace:
    def test_disabled_trace_records_nothing(self):
        logger = MagicMock()
        trace = PipelineTrace(enabled=False, logger=logger)

        trace.log("search", "100 repos")
        trace.time_start("search")
        trace.time_end("search")
        trace.summary()

        assert trace.entries == []
        logger.info.assert_not_called()

    def test_timing_attaches_to_matching_label(self):
        trace = PipelineTrace(enabled=True, logger=MagicMock())

        trace.time_start("search")
        trace.log("search", "100 repos")
        trace.time_end("search")

        assert len(trace.entries) == 1
        assert trace.entries[0]["time"].endswith("ms")

    def test_timing_without_line_adds_one(self):
        trace = PipelineTrace(enabled=True, logger=MagicMock())

        trace.time_start("total")
        trace.time_end("total")

        assert trace.entries[0]["label"] == "total"
        assert trace.entries[0]["message"] == ""

    def test_summary_emits_one_line_per_entry(self):
        logger = MagicMock()
        trace = PipelineTrace(enabled=True, logger=logger)

        trace.log("search", "100 repos")
        trace.log("enrich", "100 → 80")
        trace.summary()

        lines = [call.args[0] for call in logger.info.call_args_list]
        assert len(lines) == 2
        assert all(line.startswith("[trace]") for line in lines)
        assert "100 → 80" in lines[1]
