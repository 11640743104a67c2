"""Tests for the structured logging system (producao_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from producao_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "producao.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("allocated", extra={"worker_count": 3, "status": "completed"})

        record = _parse_log(stream)
        assert record["worker_count"] == 3
        assert record["status"] == "completed"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(run_id="run-1", period="2023-05")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["run_id"] == "run-1"
        assert record["period"] == "2023-05"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_producao_exception_code_extracted(self):
        """Producao exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from producao_kernel.exceptions import UnsupportedPeriodError

        try:
            raise UnsupportedPeriodError(2022, 12)
        except UnsupportedPeriodError:
            logger.error("period_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNSUPPORTED_PERIOD"
        assert record["exc_type"] == "UnsupportedPeriodError"
        assert record["exc_fiscal_year"] == 2022
        assert record["exc_fiscal_month"] == 12

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "run_id" not in record
        assert "worker_tax_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"request_id": uid})

        record = _parse_log(stream)
        assert record["request_id"] == str(uid)

    def test_decimal_and_date_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "with_values",
            extra={"amount": Decimal("1234.50"), "payment_date": date(2023, 7, 7)},
        )

        record = _parse_log(stream)
        assert record["amount"] == "1234.50"
        assert record["payment_date"] == "2023-07-07"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(run_id="x", period="2023-05")
        ctx = LogContext.get_all()
        assert ctx == {"run_id": "x", "period": "2023-05"}

    def test_clear(self):
        LogContext.set(run_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(worker_tax_id="outer")
        with LogContext.bind(worker_tax_id="inner"):
            assert LogContext.get_all()["worker_tax_id"] == "inner"
        assert LogContext.get_all()["worker_tax_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "run_id" not in LogContext.get_all()
        with LogContext.bind(run_id="temp"):
            assert LogContext.get_all()["run_id"] == "temp"
        assert "run_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(run_id="r", not_a_field="ignored"):
            assert LogContext.get_all() == {"run_id": "r"}

    def test_additive_set(self):
        LogContext.set(run_id="a")
        LogContext.set(period="2023-05")
        ctx = LogContext.get_all()
        assert ctx["run_id"] == "a"
        assert ctx["period"] == "2023-05"

    def test_all_fields(self):
        LogContext.set(
            run_id="r",
            period="2023-05",
            worker_tax_id="12345678901",
            correlation_id="c",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["worker_tax_id"] == "12345678901"
        assert ctx["correlation_id"] == "c"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("producao")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.orchestrator")
        assert logger.name == "producao.services.orchestrator"

    def test_logger_hierarchy(self):
        """Child loggers inherit the producao root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "producao.deep.nested.module"
