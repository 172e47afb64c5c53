"""Tests for the structured logging system (pharmacy_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from pharmacy_kernel.exceptions import InvalidTransitionError, StoreTimeoutError
from pharmacy_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG)


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
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "pharmacy_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "stock_incremented", extra={"amount": 50, "new_quantity": 55}
        )

        record = _parse_log(stream)
        assert record["amount"] == 50
        assert record["new_quantity"] == 55

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", request_number="SR-20240315-001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["request_number"] == "SR-20240315-001"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        """Kernel exceptions carry a code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvalidTransitionError("r-1", "Approved", "approve")
        except InvalidTransitionError:
            get_logger("test").error("transition_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_type"] == "InvalidTransitionError"
        assert record["exc_current_status"] == "Approved"
        assert record["exc_action"] == "approve"
        assert record["exc_retryable"] is False

    def test_retryable_flag_is_class_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise StoreTimeoutError("approve", 0.5)
        except StoreTimeoutError:
            get_logger("test").warning("timed_out", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STORE_TIMEOUT"
        assert record["exc_timeout"] == 0.5
        assert record["exc_retryable"] is True

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "request_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "priced", extra={"item_id": uid, "total_cost": Decimal("100.00")}
        )

        record = _parse_log(stream)
        assert record["item_id"] == str(uid)
        assert record["total_cost"] == "100.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", request_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "request_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        assert "request_id" not in LogContext.get_all()
        with LogContext.bind(request_id="temp"):
            assert LogContext.get_all()["request_id"] == "temp"
        assert "request_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(correlation_id="c", shelf="B4"):
            assert LogContext.get_all() == {"correlation_id": "c"}

    def test_set_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            LogContext.set(shelf="B4")

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            request_id="r",
            request_number="n",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["request_number"] == "n"
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # no-op

        # pytest's own capture handlers may sit on the same logger
        handlers = logging.getLogger("pharmacy_kernel").handlers
        structured = [h for h in handlers if isinstance(h.formatter, StructuredFormatter)]
        assert structured == [h1]
        assert h2 not in handlers

    def test_level_name_accepted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="warning")
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    def test_get_logger_returns_child(self):
        logger = get_logger("services.inventory_ledger")
        assert logger.name == "pharmacy_kernel.services.inventory_ledger"

    def test_logger_hierarchy(self):
        """Child loggers inherit the pharmacy_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("modules.replenishment.service").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "pharmacy_kernel.modules.replenishment.service"
