"""Tests for the structured logging system (erp_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from erp_kernel.exceptions import InsufficientStockError
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests and restore the suite's setup afterwards."""
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


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "erp_kernel.test"
        assert "ts" in record

    def test_extra_fields_serialise_decimals_and_uuids(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        item_id = uuid4()
        get_logger("test").info(
            "stock_received",
            extra={"item_id": item_id, "new_avg_cost": Decimal("6.000000000"), "quantity": 10},
        )

        record = _parse_all_logs(stream)[0]
        assert record["item_id"] == str(item_id)
        assert record["new_avg_cost"] == "6.000000000"
        assert record["quantity"] == 10

    def test_exception_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("item-1", requested=12, available=10)
        except InsufficientStockError:
            get_logger("test").exception("issue_failed")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_requested"] == 12
        assert record["exc_available"] == 10
        assert "traceback" in record


class TestLogContext:

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(request_id="req-1", actor_id="actor-9")
        get_logger("test").info("with_context")

        record = _parse_all_logs(stream)[0]
        assert record["request_id"] == "req-1"
        assert record["actor_id"] == "actor-9"

    def test_bind_restores_previous_values(self):
        LogContext.set(document_ref="GR-1")
        with LogContext.bind(document_ref="GR-2"):
            assert LogContext.get_all()["document_ref"] == "GR-2"
        assert LogContext.get_all()["document_ref"] == "GR-1"

    def test_set_ignores_none(self):
        LogContext.set(request_id="req-1")
        LogContext.set(request_id=None)
        assert LogContext.get_all() == {"request_id": "req-1"}

    def test_clear(self):
        LogContext.set(correlation_id="c", request_id="r", actor_id="a", document_ref="d")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="tenant"):
            LogContext.set(tenant="acme")


class TestConfigureLogging:

    def test_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("erp_kernel").handlers
        ours = [h for h in handlers if isinstance(h.formatter, StructuredFormatter)]
        assert ours == [first]

    def test_reset_leaves_foreign_handlers(self):
        foreign = logging.NullHandler()
        namespace_logger = logging.getLogger("erp_kernel")
        namespace_logger.addHandler(foreign)
        try:
            configure_logging(handler=_make_handler()[0])
            reset_logging()
            assert foreign in namespace_logger.handlers
            assert not any(
                isinstance(h.formatter, StructuredFormatter) for h in namespace_logger.handlers
            )
        finally:
            namespace_logger.removeHandler(foreign)

    def test_level_applies(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        log = get_logger("test")
        log.info("dropped")
        log.warning("kept")

        messages = [r["message"] for r in _parse_all_logs(stream)]
        assert messages == ["kept"]

    def test_does_not_propagate_to_root(self):
        configure_logging(handler=_make_handler()[0])
        assert logging.getLogger("erp_kernel").propagate is False
