"""
Tests for structured logging (freight_kernel/logging_config.py).

Covers:
- JSON line format, extras and exception payloads
- LogContext propagation, restoration and field validation
- configure_logging idempotence and level names
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from freight_kernel.domain.dtos import LedgerStatus
from freight_kernel.exceptions import OverpaymentError
from freight_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def stream():
    """Configure logging into a StringIO and return it."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler)
    return buffer


def _records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestStructuredFormatter:

    def test_envelope(self, stream):
        get_logger("engines.settlement").info("settlement_computed")

        (record,) = _records(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "settlement_computed"
        assert record["logger"] == "freight_kernel.engines.settlement"
        assert "ts" in record

    def test_extras_keep_amounts_as_strings(self, stream):
        expense_id = uuid4()
        get_logger("modules.ledger").info("ledger_allocation_applied", extra={
            "expense_id": expense_id,
            "total_applied": Decimal("600.00"),
            "status": LedgerStatus.SETTLED,
            "line_count": 2,
        })

        (record,) = _records(stream)
        assert record["expense_id"] == str(expense_id)
        assert record["total_applied"] == "600.00"
        assert record["status"] == "settled"
        assert record["line_count"] == 2

    def test_context_fields_merged(self, stream):
        LogContext.set(tenant_id="acme-freight", driver_id="drv-456")
        get_logger("test").info("with_context")

        (record,) = _records(stream)
        assert record["tenant_id"] == "acme-freight"
        assert record["driver_id"] == "drv-456"
        assert "settlement_id" not in record

    def test_plain_exception(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "traceback" in record

    def test_ledger_exception_fields(self, stream):
        try:
            raise OverpaymentError("inv-1", Decimal("500.00"), Decimal("2000.00"), Decimal("2400.00"))
        except OverpaymentError:
            get_logger("test").warning("payment_error", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_code"] == "OVERPAYMENT"
        assert record["exc_invoice_id"] == "inv-1"
        assert record["exc_max_amount"] == "400.00"

    def test_debug_dropped_at_default_level(self, stream):
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _records(stream)] == ["first"]


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", tenant_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "tenant_id": "y"}

    def test_none_leaves_value(self):
        LogContext.set(tenant_id="acme")
        LogContext.set(tenant_id=None, actor_id="a")
        assert LogContext.get_all() == {"tenant_id": "acme", "actor_id": "a"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(settlement_id="outer")
        with LogContext.bind(settlement_id="inner", driver_id=uuid4()):
            assert LogContext.get_all()["settlement_id"] == "inner"
        assert LogContext.get_all() == {"settlement_id": "outer"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(tenant_id="t"):
                raise RuntimeError("inside")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="invoice_no"):
            LogContext.bind(invoice_no="INV-2024-1000")

    def test_threads_do_not_share_context(self):
        LogContext.set(tenant_id="main")

        def read_in_thread():
            return LogContext.get_all()

        with ThreadPoolExecutor(max_workers=1) as executor:
            assert executor.submit(read_in_thread).result() == {}
        assert LogContext.get_all() == {"tenant_id": "main"}


class TestConfigureLogging:

    def test_idempotent(self, stream):
        root = logging.getLogger("freight_kernel")
        before = list(root.handlers)

        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert root.handlers == before
        structured = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert len(structured) == 1

    def test_level_by_name(self):
        configure_logging(level="debug", handler=logging.NullHandler())
        assert logging.getLogger("freight_kernel").level == logging.DEBUG

    def test_unknown_level_name(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="chatty")

    def test_children_inherit_handler(self):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        handler.setFormatter(StructuredFormatter())
        configure_logging(handler=handler, level=logging.DEBUG)

        get_logger("modules.ar.numbering").debug("invoice_number_minted")

        (record,) = _records(buffer)
        assert record["logger"] == "freight_kernel.modules.ar.numbering"
