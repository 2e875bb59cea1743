"""
Tests for billing_kernel.logging_config.

Covers:
- JSON record layout and value serialization
- Error payloads for billing exceptions
- LogContext binding across threads
- Handler installation and reset
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.exceptions import InvalidDiscountError
from billing_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)
from billing_modules.invoicing.models import InvoiceStatus


@pytest.fixture(autouse=True)
def _isolated():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def emitted():
    """Install the JSON handler on a buffer; returns a reader of parsed records."""
    stream = StringIO()
    configure_logging(stream=stream, level="debug")

    def _records() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _records


class TestRecordLayout:

    def test_core_keys(self, emitted):
        get_logger("test").info("invoice_sent")
        (record,) = emitted()
        assert record["level"] == "INFO"
        assert record["message"] == "invoice_sent"
        assert record["logger"] == "billing_kernel.test"
        assert record["ts"].endswith("+00:00")

    def test_extras_flattened(self, emitted):
        get_logger("test").info("invoice_saved", extra={"version": 2, "status": "sent"})
        (record,) = emitted()
        assert record["version"] == 2
        assert record["status"] == "sent"

    def test_domain_values_serialized(self, emitted):
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "client_ref": uid,
                "due": date(2024, 2, 14),
                "rate": Decimal("0.08"),
                "to_status": InvoiceStatus.PAID,
                "currencies": {"USD", "EUR"},
            },
        )
        (record,) = emitted()
        assert record["client_ref"] == str(uid)
        assert record["due"] == "2024-02-14"
        assert record["rate"] == "0.08"
        assert record["to_status"] == "paid"
        assert record["currencies"] == ["EUR", "USD"]

    def test_context_merged(self, emitted):
        with LogContext.bind(invoice_id="inv-1", correlation_id="req-9"):
            get_logger("test").info("bound")
        get_logger("test").info("unbound")
        bound, unbound = emitted()
        assert bound["invoice_id"] == "inv-1"
        assert bound["correlation_id"] == "req-9"
        assert "invoice_id" not in unbound

    def test_extra_cannot_override_core_keys(self, emitted):
        with LogContext.bind(invoice_id="from-context"):
            get_logger("test").info("clash", extra={"invoice_id": "from-extra"})
        (record,) = emitted()
        assert record["invoice_id"] == "from-context"


class TestErrorPayload:

    def test_plain_exception(self, emitted):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)
        (record,) = emitted()
        assert record["error"] == {"type": "ValueError", "message": "boom"}
        assert "ValueError: boom" in record["traceback"]

    def test_billing_error_code_and_fields(self, emitted):
        try:
            raise InvalidDiscountError("200.00 USD", "150.00 USD")
        except InvalidDiscountError:
            get_logger("test").warning("discount_rejected", exc_info=True)
        (record,) = emitted()
        error = record["error"]
        assert error["type"] == "InvalidDiscountError"
        assert error["code"] == "INVALID_DISCOUNT"
        assert error["fields"] == {"discount": "200.00 USD", "subtotal": "150.00 USD"}

    def test_no_error_without_exc_info(self, emitted):
        get_logger("test").error("failed")
        (record,) = emitted()
        assert "error" not in record
        assert "traceback" not in record


class TestLogContext:

    def test_fields(self):
        assert CONTEXT_FIELDS == ("correlation_id", "invoice_id", "client_id", "recurrence_id")

    def test_set_every_field(self):
        LogContext.set(**{name: name.upper() for name in CONTEXT_FIELDS})
        assert LogContext.get_all() == {name: name.upper() for name in CONTEXT_FIELDS}

    def test_bind_restores_previous(self):
        LogContext.set(invoice_id="outer")
        with LogContext.bind(invoice_id="inner", client_id="c"):
            assert LogContext.get_all() == {"invoice_id": "inner", "client_id": "c"}
        assert LogContext.get_all() == {"invoice_id": "outer"}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError), LogContext.bind(client_id="c"):
            raise RuntimeError
        assert LogContext.get_all() == {}

    def test_unknown_names_and_none_ignored(self):
        with LogContext.bind(invoice_id="i", actor_id="a", client_id=None):
            assert LogContext.get_all() == {"invoice_id": "i"}

    def test_values_stringified(self):
        uid = uuid4()
        with LogContext.bind(recurrence_id=uid):
            assert LogContext.get_all()["recurrence_id"] == str(uid)

    def test_threads_do_not_share_bindings(self):
        LogContext.set(invoice_id="main")

        def worker(n):
            LogContext.set(invoice_id=f"worker-{n}")
            return LogContext.get_all()["invoice_id"]

        with ThreadPoolExecutor(max_workers=4) as pool:
            seen = list(pool.map(worker, range(4)))

        assert seen == [f"worker-{n}" for n in range(4)]
        assert LogContext.get_all()["invoice_id"] == "main"


class TestConfigureLogging:

    def test_first_call_wins(self):
        first, second = StringIO(), StringIO()
        configure_logging(stream=first)
        configure_logging(stream=second)
        get_logger("test").info("once")
        assert len(logging.getLogger("billing_kernel").handlers) == 1
        assert "once" in first.getvalue()
        assert second.getvalue() == ""

    def test_level_by_name(self):
        stream = StringIO()
        configure_logging(stream=stream, level="warning")
        get_logger("test").info("dropped")
        get_logger("test").warning("kept")
        assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["kept"]

    def test_children_inherit(self, emitted):
        get_logger("deep.nested.module").debug("inherited")
        (record,) = emitted()
        assert record["logger"] == "billing_kernel.deep.nested.module"

    def test_reset_restores_propagation(self):
        configure_logging(stream=StringIO())
        reset_logging()
        root = logging.getLogger("billing_kernel")
        assert root.handlers == []
        assert root.propagate is True
