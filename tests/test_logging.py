"""Tests for the structured logging system (sla_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from sla_kernel.domain.values import ResultClass
from sla_kernel.exceptions import PlannedHoursMissingError
from sla_kernel.logging_config import (
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
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "sla_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("contract_reconciled", extra={"version": 3, "result_class": "loss"})

        record = _parse_log(stream)
        assert record["version"] == 3
        assert record["result_class"] == "loss"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(contract_id="c-1", session_id="s-1")
        get_logger("test").info("execution_loaded")

        record = _parse_log(stream)
        assert record["contract_id"] == "c-1"
        assert record["session_id"] == "s-1"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise PlannedHoursMissingError("c-9", None)
        except PlannedHoursMissingError:
            get_logger("test").warning("reconciliation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PLANNED_HOURS_MISSING"
        assert record["exc_type"] == "PlannedHoursMissingError"
        assert record["exc_contract_id"] == "c-9"
        assert "traceback" in record

    def test_library_exception_has_no_kernel_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise IntegrityError("UPDATE service_contracts", {}, Exception("database unavailable"))
        except IntegrityError:
            get_logger("test").error("persistence_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "IntegrityError"
        assert "exc_code" not in record
        assert "exc_statement" not in record
        assert "traceback" in record

    def test_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed",
            extra={"contract": uid, "hours": Decimal("4.40"), "result": ResultClass.CORRECT},
        )

        record = _parse_log(stream)
        assert record["contract"] == str(uid)
        assert record["hours"] == "4.40"
        assert record["result"] == "correct"

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("hidden")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_clear(self):
        LogContext.set(correlation_id="x", actor_id="a")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "a"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(contract_id="outer")
        with LogContext.bind(contract_id="inner"):
            assert LogContext.get_all()["contract_id"] == "inner"
        assert LogContext.get_all()["contract_id"] == "outer"

    def test_bind_stringifies_and_skips_none(self):
        uid = uuid4()
        with LogContext.bind(contract_id=uid, session_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"contract_id": str(uid)}
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("sla_kernel").handlers) == 1

    def test_child_loggers_inherit(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("services.execution_session")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "sla_kernel.services.execution_session"
