"""
Pytest fixtures for the SLA service-record test suite.

Provides:
- In-memory SQLite database, fresh tables per test
- Per-test session, rolled back and closed at teardown
- Structured log capture
- Deterministic clock, actors and sample contracts
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from sla_config.schema import SlaConfig
from sla_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from sla_kernel.domain.capability import Actor, Role
from sla_kernel.domain.category import ServiceCategory
from sla_kernel.domain.clock import DeterministicClock
from sla_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sla_kernel.services.blob_storage import InMemoryBlobStorage
from sla_kernel.services.checklist_store import ChecklistStore
from sla_kernel.services.contract_record_service import ContractRecordService

ADMIN_ID = UUID("00000000-0000-0000-0000-00000000a001")
TECHNICIAN_ID = UUID("00000000-0000-0000-0000-00000000b001")

SIGNATURE_PNG = b"\x89PNG\r\n\x1a\n" + b"signature-stroke-data"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sla_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "execution_finalized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sla_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Database session; uncommitted work is rolled back at teardown."""
    sess = get_session()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 11, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def admin() -> Actor:
    return Actor(ADMIN_ID, Role.ADMINISTRATOR)


@pytest.fixture
def technician() -> Actor:
    return Actor(TECHNICIAN_ID, Role.TECHNICIAN)


@pytest.fixture
def sla_config() -> SlaConfig:
    return SlaConfig()


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def signature_png() -> bytes:
    return SIGNATURE_PNG


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def contract_service(session, deterministic_clock) -> ContractRecordService:
    return ContractRecordService(session, deterministic_clock)


@pytest.fixture
def checklist_store(session) -> ChecklistStore:
    return ChecklistStore(session)


@pytest.fixture
def make_contract(contract_service):
    """Factory for contracts with sensible defaults."""

    def _make(
        category: ServiceCategory = ServiceCategory.ACCESS_CONTROL,
        client_name: str = "Acme Logistics",
        planned_month: int = 11,
        hours_planned: Decimal | None = Decimal("4"),
        **kwargs,
    ):
        return contract_service.create_contract(
            category=category,
            client_name=client_name,
            planned_month=planned_month,
            hours_planned=hours_planned,
            actor_id=kwargs.pop("actor_id", ADMIN_ID),
            location=kwargs.pop("location", "Industrieweg 12"),
            city=kwargs.pop("city", "Gent"),
            price=kwargs.pop("price", Decimal("450.00")),
            **kwargs,
        )

    return _make


@pytest.fixture
def inspection_contract(make_contract):
    return make_contract(
        category=ServiceCategory.ACCESS_CONTROL,
        reference_number="VO-2024-017",
        contact_name="Marie Peeters",
    )


@pytest.fixture
def report_contract(make_contract):
    return make_contract(
        category=ServiceCategory.GATE_AUTOMATION,
        client_name="Harbor Gate NV",
        planned_month=3,
    )


@pytest.fixture
def inspection_items(inspection_contract, checklist_store, admin):
    """Two checklist items imported for the inspection contract, in order."""
    checklist_store.import_bulk(
        inspection_contract.id,
        [
            ["1", "Door A", "Hall", "online"],
            ["2", "Door B", "Warehouse", "offline"],
        ],
        actor=admin,
    )
    return checklist_store.list(inspection_contract.id)
