"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Services receive a
    SQLAlchemy ``Session`` and persist through ``session.flush()`` --
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (``session_scope()``, the execution session's SAVEPOINT, or a test
      fixture) owns commit and rollback.
    - Database failures surface as ``PersistenceError``; no raw
      ``SQLAlchemyError`` crosses the service boundary.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sla_kernel.db.base import Base
from sla_kernel.exceptions import PersistenceError
from sla_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide list queries -- those belong in
          ``sla_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    def _flush(self, operation: str, contract_id: UUID | None = None) -> None:
        """Flush pending writes, translating driver failures to PersistenceError."""
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "persistence_failed",
                extra={
                    "operation": operation,
                    "contract_id": str(contract_id) if contract_id else None,
                },
                exc_info=True,
            )
            raise PersistenceError(
                operation,
                str(exc.__class__.__name__),
                str(contract_id) if contract_id else None,
            ) from exc
