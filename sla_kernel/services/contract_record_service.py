"""
ContractRecordService -- persistence collaborator for service contracts.

Responsibility:
    Reads and writes ``ServiceContract`` rows on behalf of the execution
    session and the reconciliation service: checkpoint saves, the
    finalization update, reconciliation field writes, and the yearly
    "start new service year" batch reset.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ``sla_services.execution_session`` and
    ``sla_services.reconciliation_service``.

Invariants enforced:
    - Returns frozen ``ContractInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.
    - ``signer_name`` and ``signature_ref`` are written together by
      ``mark_executed`` and never one without the other.
    - Every write increments ``version`` and stamps ``last_update``.
    - In optimistic mode, a write carrying a stale ``expected_version``
      is rejected before anything changes.

Failure modes:
    - ContractNotFoundError: unknown contract id.
    - MissingSignerError / MissingSignatureError: incomplete sign-off.
    - OptimisticLockError: stale version (optimistic mode only).
    - ConfirmationRequiredError / CapabilityError: service-year reset
      without confirmation or by a technician.
    - PersistenceError: any database failure during a write.

Audit relevance:
    Checkpoints, finalizations, reconciliation writes and the service-year
    reset are logged with contract id and resulting version.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from sla_config.schema import ConcurrencyConfig, ConcurrencyMode
from sla_kernel.domain.capability import Actor, Capability, require_capability
from sla_kernel.domain.category import ServiceCategory
from sla_kernel.domain.clock import Clock, SystemClock
from sla_kernel.domain.dtos import ContractInfo
from sla_kernel.domain.values import Attachment, ResultClass
from sla_kernel.exceptions import (
    ConfirmationRequiredError,
    ContractNotFoundError,
    MissingSignatureError,
    MissingSignerError,
    OptimisticLockError,
)
from sla_kernel.logging_config import get_logger
from sla_kernel.models.contract import ServiceContract
from sla_kernel.services.base import BaseService

logger = get_logger("services.contract_record")


class ContractRecordService(BaseService[ServiceContract]):
    """
    Read/write access to service contract records.

    Contract:
        Mutation methods flush within the caller's transaction and return
        the refreshed ``ContractInfo``.

    Non-goals:
        - Does NOT enforce the execution workflow (that is the session).
        - Does NOT classify reconciliation (that is the engine).
        - Does NOT edit contact/location fields beyond creation; plain
          field editing is an outer concern.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        concurrency: ConcurrencyConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._concurrency = concurrency or ConcurrencyConfig()

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return self._concurrency.mode

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _get(self, contract_id: UUID) -> ServiceContract:
        contract = self.session.get(ServiceContract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def get(self, contract_id: UUID) -> ContractInfo:
        """
        Get a contract by ID.

        Raises:
            ContractNotFoundError: If contract doesn't exist.
        """
        return self._get(contract_id).to_dto()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create_contract(
        self,
        *,
        category: ServiceCategory,
        client_name: str,
        planned_month: int,
        actor_id: UUID,
        location: str = "",
        city: str = "",
        price: Decimal | None = None,
        hours_planned: Decimal | None = None,
        reference_number: str | None = None,
        contact_name: str | None = None,
        contact_phone: str | None = None,
        contact_email: str | None = None,
        comments: str = "",
        attachments: Iterable[Attachment] = (),
    ) -> ContractInfo:
        """
        Create a new service contract, not yet executed.

        Raises:
            InvalidPlannedMonthError: planned_month outside 1..12.
            InvalidPlannedHoursError: hours_planned negative or finer than 0.01.
            PersistenceError: the insert failed.
        """
        contract = ServiceContract(
            category=ServiceCategory(category),
            client_name=client_name,
            planned_month=planned_month,
            location=location,
            city=city,
            price=price if price is not None else Decimal("0"),
            hours_planned=hours_planned,
            reference_number=reference_number,
            contact_name=contact_name,
            contact_phone=contact_phone,
            contact_email=contact_email,
            comments=comments,
            attachments=[a.to_dict() for a in attachments],
            is_executed=False,
            calculation_done=False,
            version=1,
            created_by_id=actor_id,
        )
        self.session.add(contract)
        self._flush("contract_create")
        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "category": contract.category.value,
                "planned_month": planned_month,
            },
        )
        return contract.to_dto()

    def _check_version(self, contract: ServiceContract, expected_version: int | None) -> None:
        if expected_version is None or self._concurrency.mode != ConcurrencyMode.OPTIMISTIC:
            return
        self.session.refresh(contract, attribute_names=["version"])
        if contract.version != expected_version:
            logger.warning(
                "contract_version_conflict",
                extra={
                    "contract_id": str(contract.id),
                    "expected_version": expected_version,
                    "actual_version": contract.version,
                },
            )
            raise OptimisticLockError(
                "ServiceContract", str(contract.id), expected_version, contract.version,
            )

    def _touch(self, contract: ServiceContract, actor_id: UUID) -> None:
        contract.version = (contract.version or 0) + 1
        contract.updated_by_id = actor_id
        contract.last_update = self._clock.now()

    def save_progress(
        self,
        contract_id: UUID,
        *,
        actor_id: UUID,
        comments: str | None = None,
        execution_report: str | None = None,
        expected_version: int | None = None,
    ) -> ContractInfo:
        """
        Checkpoint write: persist working text without changing ``is_executed``.

        ``None`` leaves a field unchanged.
        """
        contract = self._get(contract_id)
        self._check_version(contract, expected_version)

        if comments is not None:
            contract.comments = comments
        if execution_report is not None:
            contract.execution_report = execution_report
        self._touch(contract, actor_id)
        self._flush("contract_checkpoint", contract_id)

        logger.info(
            "contract_progress_saved",
            extra={"contract_id": str(contract_id), "version": contract.version},
        )
        return contract.to_dto()

    def mark_executed(
        self,
        contract_id: UUID,
        *,
        actor_id: UUID,
        signer_name: str,
        signature_ref: str,
        comments: str | None = None,
        execution_report: str | None = None,
        expected_version: int | None = None,
    ) -> ContractInfo:
        """
        Finalization write: executed flag, sign-off and working text together.

        Raises:
            MissingSignerError / MissingSignatureError: either part of the
                sign-off is blank.
            OptimisticLockError: stale version (optimistic mode).
            PersistenceError: the update failed.
        """
        if not (signer_name or "").strip():
            raise MissingSignerError(str(contract_id))
        if not (signature_ref or "").strip():
            raise MissingSignatureError(str(contract_id))

        contract = self._get(contract_id)
        self._check_version(contract, expected_version)

        now = self._clock.now()
        contract.is_executed = True
        contract.signer_name = signer_name.strip()
        contract.signature_ref = signature_ref
        contract.executed_at = now
        if comments is not None:
            contract.comments = comments
        if execution_report is not None:
            contract.execution_report = execution_report
        self._touch(contract, actor_id)
        self._flush("contract_update", contract_id)

        logger.info(
            "contract_marked_executed",
            extra={
                "contract_id": str(contract_id),
                "signature_ref": signature_ref,
                "version": contract.version,
            },
        )
        return contract.to_dto()

    def record_reconciliation(
        self,
        contract_id: UUID,
        *,
        actor_id: UUID,
        actual_hours: Decimal,
        result_class: ResultClass,
        result_note: str,
    ) -> ContractInfo:
        """Write the reconciliation outcome and set ``calculation_done``."""
        contract = self._get(contract_id)
        contract.actual_hours = actual_hours
        contract.result_class = result_class
        contract.result_note = result_note
        contract.calculation_done = True
        self._touch(contract, actor_id)
        self._flush("reconciliation_commit", contract_id)

        logger.info(
            "contract_reconciled",
            extra={
                "contract_id": str(contract_id),
                "result_class": result_class.value,
                "actual_hours": actual_hours,
            },
        )
        return contract.to_dto()

    def clear_reconciliation(self, contract_id: UUID, *, actor_id: UUID) -> ContractInfo:
        """
        Clear every reconciliation field.

        Idempotent: a contract with nothing to clear is returned unchanged
        and its version is not bumped.
        """
        contract = self._get(contract_id)
        if (
            not contract.calculation_done
            and contract.actual_hours is None
            and contract.result_class is None
            and contract.result_note is None
        ):
            return contract.to_dto()

        contract.actual_hours = None
        contract.result_class = None
        contract.result_note = None
        contract.calculation_done = False
        self._touch(contract, actor_id)
        self._flush("reconciliation_revert", contract_id)

        logger.info("contract_reconciliation_cleared", extra={"contract_id": str(contract_id)})
        return contract.to_dto()

    def start_new_service_year(self, *, actor: Actor, confirmed: bool = False) -> int:
        """
        Clear ``is_executed`` on every executed contract in one batch.

        ``calculation_done`` is cleared with it so a reconciled flag never
        outlives its executed flag.  Recorded hours, class and note stay as
        last cycle's result.

        Returns:
            Number of contracts reset.

        Raises:
            CapabilityError: actor may not start a service year.
            ConfirmationRequiredError: ``confirmed`` is not True.
            PersistenceError: the batch update failed.
        """
        require_capability(actor, Capability.START_SERVICE_YEAR)
        if confirmed is not True:
            raise ConfirmationRequiredError("start_new_service_year")

        executed = self.session.execute(
            select(ServiceContract).where(ServiceContract.is_executed.is_(True))
        ).scalars().all()
        for contract in executed:
            contract.is_executed = False
            contract.calculation_done = False
            self._touch(contract, actor.actor_id)
        self._flush("start_new_service_year")

        count = len(executed)
        logger.info(
            "service_year_started",
            extra={"contracts_reset": count, "actor_id": str(actor.actor_id)},
        )
        return count
