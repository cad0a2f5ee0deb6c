"""
sla_services.reconciliation_service -- Commit and revert hours reconciliation.

Responsibility:
    Turns a submitted actual-hours figure into a stored reconciliation
    result (class + explanatory note) on an executed contract, and takes it
    back out again.  Exposes the pending / completed pools for the
    reporting collaborator.

Architecture position:
    Services -- orchestration over the pure ``ReconciliationCalculator``
    and the kernel ``ContractRecordService``.

Invariants enforced:
    - Only pending contracts (executed, not yet calculated) can be
      committed, so ``calculation_done`` always implies ``is_executed`` and
      ``actual_hours`` present.
    - ``revert`` is idempotent: reverting a pending contract is a no-op.
    - Pool membership is derived from the stored flags.

Failure modes:
    - ReconciliationStateError: commit on an unexecuted or already
      reconciled contract.
    - PlannedHoursMissingError: planned hours absent or zero.
    - InvalidActualHoursError: actual hours absent, negative, not numeric or
      with digits below 0.01 (the stored column has two places).
    - CapabilityError: actor may not reconcile.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from sla_config.schema import ReconciliationConfig
from sla_engines.reconciliation import ReconciliationCalculator, ReconciliationResult
from sla_kernel.domain.capability import Actor, Capability, require_capability
from sla_kernel.domain.clock import Clock
from sla_kernel.domain.dtos import ContractInfo
from sla_kernel.domain.values import Unavailable, parse_hours
from sla_kernel.exceptions import (
    InvalidActualHoursError,
    PlannedHoursMissingError,
    ReconciliationStateError,
)
from sla_kernel.logging_config import LogContext, get_logger
from sla_kernel.selectors.contract_selector import ContractSelector
from sla_kernel.services.contract_record_service import ContractRecordService

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """Commit / revert / pools for the planned-vs-actual hours comparison."""

    def __init__(
        self,
        session: Session,
        *,
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
    ):
        self._config = config or ReconciliationConfig()
        self._calculator = ReconciliationCalculator(self._config.tolerance_factor)
        self._contracts = ContractRecordService(session, clock)
        self._selector = ContractSelector(session)

    def preview(self, contract_id: UUID, actual_hours: Any) -> ReconciliationResult | Unavailable:
        """Classify without writing anything."""
        contract = self._contracts.get(contract_id)
        return self._calculator.classify(
            hours_planned=contract.hours_planned,
            actual_hours=actual_hours,
        )

    def commit(self, contract_id: UUID, actual_hours: Any, *, actor: Actor) -> ContractInfo:
        """
        Classify and store the result; the contract moves to the completed pool.

        Raises:
            ReconciliationStateError, PlannedHoursMissingError,
            InvalidActualHoursError, CapabilityError.
        """
        require_capability(actor, Capability.RECONCILE)
        with LogContext.bind(contract_id=contract_id, actor_id=actor.actor_id):
            contract = self._contracts.get(contract_id)
            if not contract.is_pending_reconciliation:
                raise ReconciliationStateError(
                    str(contract_id), contract.is_executed, contract.calculation_done,
                )

            planned = contract.hours_planned
            if planned is None or planned <= 0:
                logger.warning(
                    "reconciliation_planned_hours_missing",
                    extra={"hours_planned": planned},
                )
                raise PlannedHoursMissingError(str(contract_id), planned)

            actual = parse_hours(actual_hours)
            if actual is None or actual < 0:
                raise InvalidActualHoursError(str(contract_id), actual_hours)

            result = self._calculator.classify(hours_planned=planned, actual_hours=actual)
            if isinstance(result, Unavailable):
                raise InvalidActualHoursError(str(contract_id), actual_hours)

            return self._contracts.record_reconciliation(
                contract_id,
                actor_id=actor.actor_id,
                actual_hours=result.actual_hours,
                result_class=result.result_class,
                result_note=result.note,
            )

    def revert(self, contract_id: UUID, *, actor: Actor) -> ContractInfo:
        """Clear every reconciliation field; the contract returns to pending."""
        require_capability(actor, Capability.RECONCILE)
        with LogContext.bind(contract_id=contract_id, actor_id=actor.actor_id):
            return self._contracts.clear_reconciliation(contract_id, actor_id=actor.actor_id)

    def pending(self) -> list[ContractInfo]:
        return self._selector.pending_reconciliation()

    def completed(self) -> list[ContractInfo]:
        return self._selector.completed_reconciliation()
