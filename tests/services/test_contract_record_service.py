"""
Tests for ContractRecordService.

Covers:
- Creation, lookup and planned-month validation
- Checkpoint writes leave is_executed alone and bump version
- Finalization writes signer and signature together
- Optimistic version guard vs last-write-wins
- Reconciliation write / clear
- Start new service year
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from sla_config.schema import ConcurrencyConfig, ConcurrencyMode
from sla_kernel.domain.category import ServiceCategory
from sla_kernel.domain.values import ResultClass
from sla_kernel.exceptions import (
    CapabilityError,
    ConfirmationRequiredError,
    ContractNotFoundError,
    InvalidPlannedHoursError,
    InvalidPlannedMonthError,
    MissingSignatureError,
    MissingSignerError,
    OptimisticLockError,
)
from sla_kernel.services.contract_record_service import ContractRecordService

ACTOR = uuid4()


class TestCreateAndGet:

    def test_create_contract(self, make_contract, contract_service):
        created = make_contract(planned_month=3, reference_number="VO-1")
        fetched = contract_service.get(created.id)

        assert fetched.planned_month == 3
        assert fetched.reference_number == "VO-1"
        assert fetched.is_executed is False
        assert fetched.calculation_done is False
        assert fetched.version == 1
        assert fetched.uses_checklist is True

    def test_report_contract_has_no_checklist(self, report_contract):
        assert report_contract.uses_checklist is False

    @pytest.mark.parametrize("month", [0, 13])
    def test_planned_month_out_of_range(self, contract_service, month):
        with pytest.raises(InvalidPlannedMonthError):
            contract_service.create_contract(
                category=ServiceCategory.SUN_SHADING,
                client_name="X",
                planned_month=month,
                actor_id=ACTOR,
            )

    @pytest.mark.parametrize("hours", [Decimal("4.125"), Decimal("-1"), "many"])
    def test_planned_hours_rejected(self, make_contract, hours):
        with pytest.raises(InvalidPlannedHoursError):
            make_contract(hours_planned=hours)

    def test_planned_hours_stored_as_given(self, make_contract, contract_service, session):
        created = make_contract(hours_planned="7.50")
        session.expire_all()
        assert contract_service.get(created.id).hours_planned == Decimal("7.5")

    def test_unknown_contract(self, contract_service):
        with pytest.raises(ContractNotFoundError):
            contract_service.get(uuid4())

    def test_create_logged(self, make_contract, captured_logs):
        created = make_contract()
        records = [r for r in captured_logs() if r["message"] == "contract_created"]
        assert records[0]["contract_id"] == str(created.id)


class TestSaveProgress:

    def test_checkpoint_keeps_not_executed(self, inspection_contract, contract_service):
        saved = contract_service.save_progress(
            inspection_contract.id, actor_id=ACTOR, comments="Parking at the back",
        )

        assert saved.comments == "Parking at the back"
        assert saved.is_executed is False
        assert saved.version == 2
        assert saved.last_update is not None

    def test_none_leaves_field_unchanged(self, report_contract, contract_service):
        contract_service.save_progress(report_contract.id, actor_id=ACTOR, execution_report="Step 1")
        saved = contract_service.save_progress(report_contract.id, actor_id=ACTOR, comments="c")
        assert saved.execution_report == "Step 1"


class TestMarkExecuted:

    def test_sets_signoff_together(self, inspection_contract, contract_service, deterministic_clock):
        done = contract_service.mark_executed(
            inspection_contract.id,
            actor_id=ACTOR,
            signer_name="Jane",
            signature_ref="memory://signatures/a.png",
        )

        assert done.is_executed is True
        assert done.signer_name == "Jane"
        assert done.signature_ref == "memory://signatures/a.png"
        assert done.executed_at == deterministic_clock.now()

    def test_blank_signer_rejected(self, inspection_contract, contract_service):
        with pytest.raises(MissingSignerError):
            contract_service.mark_executed(
                inspection_contract.id, actor_id=ACTOR, signer_name="  ", signature_ref="ref",
            )
        assert contract_service.get(inspection_contract.id).is_executed is False

    def test_missing_signature_rejected(self, inspection_contract, contract_service):
        with pytest.raises(MissingSignatureError):
            contract_service.mark_executed(
                inspection_contract.id, actor_id=ACTOR, signer_name="Jane", signature_ref="",
            )
        assert contract_service.get(inspection_contract.id).signer_name is None


class TestConcurrency:

    def test_last_write_wins_ignores_stale_version(self, inspection_contract, contract_service):
        contract_service.save_progress(inspection_contract.id, actor_id=ACTOR, comments="first")
        saved = contract_service.save_progress(
            inspection_contract.id, actor_id=ACTOR, comments="second", expected_version=1,
        )
        assert saved.comments == "second"

    def test_optimistic_rejects_stale_version(self, session, inspection_contract, deterministic_clock):
        service = ContractRecordService(
            session, deterministic_clock, ConcurrencyConfig(ConcurrencyMode.OPTIMISTIC),
        )
        service.save_progress(inspection_contract.id, actor_id=ACTOR, comments="a", expected_version=1)

        with pytest.raises(OptimisticLockError) as exc_info:
            service.save_progress(inspection_contract.id, actor_id=ACTOR, comments="b", expected_version=1)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert service.get(inspection_contract.id).comments == "a"


class TestReconciliationFields:

    def test_record_and_clear(self, inspection_contract, contract_service):
        contract_service.mark_executed(
            inspection_contract.id, actor_id=ACTOR, signer_name="Jane", signature_ref="ref",
        )
        recorded = contract_service.record_reconciliation(
            inspection_contract.id,
            actor_id=ACTOR,
            actual_hours=Decimal("3"),
            result_class=ResultClass.PROFIT,
            result_note="note",
        )
        assert recorded.is_reconciled

        cleared = contract_service.clear_reconciliation(inspection_contract.id, actor_id=ACTOR)
        assert cleared.actual_hours is None
        assert cleared.result_class is None
        assert cleared.result_note is None
        assert cleared.is_pending_reconciliation

    def test_clear_is_idempotent(self, inspection_contract, contract_service):
        first = contract_service.clear_reconciliation(inspection_contract.id, actor_id=ACTOR)
        second = contract_service.clear_reconciliation(inspection_contract.id, actor_id=ACTOR)
        assert first == second
        assert second.version == inspection_contract.version


class TestStartNewServiceYear:

    def _execute(self, contract_service, contract_id):
        contract_service.mark_executed(
            contract_id, actor_id=ACTOR, signer_name="Jane", signature_ref="ref",
        )

    def test_clears_executed_flags(self, make_contract, contract_service, admin):
        a = make_contract(client_name="A")
        b = make_contract(client_name="B")
        untouched = make_contract(client_name="C")
        self._execute(contract_service, a.id)
        self._execute(contract_service, b.id)
        contract_service.record_reconciliation(
            b.id, actor_id=ACTOR, actual_hours=Decimal("4"),
            result_class=ResultClass.CORRECT, result_note="n",
        )

        count = contract_service.start_new_service_year(actor=admin, confirmed=True)

        assert count == 2
        for contract_id in (a.id, b.id, untouched.id):
            info = contract_service.get(contract_id)
            assert info.is_executed is False
            assert info.calculation_done is False
        kept = contract_service.get(b.id)
        assert kept.actual_hours == Decimal("4")
        assert kept.result_class == ResultClass.CORRECT

    def test_requires_confirmation(self, contract_service, admin, inspection_contract):
        with pytest.raises(ConfirmationRequiredError):
            contract_service.start_new_service_year(actor=admin)

    def test_technician_denied(self, contract_service, technician):
        with pytest.raises(CapabilityError):
            contract_service.start_new_service_year(actor=technician, confirmed=True)
