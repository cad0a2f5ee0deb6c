"""
Tests for the ExecutionSession workflow.

Covers:
- Loading per category and stage guards
- Working-copy edits, checkpoints (including concurrent calls) and abandon
- Sign-off validation at finalize
- Successful finalize: contract, blob, document, callback
- Failed database writes at checkpoint and finalize: SAVEPOINT rollback, retry
- Failure during finalize: stage rollback, retry
- Optimistic concurrency
"""

import threading
from uuid import uuid4

import pytest
from sqlalchemy import text

from sla_config.schema import ConcurrencyConfig, ConcurrencyMode, SlaConfig
from sla_engines.work_order import ExecutionReportBody, InspectionTable
from sla_kernel.domain.category import CheckField
from sla_kernel.domain.workflow import ExecutionStage
from sla_kernel.exceptions import (
    BlobStorageError,
    CategoryMismatchError,
    ChecklistItemNotFoundError,
    MissingSignatureError,
    MissingSignerError,
    OptimisticLockError,
    PersistenceError,
    SessionStateError,
)
from sla_kernel.services.blob_storage import InMemoryBlobStorage, signature_key
from sla_services.execution_session import CompletedExecution, ExecutionSession


class FlakyBlobStorage(InMemoryBlobStorage):
    """Fails the first ``failures`` puts."""

    def __init__(self, failures: int = 1, error: Exception | None = None):
        super().__init__()
        self.failures = failures
        self.error = error or BlobStorageError("signature_upload", "bucket unavailable")
        self.attempts = 0

    def put(self, key, data, *, content_type):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return super().put(key, data, content_type=content_type)


@pytest.fixture
def open_session(session, blob_storage, deterministic_clock, technician):
    def _open(contract_id, **kwargs):
        execution = ExecutionSession(
            session,
            contract_id,
            actor=kwargs.pop("actor", technician),
            blob_storage=kwargs.pop("blob_storage", blob_storage),
            clock=deterministic_clock,
            **kwargs,
        )
        execution.load()
        return execution

    return _open


def sign(execution, signature_png, signer="Jane"):
    execution.request_finalization()
    execution.set_signer(signer)
    execution.capture_signature(signature_png)


def reject_contract_updates(session):
    session.execute(text(
        "CREATE TRIGGER reject_contract_update BEFORE UPDATE ON service_contracts "
        "BEGIN SELECT RAISE(ABORT, 'database unavailable'); END"
    ))


def allow_contract_updates(session):
    session.execute(text("DROP TRIGGER reject_contract_update"))


class TestLoading:

    def test_inspection_contract_loads_checklist(self, open_session, inspection_contract, inspection_items):
        execution = open_session(inspection_contract.id)

        assert execution.stage == ExecutionStage.EDITING
        assert [i.name for i in execution.items] == ["Door A", "Door B"]

    def test_report_contract_loads_report(self, open_session, report_contract):
        execution = open_session(report_contract.id)

        assert execution.items == ()
        assert execution.report == ""

    def test_edit_before_load_rejected(self, session, report_contract, blob_storage, technician):
        execution = ExecutionSession(session, report_contract.id, actor=technician, blob_storage=blob_storage)
        assert execution.stage == ExecutionStage.LOADING
        with pytest.raises(SessionStateError):
            execution.set_comments("too early")

    def test_load_twice_rejected(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        with pytest.raises(SessionStateError):
            execution.load()


class TestEditing:

    def test_checklist_edits_are_local(self, open_session, inspection_contract, inspection_items, checklist_store):
        execution = open_session(inspection_contract.id)
        item = inspection_items[0]

        execution.update_check(item.id, CheckField.BATTERY, True)
        execution.set_remark(item.id, "Battery swapped")

        assert execution.items[0].check_battery is True
        assert execution.items[0].remark == "Battery swapped"
        assert checklist_store.list(inspection_contract.id)[0].check_battery is False

    def test_unknown_item(self, open_session, inspection_contract, inspection_items):
        execution = open_session(inspection_contract.id)
        with pytest.raises(ChecklistItemNotFoundError):
            execution.update_check(uuid4(), CheckField.BATTERY, True)

    def test_checklist_edit_on_report_contract_rejected(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        with pytest.raises(CategoryMismatchError):
            execution.update_check(uuid4(), CheckField.BATTERY, True)

    def test_report_edit_on_inspection_contract_rejected(self, open_session, inspection_contract):
        execution = open_session(inspection_contract.id)
        with pytest.raises(CategoryMismatchError):
            execution.set_report("text")

    def test_unreviewed_items(self, open_session, inspection_contract, inspection_items):
        execution = open_session(inspection_contract.id)
        execution.update_check(inspection_items[1].id, CheckField.FIRMWARE, True)

        assert [i.name for i in execution.unreviewed_items()] == ["Door A"]


class TestCheckpoint:

    def test_checkpoint_persists_without_executing(
        self, open_session, inspection_contract, inspection_items, checklist_store, contract_service,
    ):
        execution = open_session(inspection_contract.id)
        execution.update_check(inspection_items[0].id, CheckField.ACCESS_RIGHTS, True)
        execution.set_comments("Key at reception")

        result = execution.checkpoint()

        assert result.sequence == 1
        assert result.items_saved == 2
        assert execution.stage == ExecutionStage.EDITING
        assert checklist_store.list(inspection_contract.id)[0].check_rights is True
        stored = contract_service.get(inspection_contract.id)
        assert stored.comments == "Key at reception"
        assert stored.is_executed is False

    def test_sequence_increments(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        execution.set_report("step one")
        first = execution.checkpoint()
        execution.set_report("step two")
        second = execution.checkpoint()

        assert (first.sequence, second.sequence) == (1, 2)
        assert second.contract.execution_report == "step two"

    def test_failed_checkpoint_keeps_checklist_unsaved(
        self, session, open_session, inspection_contract, inspection_items, checklist_store,
    ):
        execution = open_session(inspection_contract.id)
        execution.update_check(inspection_items[0].id, CheckField.BATTERY, True)
        reject_contract_updates(session)

        with pytest.raises(PersistenceError) as exc_info:
            execution.checkpoint()

        assert exc_info.value.operation == "contract_checkpoint"
        assert execution.stage == ExecutionStage.EDITING
        assert checklist_store.list(inspection_contract.id)[0].check_battery is False

        allow_contract_updates(session)
        assert execution.checkpoint().items_saved == 2
        assert checklist_store.list(inspection_contract.id)[0].check_battery is True

    def test_concurrent_checkpoints_do_not_overlap(self, open_session, report_contract, monkeypatch):
        execution = open_session(report_contract.id)
        execution.set_report("draft")
        save_progress = execution._contracts.save_progress
        events: list[str] = []
        first_entered = threading.Event()
        release = threading.Event()

        def blocking_save_progress(contract_id, **kwargs):
            events.append("enter")
            if not first_entered.is_set():
                first_entered.set()
                release.wait(timeout=5)
            contract = save_progress(contract_id, **kwargs)
            events.append("exit")
            return contract

        monkeypatch.setattr(execution._contracts, "save_progress", blocking_save_progress)
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(execution.checkpoint()))
            for _ in range(2)
        ]

        threads[0].start()
        assert first_entered.wait(timeout=5)
        threads[1].start()
        threads[1].join(timeout=0.2)
        assert threads[1].is_alive()
        assert events == ["enter"]

        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert events == ["enter", "exit", "enter", "exit"]
        assert [r.sequence for r in results] == [1, 2]
        assert results[1].contract.version == results[0].contract.version + 1

    def test_checkpoint_not_allowed_while_awaiting_signature(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        execution.request_finalization()
        with pytest.raises(SessionStateError):
            execution.checkpoint()


class TestAbandon:

    def test_unsaved_edits_discarded(self, open_session, report_contract, contract_service):
        execution = open_session(report_contract.id)
        execution.set_report("never saved")
        execution.abandon()

        assert execution.stage == ExecutionStage.ABANDONED
        assert contract_service.get(report_contract.id).execution_report is None

    def test_abandon_from_awaiting_signature(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        execution.request_finalization()
        execution.abandon()
        assert execution.stage == ExecutionStage.ABANDONED


class TestSignOff:

    def test_finalize_without_signature_rejected(
        self, open_session, inspection_contract, inspection_items, contract_service,
    ):
        execution = open_session(inspection_contract.id)
        execution.request_finalization()
        execution.set_signer("Jane")

        with pytest.raises(MissingSignatureError):
            execution.finalize()

        assert execution.stage == ExecutionStage.AWAITING_SIGNATURE
        assert contract_service.get(inspection_contract.id).is_executed is False

    def test_finalize_without_signer_rejected(self, open_session, report_contract, signature_png):
        execution = open_session(report_contract.id)
        execution.request_finalization()
        execution.capture_signature(signature_png)

        with pytest.raises(MissingSignerError):
            execution.finalize()
        assert execution.stage == ExecutionStage.AWAITING_SIGNATURE

    def test_finalize_from_editing_rejected(self, open_session, report_contract):
        execution = open_session(report_contract.id)
        with pytest.raises(SessionStateError):
            execution.finalize()

    def test_resume_editing_keeps_signature(self, open_session, report_contract, signature_png):
        execution = open_session(report_contract.id)
        sign(execution, signature_png)
        execution.resume_editing()

        assert execution.stage == ExecutionStage.EDITING
        assert execution.has_signature
        assert execution.signer_name == "Jane"


class TestFinalize:

    def test_inspection_finalize(
        self, open_session, inspection_contract, inspection_items, signature_png,
        blob_storage, checklist_store, deterministic_clock,
    ):
        notified: list[CompletedExecution] = []
        execution = open_session(inspection_contract.id, on_completed=notified.append)
        execution.update_check(inspection_items[0].id, CheckField.BATTERY, True)
        sign(execution, signature_png)

        completed = execution.finalize()

        assert execution.stage == ExecutionStage.COMPLETED
        contract = completed.contract
        assert contract.is_executed is True
        assert contract.signer_name == "Jane"
        assert contract.signature_ref == blob_storage.reference_for(
            signature_key(inspection_contract.id, signature_png)
        )
        assert blob_storage.get(signature_key(inspection_contract.id, signature_png)) == signature_png
        assert checklist_store.list(inspection_contract.id)[0].check_battery is True

        assert notified == [completed]
        document = completed.document
        assert isinstance(document.body, InspectionTable)
        assert [r.name for r in document.body.rows] == ["Door A", "Door B"]
        assert document.body.rows[0].checks == (True, False, False)
        assert document.signature.signer_name == "Jane"
        assert document.signature.signature_ref == contract.signature_ref
        assert document.header.issued_on == deterministic_clock.today()

    def test_report_finalize(self, open_session, report_contract, signature_png, contract_service):
        execution = open_session(report_contract.id)
        execution.set_report("Replaced gate motor")
        execution.set_comments("Client present")
        sign(execution, signature_png)

        completed = execution.finalize()

        stored = contract_service.get(report_contract.id)
        assert stored.execution_report == "Replaced gate motor"
        assert stored.comments == "Client present"
        assert isinstance(completed.document.body, ExecutionReportBody)
        assert completed.document.body.text == "Replaced gate motor"

    def test_unreviewed_items_do_not_block(self, open_session, inspection_contract, inspection_items, signature_png):
        execution = open_session(inspection_contract.id)
        sign(execution, signature_png)

        assert len(execution.unreviewed_items()) == 2
        assert execution.finalize().contract.is_executed is True

    def test_no_actions_after_completion(self, open_session, report_contract, signature_png):
        execution = open_session(report_contract.id)
        sign(execution, signature_png)
        execution.finalize()

        with pytest.raises(SessionStateError):
            execution.abandon()
        with pytest.raises(SessionStateError):
            execution.set_comments("late")

    def test_finalize_logged_with_context(self, open_session, report_contract, signature_png, captured_logs):
        execution = open_session(report_contract.id)
        sign(execution, signature_png)
        execution.finalize()

        records = [r for r in captured_logs() if r["message"] == "execution_finalized"]
        assert records[0]["contract_id"] == str(report_contract.id)
        assert records[0]["session_id"] == str(execution.session_id)


class TestFinalizeFailure:

    def test_blob_failure_returns_to_awaiting_signature(
        self, open_session, report_contract, signature_png, contract_service,
    ):
        storage = FlakyBlobStorage(failures=1)
        execution = open_session(report_contract.id, blob_storage=storage)
        sign(execution, signature_png)

        with pytest.raises(PersistenceError) as exc_info:
            execution.finalize()

        assert exc_info.value.code == "BLOB_STORAGE_ERROR"
        assert execution.stage == ExecutionStage.AWAITING_SIGNATURE
        assert contract_service.get(report_contract.id).is_executed is False

    def test_retry_after_failure_reuses_key(self, open_session, report_contract, signature_png):
        storage = FlakyBlobStorage(failures=1)
        execution = open_session(report_contract.id, blob_storage=storage)
        sign(execution, signature_png)
        with pytest.raises(PersistenceError):
            execution.finalize()

        completed = execution.finalize()

        assert storage.attempts == 2
        assert storage.keys() == [signature_key(report_contract.id, signature_png)]
        assert completed.contract.is_executed is True

    def test_unexpected_blob_error_wrapped(self, open_session, report_contract, signature_png):
        storage = FlakyBlobStorage(failures=1, error=ConnectionError("reset by peer"))
        execution = open_session(report_contract.id, blob_storage=storage)
        sign(execution, signature_png)

        with pytest.raises(PersistenceError) as exc_info:
            execution.finalize()
        assert exc_info.value.operation == "signature_upload"

    def test_contract_update_failure_rolls_back_checklist(
        self, open_session, inspection_contract, inspection_items, signature_png,
        checklist_store, contract_service, monkeypatch,
    ):
        execution = open_session(inspection_contract.id)
        execution.update_check(inspection_items[0].id, CheckField.BATTERY, True)
        sign(execution, signature_png)

        def failing_mark_executed(*args, **kwargs):
            raise PersistenceError("contract_update", "connection lost", str(inspection_contract.id))

        monkeypatch.setattr(execution._contracts, "mark_executed", failing_mark_executed)

        with pytest.raises(PersistenceError):
            execution.finalize()

        assert execution.stage == ExecutionStage.AWAITING_SIGNATURE
        assert checklist_store.list(inspection_contract.id)[0].check_battery is False
        assert contract_service.get(inspection_contract.id).is_executed is False
        assert execution.items[0].check_battery is True

    def test_database_failure_leaves_session_retryable(
        self, session, open_session, inspection_contract, inspection_items, signature_png, checklist_store,
    ):
        execution = open_session(inspection_contract.id)
        execution.update_check(inspection_items[0].id, CheckField.BATTERY, True)
        sign(execution, signature_png)
        reject_contract_updates(session)

        with pytest.raises(PersistenceError) as exc_info:
            execution.finalize()

        assert exc_info.value.operation == "contract_update"
        assert execution.stage == ExecutionStage.AWAITING_SIGNATURE
        assert checklist_store.list(inspection_contract.id)[0].check_battery is False

        allow_contract_updates(session)
        completed = execution.finalize()

        assert execution.stage == ExecutionStage.COMPLETED
        assert completed.contract.is_executed is True
        assert checklist_store.list(inspection_contract.id)[0].check_battery is True


class TestOptimisticConcurrency:

    def test_stale_checkpoint_rejected(self, open_session, report_contract, contract_service, technician):
        config = SlaConfig(concurrency=ConcurrencyConfig(ConcurrencyMode.OPTIMISTIC))
        execution = open_session(report_contract.id, config=config)
        contract_service.save_progress(report_contract.id, actor_id=technician.actor_id, comments="other")

        execution.set_comments("mine")
        with pytest.raises(OptimisticLockError):
            execution.checkpoint()
        assert execution.stage == ExecutionStage.EDITING

    def test_last_write_wins_by_default(self, open_session, report_contract, contract_service, technician):
        execution = open_session(report_contract.id)
        contract_service.save_progress(report_contract.id, actor_id=technician.actor_id, comments="other")

        execution.set_comments("mine")
        execution.checkpoint()
        assert contract_service.get(report_contract.id).comments == "mine"
