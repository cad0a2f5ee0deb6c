"""
sla_services.execution_session -- Execute -> sign -> finalize workflow.

Responsibility:
    Orchestrates one technician visit on one contract: load the contract
    and its checklist (or report), edit working copies, checkpoint them,
    collect the client's sign-off, and finalize: store the signature,
    persist checklist and contract, generate the work-order document and
    notify the caller.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Transitions come from ``EXECUTION_WORKFLOW``; persistence goes through
    ``ContractRecordService`` / ``ChecklistStore`` / ``BlobStorage``; the
    document comes from ``sla_engines.work_order``.

Invariants enforced:
    - Every operation is checked against the workflow; an operation with
      no transition out of the current stage raises ``SessionStateError``.
    - ``finalize`` requires a non-blank signer name AND a captured
      signature; otherwise it raises and the stage stays
      AWAITING_SIGNATURE.
    - The signature is stored before the contract update, which embeds
      its reference.  The blob key is derived from the contract id and
      the image hash, so a retried finalize rewrites the same object.
    - Checklist save and contract update run in one SAVEPOINT, at
      checkpoint and at finalize: both land or neither does, and a failed
      write leaves the SQLAlchemy session usable for a retry.
    - Checkpoints of one session never overlap; each carries a strictly
      increasing sequence number.
    - Category behaviour dispatches on the contract's ``Procedure``.

Failure modes:
    - MissingSignerError / MissingSignatureError: finalize without sign-off.
    - PersistenceError: any failed write during finalize (stage returns to
      AWAITING_SIGNATURE; nothing is retried automatically) or checkpoint
      (stage stays EDITING).
    - OptimisticLockError: stale contract version in optimistic mode.
    - CategoryMismatchError: checklist edit on a report-based contract or
      report edit on an inspection contract.
    - CapabilityError: actor may not execute services.

Audit relevance:
    Every stage change is logged as ``execution_transition`` with the
    contract, session and actor bound into the log context.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from sla_config.schema import SlaConfig
from sla_engines.work_order import WorkOrderDocument, generate_work_order
from sla_kernel.domain.capability import Actor, Capability, require_capability
from sla_kernel.domain.category import (
    CheckField,
    InspectionProcedure,
    ReportProcedure,
    parse_check_field,
)
from sla_kernel.domain.clock import Clock, SystemClock
from sla_kernel.domain.dtos import ChecklistItemInfo, ContractInfo
from sla_kernel.domain.workflow import (
    EXECUTION_WORKFLOW,
    SIGNATURE_COMPLETE,
    ExecutionStage,
    Guard,
)
from sla_kernel.exceptions import (
    CategoryMismatchError,
    ChecklistItemNotFoundError,
    MissingSignatureError,
    MissingSignerError,
    PersistenceError,
    SessionStateError,
    SlaKernelError,
)
from sla_kernel.logging_config import LogContext, get_logger
from sla_kernel.services.blob_storage import BlobStorage, StoredBlob, signature_key
from sla_kernel.services.checklist_store import ChecklistStore
from sla_kernel.services.contract_record_service import ContractRecordService

logger = get_logger("services.execution_session")


@dataclass(frozen=True)
class CheckpointResult:
    sequence: int
    contract: ContractInfo
    items_saved: int


@dataclass(frozen=True)
class CompletedExecution:
    """What the caller is notified with once a visit is finalized."""

    contract: ContractInfo
    items: tuple[ChecklistItemInfo, ...]
    signature: StoredBlob
    document: WorkOrderDocument


class ExecutionSession:
    """
    Transient working state of one visit.  Not persisted as a record.

    Contract:
        Works inside the caller's SQLAlchemy session and transaction.  The
        caller commits after ``finalize`` (or ``checkpoint``) returns.
    Non-goals:
        - No auto-save: ``abandon`` discards unsaved edits.
        - No cross-session locking beyond the optional version check.
        - Does not render or print the document.
    """

    def __init__(
        self,
        session: Session,
        contract_id: UUID,
        *,
        actor: Actor,
        blob_storage: BlobStorage,
        clock: Clock | None = None,
        config: SlaConfig | None = None,
        on_completed: Callable[[CompletedExecution], None] | None = None,
    ):
        self._session = session
        self.contract_id = contract_id
        self.session_id = uuid4()
        self._actor = actor
        self._blobs = blob_storage
        self._clock = clock or SystemClock()
        self._config = config or SlaConfig()
        self._on_completed = on_completed

        self._contracts = ContractRecordService(session, self._clock, self._config.concurrency)
        self._checklist = ChecklistStore(session, self._config.checklist_import)

        self._stage = ExecutionStage.LOADING
        self._contract: ContractInfo | None = None
        self._loaded_version: int | None = None
        self._items: list[ChecklistItemInfo] = []
        self._comments = ""
        self._report = ""
        self._signer_name = ""
        self._signature: bytes | None = None

        self._checkpoint_lock = threading.Lock()
        self._checkpoint_seq = 0

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def stage(self) -> ExecutionStage:
        return self._stage

    @property
    def contract(self) -> ContractInfo:
        if self._contract is None:
            raise SessionStateError("read contract", self._stage.value)
        return self._contract

    @property
    def items(self) -> tuple[ChecklistItemInfo, ...]:
        return tuple(self._items)

    @property
    def comments(self) -> str:
        return self._comments

    @property
    def report(self) -> str:
        return self._report

    @property
    def signer_name(self) -> str:
        return self._signer_name

    @property
    def has_signature(self) -> bool:
        return bool(self._signature)

    def unreviewed_items(self) -> tuple[ChecklistItemInfo, ...]:
        """Items with none of the three checks ticked.  Informational only."""
        return tuple(item for item in self._items if not item.is_reviewed)

    # -------------------------------------------------------------------------
    # Workflow plumbing
    # -------------------------------------------------------------------------

    def _log_context(self):
        return LogContext.bind(
            contract_id=self.contract_id,
            session_id=self.session_id,
            actor_id=self._actor.actor_id,
        )

    def _guard_satisfied(self, guard: Guard) -> bool:
        match guard.name:
            case SIGNATURE_COMPLETE.name:
                return bool(self._signer_name.strip()) and self.has_signature
        return False

    def _fire(self, action: str) -> None:
        transition = EXECUTION_WORKFLOW.transition_for(self._stage.value, action)
        if transition is None:
            raise SessionStateError(action, self._stage.value)
        if transition.guard is not None and not self._guard_satisfied(transition.guard):
            raise SessionStateError(action, self._stage.value)
        from_stage = self._stage
        self._stage = ExecutionStage(transition.to_state)
        if from_stage != self._stage:
            logger.info(
                "execution_transition",
                extra={
                    "action": action,
                    "from_stage": from_stage.value,
                    "to_stage": self._stage.value,
                },
            )

    def _require(self, action: str) -> None:
        if EXECUTION_WORKFLOW.transition_for(self._stage.value, action) is None:
            raise SessionStateError(action, self._stage.value)

    def _expected_version(self) -> int | None:
        return self._loaded_version

    @contextmanager
    def _savepoint(self) -> Iterator[None]:
        """Writes inside the block land together or are all rolled back."""
        savepoint = self._session.begin_nested()
        try:
            yield
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()

    # -------------------------------------------------------------------------
    # Loading -> Editing
    # -------------------------------------------------------------------------

    def load(self) -> ContractInfo:
        """Fetch the contract, its checklist (inspection) and working text."""
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        self._require("load")
        with self._log_context():
            contract = self._contracts.get(self.contract_id)
            match contract.procedure:
                case InspectionProcedure():
                    self._items = self._checklist.list(self.contract_id)
                case ReportProcedure():
                    self._items = []
            self._contract = contract
            self._loaded_version = contract.version
            self._comments = contract.comments or ""
            self._report = contract.execution_report or ""
            self._fire("load")
            logger.info(
                "execution_loaded",
                extra={"items": len(self._items), "version": contract.version},
            )
        return contract

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def _item_index(self, item_id: UUID) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise ChecklistItemNotFoundError(str(item_id))

    def _require_checklist(self, operation: str) -> None:
        match self.contract.procedure:
            case ReportProcedure(category=category):
                raise CategoryMismatchError(str(self.contract_id), category.value, operation)

    def update_check(self, item_id: UUID, field: CheckField | str, value: bool) -> ChecklistItemInfo:
        """Set one check on the working copy of an item."""
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        self._require("edit")
        self._require_checklist("checklist_update")
        check = parse_check_field(field)
        index = self._item_index(item_id)
        updated = dataclasses.replace(self._items[index], **{check.value: bool(value)})
        self._items[index] = updated
        self._fire("edit")
        return updated

    def set_remark(self, item_id: UUID, text: str) -> ChecklistItemInfo:
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        self._require("edit")
        self._require_checklist("checklist_update")
        index = self._item_index(item_id)
        updated = dataclasses.replace(self._items[index], remark=text or "")
        self._items[index] = updated
        self._fire("edit")
        return updated

    def set_report(self, text: str) -> None:
        """Set the execution report (report-based categories only)."""
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        self._require("edit")
        match self.contract.procedure:
            case InspectionProcedure(category=category):
                raise CategoryMismatchError(str(self.contract_id), category.value, "report_update")
        self._report = text or ""
        self._fire("edit")

    def set_comments(self, text: str) -> None:
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        self._require("edit")
        self._comments = text or ""
        self._fire("edit")

    def checkpoint(self) -> CheckpointResult:
        """
        Persist the working state without leaving EDITING or touching
        ``is_executed``.  Calls are serialized per session.
        """
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        with self._checkpoint_lock, self._log_context():
            self._require("checkpoint")
            self._checkpoint_seq += 1
            sequence = self._checkpoint_seq
            items = tuple(self._items)

            saved = 0
            with self._savepoint():
                match self.contract.procedure:
                    case InspectionProcedure():
                        saved = self._checklist.save_items(self.contract_id, items, actor=self._actor)
                        report = None
                    case ReportProcedure():
                        report = self._report

                contract = self._contracts.save_progress(
                    self.contract_id,
                    actor_id=self._actor.actor_id,
                    comments=self._comments,
                    execution_report=report,
                    expected_version=self._expected_version(),
                )
            self._contract = contract
            self._loaded_version = contract.version
            self._fire("checkpoint")
            logger.info(
                "execution_checkpoint_saved",
                extra={"sequence": sequence, "items_saved": saved, "version": contract.version},
            )
            return CheckpointResult(sequence=sequence, contract=contract, items_saved=saved)

    # -------------------------------------------------------------------------
    # Sign-off
    # -------------------------------------------------------------------------

    def request_finalization(self) -> None:
        """Editing -> AwaitingSignature.  Unreviewed items do not block."""
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        with self._log_context():
            self._fire("request_finalization")
            unreviewed = len(self.unreviewed_items())
            if unreviewed:
                logger.info("execution_unreviewed_items", extra={"unreviewed": unreviewed})

    def resume_editing(self) -> None:
        """AwaitingSignature -> Editing; signer and signature are kept."""
        with self._log_context():
            self._fire("resume_editing")

    def _require_signing_stage(self, action: str) -> None:
        if self._stage not in (ExecutionStage.EDITING, ExecutionStage.AWAITING_SIGNATURE):
            raise SessionStateError(action, self._stage.value)

    def set_signer(self, name: str) -> None:
        self._require_signing_stage("set signer")
        self._signer_name = (name or "").strip()

    def capture_signature(self, image: bytes) -> None:
        """Keep the signature image until finalize; empty data clears it."""
        self._require_signing_stage("capture signature")
        self._signature = bytes(image) if image else None

    def clear_signature(self) -> None:
        self._require_signing_stage("clear signature")
        self._signature = None

    # -------------------------------------------------------------------------
    # Finalizing -> Completed
    # -------------------------------------------------------------------------

    def _validate_sign_off(self) -> bytes:
        """The captured signature image, once signer and signature are both present."""
        if not self._signer_name.strip():
            raise MissingSignerError(str(self.contract_id))
        if not self._signature:
            raise MissingSignatureError(str(self.contract_id))
        return self._signature

    def _store_signature(self, image: bytes) -> StoredBlob:
        storage = self._config.storage
        key = signature_key(self.contract_id, image, storage.signature_prefix)
        try:
            return self._blobs.put(key, image, content_type=storage.signature_content_type)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError("signature_upload", str(exc), str(self.contract_id)) from exc

    def _persist_records(self, signature_ref: str) -> ContractInfo:
        with self._savepoint():
            match self.contract.procedure:
                case InspectionProcedure():
                    self._checklist.save_items(self.contract_id, tuple(self._items), actor=self._actor)
                    report = None
                case ReportProcedure():
                    report = self._report
            return self._contracts.mark_executed(
                self.contract_id,
                actor_id=self._actor.actor_id,
                signer_name=self._signer_name,
                signature_ref=signature_ref,
                comments=self._comments,
                execution_report=report,
                expected_version=self._expected_version(),
            )

    def finalize(self) -> CompletedExecution:
        """
        Store the signature, persist checklist and contract, generate the
        work order and notify the caller.

        Raises:
            SessionStateError: not AWAITING_SIGNATURE.
            MissingSignerError / MissingSignatureError: sign-off incomplete;
                stage unchanged.
            PersistenceError: a write failed; stage back to AWAITING_SIGNATURE.
            OptimisticLockError: stale version; stage back to AWAITING_SIGNATURE.
        """
        require_capability(self._actor, Capability.EXECUTE_SERVICE)
        with self._log_context():
            self._require("finalize")
            try:
                image = self._validate_sign_off()
            except SlaKernelError as exc:
                logger.warning("execution_finalize_rejected", extra={"reason": exc.code})
                raise

            self._fire("finalize")
            try:
                stored = self._store_signature(image)
                contract = self._persist_records(stored.reference)
                items = tuple(self._items)
                document = generate_work_order(
                    contract=contract,
                    items=items,
                    signer_name=contract.signer_name or self._signer_name,
                    signature_ref=stored.reference,
                    issued_on=self._clock.today(),
                    config=self._config.work_order,
                )
            except SlaKernelError:
                self._fire("fail")
                logger.warning("execution_finalize_failed", exc_info=True)
                raise
            except Exception as exc:
                self._fire("fail")
                logger.error("execution_finalize_failed", exc_info=True)
                raise PersistenceError("finalize", str(exc), str(self.contract_id)) from exc

            self._contract = contract
            self._loaded_version = contract.version
            self._fire("complete")
            completed = CompletedExecution(
                contract=contract,
                items=items,
                signature=stored,
                document=document,
            )
            logger.info(
                "execution_finalized",
                extra={"signature_ref": stored.reference, "items": len(items)},
            )

        if self._on_completed is not None:
            self._on_completed(completed)
        return completed

    # -------------------------------------------------------------------------
    # Abandon
    # -------------------------------------------------------------------------

    def abandon(self) -> None:
        """Leave without saving; unsaved working copies are discarded."""
        with self._log_context():
            self._fire("abandon")
            self._items = []
            self._comments = ""
            self._report = ""
            self._signer_name = ""
            self._signature = None
