"""
ChecklistStore -- checklist items of inspection-based contracts.

Responsibility:
    Bulk import from an inspection-device export, ordered listing, local
    check/remark mutation, persisting a session's working copies, and the
    irreversible wipe.

Architecture position:
    Kernel > Services -- imperative shell.
    Used by ``sla_services.execution_session`` (list / save_items) and by
    administrative flows (import_bulk / wipe).

Invariants enforced:
    - Only contracts whose category maps to ``InspectionProcedure`` have a
      checklist; every operation on another category raises
      ``CategoryMismatchError``.
    - ``position`` records creation order.  Imports append after the
      current last position, so list order is stable across imports.
    - An import with zero valid rows writes nothing.
    - ``update_check`` / ``set_remark`` mutate the loaded entity without
      flushing; the change persists only when the caller's transaction
      is flushed and committed.

Failure modes:
    - ChecklistImportError: no valid row in a bulk import.
    - ConfirmationRequiredError: wipe without ``confirmed=True``.
    - CapabilityError: actor role lacks the capability.
    - ChecklistItemNotFoundError / ContractNotFoundError: unknown ids.
    - PersistenceError: database failure during a write.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sla_config.schema import ChecklistImportConfig
from sla_kernel.domain.capability import Actor, Capability, require_capability
from sla_kernel.domain.category import CheckField, InspectionProcedure, parse_check_field
from sla_kernel.domain.dtos import ChecklistItemInfo
from sla_kernel.exceptions import (
    CategoryMismatchError,
    ChecklistImportError,
    ChecklistItemNotFoundError,
    ConfirmationRequiredError,
    ContractNotFoundError,
)
from sla_kernel.logging_config import get_logger
from sla_kernel.models.checklist import ChecklistItem
from sla_kernel.models.contract import ServiceContract
from sla_kernel.services.base import BaseService

logger = get_logger("services.checklist_store")


def clean_cell(value: Any) -> str:
    """
    Convert any exported cell value to a clean string.

    - None -> ""
    - whole floats -> integer text ("12.0" -> "12")
    - dates -> ISO "YYYY-MM-DD"
    - strings -> stripped
    """
    if value is None:
        return ""
    if isinstance(value, datetime.datetime):
        value = value.date()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


@dataclass(frozen=True)
class ImportRow:
    name: str
    zone: str
    connectivity: str


def parse_import_rows(
    rows: Iterable[Sequence[Any]],
    config: ChecklistImportConfig | None = None,
) -> tuple[list[ImportRow], int]:
    """
    Apply the import row-shape rules.

    A row is skipped when it has fewer than ``min_cells`` cells, when its
    name cell matches a header token case-insensitively, or when the name
    is blank.

    Returns:
        (valid rows in input order, number of rows seen)
    """
    config = config or ChecklistImportConfig()
    header_tokens = {t.lower() for t in config.header_tokens}

    def cell(row: Sequence[Any], index: int) -> str:
        return clean_cell(row[index]) if index < len(row) else ""

    parsed: list[ImportRow] = []
    seen = 0
    for row in rows:
        seen += 1
        if row is None or len(row) < config.min_cells:
            continue
        name = cell(row, config.name_column)
        if not name or name.lower() in header_tokens:
            continue
        parsed.append(ImportRow(
            name=name,
            zone=cell(row, config.zone_column),
            connectivity=cell(row, config.connectivity_column),
        ))
    return parsed, seen


class ChecklistStore(BaseService[ChecklistItem]):
    """
    Owns checklist items for inspection-based contracts.

    Non-goals:
        - Does NOT parse CSV/Excel files; rows arrive pre-split into cells.
        - Does NOT decide when working copies are saved (the session does).
    """

    def __init__(self, session: Session, import_config: ChecklistImportConfig | None = None):
        super().__init__(session)
        self._import_config = import_config or ChecklistImportConfig()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _inspection_contract(self, contract_id: UUID, operation: str) -> ServiceContract:
        contract = self.session.get(ServiceContract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        if not isinstance(contract.to_dto().procedure, InspectionProcedure):
            raise CategoryMismatchError(str(contract_id), contract.category.value, operation)
        return contract

    def _item(self, item_id: UUID, operation: str) -> ChecklistItem:
        item = self.session.get(ChecklistItem, item_id)
        if item is None:
            raise ChecklistItemNotFoundError(str(item_id))
        self._inspection_contract(item.contract_id, operation)
        return item

    def _next_position(self, contract_id: UUID) -> int:
        current = self.session.execute(
            select(func.max(ChecklistItem.position)).where(ChecklistItem.contract_id == contract_id)
        ).scalar_one_or_none()
        return 0 if current is None else current + 1

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def import_bulk(
        self,
        contract_id: UUID,
        rows: Iterable[Sequence[Any]],
        *,
        actor: Actor,
    ) -> int:
        """
        Append checklist items parsed from pre-split rows.

        Returns:
            Number of items imported.

        Raises:
            ChecklistImportError: zero valid rows; the existing checklist
                is left untouched.
        """
        require_capability(actor, Capability.IMPORT_CHECKLIST)
        self._inspection_contract(contract_id, "checklist_import")

        parsed, seen = parse_import_rows(rows, self._import_config)
        if not parsed:
            logger.warning(
                "checklist_import_empty",
                extra={"contract_id": str(contract_id), "rows_seen": seen},
            )
            raise ChecklistImportError(str(contract_id), rows_seen=seen)

        position = self._next_position(contract_id)
        for offset, row in enumerate(parsed):
            self.session.add(ChecklistItem(
                contract_id=contract_id,
                name=row.name,
                zone=row.zone,
                connectivity=row.connectivity,
                position=position + offset,
                created_by_id=actor.actor_id,
            ))
        self._flush("checklist_import", contract_id)

        logger.info(
            "checklist_imported",
            extra={
                "contract_id": str(contract_id),
                "rows_seen": seen,
                "rows_imported": len(parsed),
            },
        )
        return len(parsed)

    def list(self, contract_id: UUID) -> list[ChecklistItemInfo]:
        """Items of a contract in creation order."""
        self._inspection_contract(contract_id, "checklist_list")
        stmt = (
            select(ChecklistItem)
            .where(ChecklistItem.contract_id == contract_id)
            .order_by(ChecklistItem.position, ChecklistItem.created_at)
        )
        return [item.to_dto() for item in self.session.execute(stmt).scalars()]

    def update_check(
        self,
        item_id: UUID,
        field: CheckField | str,
        value: bool,
        *,
        actor: Actor,
    ) -> ChecklistItemInfo:
        """Set one inspection check on the loaded item (not flushed)."""
        require_capability(actor, Capability.EXECUTE_SERVICE)
        check = parse_check_field(field)
        item = self._item(item_id, "checklist_update")
        setattr(item, check.value, bool(value))
        item.updated_by_id = actor.actor_id
        return item.to_dto()

    def set_remark(self, item_id: UUID, text: str, *, actor: Actor) -> ChecklistItemInfo:
        """Set the remark on the loaded item (not flushed)."""
        require_capability(actor, Capability.EXECUTE_SERVICE)
        item = self._item(item_id, "checklist_update")
        item.remark = text or ""
        item.updated_by_id = actor.actor_id
        return item.to_dto()

    def save_items(
        self,
        contract_id: UUID,
        items: Sequence[ChecklistItemInfo],
        *,
        actor: Actor,
    ) -> int:
        """
        Persist working copies of checks and remarks for one contract.

        Items that belong to another contract are treated as unknown.

        Returns:
            Number of items written.
        """
        require_capability(actor, Capability.EXECUTE_SERVICE)
        self._inspection_contract(contract_id, "checklist_save")

        for info in items:
            item = self.session.get(ChecklistItem, info.id)
            if item is None or item.contract_id != contract_id:
                raise ChecklistItemNotFoundError(str(info.id))
            item.check_battery = info.check_battery
            item.check_rights = info.check_rights
            item.check_firmware = info.check_firmware
            item.remark = info.remark
            item.updated_by_id = actor.actor_id
        self._flush("checklist_save", contract_id)

        logger.info(
            "checklist_saved",
            extra={"contract_id": str(contract_id), "items": len(items)},
        )
        return len(items)

    def wipe(self, contract_id: UUID, *, actor: Actor, confirmed: bool = False) -> int:
        """
        Delete every checklist item of the contract.  Irreversible.

        Returns:
            Number of items deleted.
        """
        require_capability(actor, Capability.WIPE_CHECKLIST)
        if confirmed is not True:
            raise ConfirmationRequiredError("checklist_wipe")
        self._inspection_contract(contract_id, "checklist_wipe")

        items = self.session.execute(
            select(ChecklistItem).where(ChecklistItem.contract_id == contract_id)
        ).scalars().all()
        for item in items:
            self.session.delete(item)
        self._flush("checklist_wipe", contract_id)

        count = len(items)
        logger.warning(
            "checklist_wiped",
            extra={"contract_id": str(contract_id), "items_deleted": count, "actor_id": str(actor.actor_id)},
        )
        return count
