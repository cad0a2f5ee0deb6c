"""
Frozen read models handed across layer boundaries (``sla_kernel.domain.dtos``).

Services return these instead of ORM entities so no session state leaks to
callers.  The work-order generator and the engines consume them directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sla_kernel.domain.category import (
    CheckField,
    InspectionProcedure,
    Procedure,
    ServiceCategory,
    procedure_for,
)
from sla_kernel.domain.values import Attachment, ResultClass


@dataclass(frozen=True)
class ContractInfo:
    """Snapshot of a service contract."""

    id: UUID
    category: ServiceCategory
    client_name: str
    location: str
    city: str
    planned_month: int
    is_executed: bool
    price: Decimal
    hours_planned: Decimal | None = None
    reference_number: str | None = None
    contact_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    comments: str = ""
    execution_report: str | None = None
    attachments: tuple[Attachment, ...] = ()
    signer_name: str | None = None
    signature_ref: str | None = None
    executed_at: datetime | None = None
    last_update: datetime | None = None
    actual_hours: Decimal | None = None
    result_class: ResultClass | None = None
    result_note: str | None = None
    calculation_done: bool = False
    version: int = 1

    @property
    def procedure(self) -> Procedure:
        return procedure_for(self.category)

    @property
    def uses_checklist(self) -> bool:
        return isinstance(self.procedure, InspectionProcedure)

    @property
    def is_pending_reconciliation(self) -> bool:
        """Executed but not yet reconciled."""
        return self.is_executed and not self.calculation_done

    @property
    def is_reconciled(self) -> bool:
        return self.is_executed and self.calculation_done


@dataclass(frozen=True)
class ChecklistItemInfo:
    """Snapshot of one checklist item."""

    id: UUID
    contract_id: UUID
    name: str
    position: int
    zone: str = ""
    connectivity: str = ""
    check_battery: bool = False
    check_rights: bool = False
    check_firmware: bool = False
    remark: str = ""

    def check(self, field: CheckField) -> bool:
        return bool(getattr(self, field.value))

    @property
    def is_reviewed(self) -> bool:
        """True once any of the three checks has been ticked."""
        return self.check_battery or self.check_rights or self.check_firmware
