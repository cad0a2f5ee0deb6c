"""
Module: sla_kernel.models.contract
Responsibility: ORM persistence for service contracts.  A ServiceContract
    carries the client site, the category that selects its execution
    procedure, the planned month of its yearly visit, the completion
    sign-off, and the post-completion hours reconciliation.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.  MUST NOT import from services/, selectors/,
    or outer layers.

Invariants enforced:
    - planned_month is always within 1..12 (CHECK constraint and
      ``@validates`` guard).
    - hours_planned, when set, is non-negative with at most two decimals
      (``@validates`` guard), so the stored value is the one reconciled.
    - signer_name and signature_ref are written together by finalization;
      never one without the other (enforced at service layer).
    - calculation_done implies is_executed and actual_hours present
      (enforced at service layer, not ORM).
    - version increments on every write made through the kernel services.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from sla_kernel.db.base import TrackedBase, UTCDateTime
from sla_kernel.domain.category import ServiceCategory
from sla_kernel.domain.dtos import ContractInfo
from sla_kernel.domain.values import Attachment, ResultClass, has_hours_precision, parse_hours
from sla_kernel.exceptions import InvalidPlannedHoursError, InvalidPlannedMonthError


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ServiceContract(TrackedBase):
    """
    Maintenance agreement for one client site.

    Guarantees:
        - category selects the execution procedure (checklist vs. report).
        - planned_month is in range.
        - version starts at 1.

    Non-goals:
        - Does not compute urgency; that is ``sla_engines.status``.
        - Does not classify reconciliation; that is ``sla_engines.reconciliation``.
    """

    __tablename__ = "service_contracts"

    __table_args__ = (
        CheckConstraint("planned_month BETWEEN 1 AND 12", name="ck_contract_planned_month"),
        Index("idx_contract_planned_month", "planned_month"),
        Index("idx_contract_executed", "is_executed"),
        Index("idx_contract_calculation", "is_executed", "calculation_done"),
    )

    # =========================================================================
    # Classification and schedule
    # =========================================================================

    category: Mapped[ServiceCategory] = mapped_column(
        SAEnum(
            ServiceCategory,
            native_enum=False,
            length=40,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    planned_month: Mapped[int] = mapped_column(Integer, nullable=False)

    is_executed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reference_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        doc="Order / reference number printed on the work order",
    )

    # =========================================================================
    # Client and location
    # =========================================================================

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # =========================================================================
    # Commercial
    # =========================================================================

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_planned: Mapped[Decimal | None] = mapped_column(nullable=True)

    # =========================================================================
    # Execution
    # =========================================================================

    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    execution_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    signer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    signature_ref: Mapped[str | None] = mapped_column(String(512), nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    actual_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    result_class: Mapped[ResultClass | None] = mapped_column(
        SAEnum(
            ResultClass,
            native_enum=False,
            length=10,
            values_callable=_enum_values,
        ),
        nullable=True,
    )
    result_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # =========================================================================
    # Concurrency
    # =========================================================================

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @validates("planned_month")
    def _validate_planned_month(self, key: str, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 12:
            raise InvalidPlannedMonthError(value)
        return value

    @validates("hours_planned")
    def _validate_hours_planned(self, key: str, value):
        if value is None:
            return None
        hours = parse_hours(value)
        if hours is None or hours < 0 or not has_hours_precision(hours):
            raise InvalidPlannedHoursError(value)
        return hours

    def __repr__(self) -> str:
        return (
            f"<ServiceContract {self.client_name!r} {self.category.value if self.category else None} "
            f"month={self.planned_month} executed={self.is_executed}>"
        )

    def to_dto(self) -> ContractInfo:
        """Convert ORM model to frozen domain DTO."""
        return ContractInfo(
            id=self.id,
            category=ServiceCategory(self.category),
            client_name=self.client_name,
            location=self.location or "",
            city=self.city or "",
            planned_month=self.planned_month,
            is_executed=bool(self.is_executed),
            price=self.price if self.price is not None else Decimal("0"),
            hours_planned=self.hours_planned,
            reference_number=self.reference_number,
            contact_name=self.contact_name,
            contact_phone=self.contact_phone,
            contact_email=self.contact_email,
            comments=self.comments or "",
            execution_report=self.execution_report,
            attachments=tuple(Attachment.from_dict(a) for a in (self.attachments or [])),
            signer_name=self.signer_name,
            signature_ref=self.signature_ref,
            executed_at=self.executed_at,
            last_update=self.last_update,
            actual_hours=self.actual_hours,
            result_class=ResultClass(self.result_class) if self.result_class else None,
            result_note=self.result_note,
            calculation_done=bool(self.calculation_done),
            version=self.version or 1,
        )
