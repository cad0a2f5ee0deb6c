"""
Module: sla_kernel.models.checklist
Responsibility: ORM persistence for checklist items -- one inspected access
    point of an inspection-based service contract.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - position records creation order; it is the display and document order.
    - The three boolean checks are the authoritative inspection schema.
      legacy_status keeps the older single tri-state value ("pending" /
      "ok" / "nok") verbatim for one-time migration and is never read by
      the workflow.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sla_kernel.db.base import TrackedBase, UUIDString
from sla_kernel.domain.dtos import ChecklistItemInfo


class ChecklistItem(TrackedBase):
    """One inspected access point (door, reader, gate) on a contract."""

    __tablename__ = "checklist_items"

    __table_args__ = (
        Index("idx_checklist_contract_position", "contract_id", "position"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("service_contracts.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    zone: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    connectivity: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        default="",
        doc="Connectivity label from the inspection-device export (online/offline/...)",
    )

    check_battery: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    check_rights: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    check_firmware: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    remark: Mapped[str] = mapped_column(Text, nullable=False, default="")

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    legacy_status: Mapped[str | None] = mapped_column(String(10), nullable=True)

    def __repr__(self) -> str:
        return f"<ChecklistItem {self.name!r} pos={self.position}>"

    def to_dto(self) -> ChecklistItemInfo:
        """Convert ORM model to frozen domain DTO."""
        return ChecklistItemInfo(
            id=self.id,
            contract_id=self.contract_id,
            name=self.name,
            position=self.position,
            zone=self.zone or "",
            connectivity=self.connectivity or "",
            check_battery=bool(self.check_battery),
            check_rights=bool(self.check_rights),
            check_firmware=bool(self.check_firmware),
            remark=self.remark or "",
        )
