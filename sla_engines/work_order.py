"""
Module: sla_engines.work_order
Responsibility:
    Assemble the structured work-order document of a finalized service
    visit: header, client block, category-dependent body and signature
    block.  Rendering, pagination and printing belong to the export
    collaborator; this module only produces content.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes ContractInfo / ChecklistItemInfo snapshots and WorkOrderConfig.

Invariants enforced:
    - Identical inputs always produce an identical document.  The issue
      date is a parameter, never read from a clock.
    - Body selection dispatches on the category's ``Procedure``:
      inspection procedures get one table row per checklist item, in the
      order given; report procedures get the verbatim execution report or
      the configured placeholder.

Failure modes:
    - None for well-typed input.  Checklist items passed for a report-based
      contract are ignored.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sla_config.schema import WorkOrderConfig
from sla_kernel.domain.category import InspectionProcedure, ReportProcedure
from sla_kernel.domain.dtos import ChecklistItemInfo, ContractInfo
from sla_engines.tracer import traced_engine


@dataclass(frozen=True)
class DocumentHeader:
    company_name: str
    title: str
    reference: str
    issued_on: date
    date_text: str


@dataclass(frozen=True)
class ClientBlock:
    client_name: str
    location: str
    city: str
    contact_name: str
    category_label: str


@dataclass(frozen=True)
class InspectionRow:
    """One checklist item as printed: name, zone, the three checks, remark."""

    name: str
    zone: str
    checks: tuple[bool, ...]
    remark: str


@dataclass(frozen=True)
class InspectionTable:
    heading: str
    columns: tuple[str, ...]
    rows: tuple[InspectionRow, ...]
    empty_text: str

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class ExecutionReportBody:
    heading: str
    text: str
    is_placeholder: bool


DocumentBody = InspectionTable | ExecutionReportBody


@dataclass(frozen=True)
class SignatureBlock:
    contractor_label: str
    contractor_name: str
    client_label: str
    signer_name: str
    signature_ref: str


@dataclass(frozen=True)
class WorkOrderDocument:
    """
    Generated record of a completed visit.

    Only ``signature.signature_ref`` is persisted (on the contract); the
    document itself is ephemeral.
    """

    contract_id: UUID
    header: DocumentHeader
    client: ClientBlock
    body: DocumentBody
    signature: SignatureBlock

    @property
    def title(self) -> str:
        return f"Work order - {self.client.client_name}"

    def as_dict(self) -> dict[str, Any]:
        """Plain nested dict for the print/export collaborator."""
        match self.body:
            case InspectionTable():
                body_kind = "inspection_table"
            case ExecutionReportBody():
                body_kind = "execution_report"
        body = asdict(self.body)
        body["kind"] = body_kind
        header = asdict(self.header)
        header["issued_on"] = self.header.issued_on.isoformat()
        return {
            "contract_id": str(self.contract_id),
            "title": self.title,
            "header": header,
            "client": asdict(self.client),
            "body": body,
            "signature": asdict(self.signature),
        }


def _inspection_body(
    procedure: InspectionProcedure,
    items: Sequence[ChecklistItemInfo],
    config: WorkOrderConfig,
) -> InspectionTable:
    rows = tuple(
        InspectionRow(
            name=item.name,
            zone=item.zone or "-",
            checks=tuple(item.check(f) for f in procedure.check_fields),
            remark=item.remark or "",
        )
        for item in items
    )
    return InspectionTable(
        heading=config.checklist_heading,
        columns=(config.checklist_name_label, *config.check_labels, config.remark_label),
        rows=rows,
        empty_text=config.checklist_empty_text,
    )


def _report_body(contract: ContractInfo, config: WorkOrderConfig) -> ExecutionReportBody:
    report = contract.execution_report or ""
    if report.strip():
        return ExecutionReportBody(config.report_heading, report, is_placeholder=False)
    return ExecutionReportBody(config.report_heading, config.report_placeholder, is_placeholder=True)


@traced_engine(
    "work_order", "1.0",
    fingerprint_fields=("signer_name", "signature_ref", "issued_on"),
)
def generate_work_order(
    *,
    contract: ContractInfo,
    items: Sequence[ChecklistItemInfo] = (),
    signer_name: str,
    signature_ref: str,
    issued_on: date,
    config: WorkOrderConfig | None = None,
) -> WorkOrderDocument:
    """
    Build the work-order document for a finalized contract.

    Args:
        contract: Snapshot of the contract after finalization.
        items: Checklist items in ChecklistStore.list order (inspection
            categories only).
        signer_name: Name of the client representative who signed.
        signature_ref: Blob reference of the stored signature image.
        issued_on: Date printed on the document.
        config: Fixed document texts; defaults to ``WorkOrderConfig()``.

    Returns:
        WorkOrderDocument.
    """
    config = config or WorkOrderConfig()

    body: DocumentBody
    match contract.procedure:
        case InspectionProcedure() as procedure:
            body = _inspection_body(procedure, items, config)
        case ReportProcedure():
            body = _report_body(contract, config)

    return WorkOrderDocument(
        contract_id=contract.id,
        header=DocumentHeader(
            company_name=config.company_name,
            title=config.document_title,
            reference=contract.reference_number or config.missing_reference,
            issued_on=issued_on,
            date_text=issued_on.strftime(config.date_format),
        ),
        client=ClientBlock(
            client_name=contract.client_name,
            location=contract.location,
            city=contract.city,
            contact_name=contract.contact_name or config.missing_reference,
            category_label=contract.category.value,
        ),
        body=body,
        signature=SignatureBlock(
            contractor_label=config.contractor_label,
            contractor_name=config.company_name,
            client_label=config.client_label,
            signer_name=signer_name,
            signature_ref=signature_ref,
        ),
    )
