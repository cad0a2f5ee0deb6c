"""
SlaConfig schema.

Typed, frozen view of a configuration set.  YAML files are parsed into
these types by the loader; every runtime consumer receives an ``SlaConfig``
(or one of its sections) and never reads files itself.

The dataclass defaults mirror ``sets/default.yaml`` so pure functions can
run with ``SlaConfig()`` when no file has been loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class ConcurrencyMode(str, Enum):
    LAST_WRITE_WINS = "last_write_wins"
    OPTIMISTIC = "optimistic"


@dataclass(frozen=True)
class WorkOrderConfig:
    """Fixed texts of the generated work-order document."""

    company_name: str = "Santens Automatics"
    document_title: str = "Service Level Agreement"
    date_format: str = "%d/%m/%Y"
    missing_reference: str = "-"
    report_heading: str = "Work performed"
    report_placeholder: str = "No details entered."
    checklist_heading: str = "Door list and performed actions"
    checklist_empty_text: str = "No doors in list."
    checklist_name_label: str = "Door / Zone"
    check_labels: tuple[str, str, str] = ("Battery", "Rights", "Firmware")
    remark_label: str = "Remark"
    contractor_label: str = "For the contractor"
    client_label: str = "For client approval"


@dataclass(frozen=True)
class ChecklistImportConfig:
    """Cell layout of the inspection-device export."""

    name_column: int = 1
    zone_column: int = 2
    connectivity_column: int = 3
    min_cells: int = 2
    header_tokens: tuple[str, ...] = ("name", "naam")


@dataclass(frozen=True)
class ReconciliationConfig:
    """Correct-band upper bound as a factor of planned hours."""

    tolerance_factor: Decimal = Decimal("1.10")


@dataclass(frozen=True)
class ConcurrencyConfig:
    mode: ConcurrencyMode = ConcurrencyMode.LAST_WRITE_WINS


@dataclass(frozen=True)
class StorageConfig:
    signature_prefix: str = "signatures"
    signature_content_type: str = "image/png"


@dataclass(frozen=True)
class SlaConfig:
    """Complete runtime configuration."""

    name: str = "default"
    version: int = 1
    work_order: WorkOrderConfig = field(default_factory=WorkOrderConfig)
    checklist_import: ChecklistImportConfig = field(default_factory=ChecklistImportConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    checksum: str = ""
