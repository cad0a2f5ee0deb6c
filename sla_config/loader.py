"""
Configuration Loader (``sla_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``sla_config.schema`` dataclasses.  Runtime callers use
``sla_config.get_active_config()``; this module is its implementation.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrongly typed values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from sla_config.schema import (
    ChecklistImportConfig,
    ConcurrencyConfig,
    ConcurrencyMode,
    ReconciliationConfig,
    SlaConfig,
    StorageConfig,
    WorkOrderConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_decimal(value: Any, label: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{label} must be a number, got {value!r}") from None


def parse_work_order(data: dict[str, Any]) -> WorkOrderConfig:
    defaults = WorkOrderConfig()
    labels = data.get("check_labels", defaults.check_labels)
    if len(labels) != 3:
        raise ValueError(f"work_order.check_labels needs exactly 3 labels, got {len(labels)}")
    return WorkOrderConfig(
        company_name=str(data.get("company_name", defaults.company_name)),
        document_title=str(data.get("document_title", defaults.document_title)),
        date_format=str(data.get("date_format", defaults.date_format)),
        missing_reference=str(data.get("missing_reference", defaults.missing_reference)),
        report_heading=str(data.get("report_heading", defaults.report_heading)),
        report_placeholder=str(data.get("report_placeholder", defaults.report_placeholder)),
        checklist_heading=str(data.get("checklist_heading", defaults.checklist_heading)),
        checklist_empty_text=str(data.get("checklist_empty_text", defaults.checklist_empty_text)),
        checklist_name_label=str(data.get("checklist_name_label", defaults.checklist_name_label)),
        check_labels=tuple(str(label) for label in labels),
        remark_label=str(data.get("remark_label", defaults.remark_label)),
        contractor_label=str(data.get("contractor_label", defaults.contractor_label)),
        client_label=str(data.get("client_label", defaults.client_label)),
    )


def parse_checklist_import(data: dict[str, Any]) -> ChecklistImportConfig:
    defaults = ChecklistImportConfig()
    return ChecklistImportConfig(
        name_column=int(data.get("name_column", defaults.name_column)),
        zone_column=int(data.get("zone_column", defaults.zone_column)),
        connectivity_column=int(data.get("connectivity_column", defaults.connectivity_column)),
        min_cells=int(data.get("min_cells", defaults.min_cells)),
        header_tokens=tuple(
            str(t).strip().lower() for t in data.get("header_tokens", defaults.header_tokens)
        ),
    )


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationConfig:
    defaults = ReconciliationConfig()
    return ReconciliationConfig(
        tolerance_factor=parse_decimal(
            data.get("tolerance_factor", defaults.tolerance_factor),
            "reconciliation.tolerance_factor",
        ),
    )


def parse_concurrency(data: dict[str, Any]) -> ConcurrencyConfig:
    raw = data.get("mode", ConcurrencyMode.LAST_WRITE_WINS.value)
    try:
        return ConcurrencyConfig(mode=ConcurrencyMode(raw))
    except ValueError:
        raise ValueError(f"concurrency.mode must be one of "
                         f"{[m.value for m in ConcurrencyMode]}, got {raw!r}") from None


def parse_storage(data: dict[str, Any]) -> StorageConfig:
    defaults = StorageConfig()
    return StorageConfig(
        signature_prefix=str(data.get("signature_prefix", defaults.signature_prefix)).strip("/"),
        signature_content_type=str(
            data.get("signature_content_type", defaults.signature_content_type)
        ),
    )


def parse_config(data: dict[str, Any]) -> SlaConfig:
    """Parse a whole configuration set dict into an ``SlaConfig``."""
    return SlaConfig(
        name=str(data.get("name", "default")),
        version=int(data.get("version", 1)),
        work_order=parse_work_order(data.get("work_order") or {}),
        checklist_import=parse_checklist_import(data.get("checklist_import") or {}),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        concurrency=parse_concurrency(data.get("concurrency") or {}),
        storage=parse_storage(data.get("storage") or {}),
        checksum=compute_checksum(data),
    )
