"""
Configuration validation (``sla_config.validator``).

Structural checks that the loader cannot express through parsing alone.
Returns every problem at once so a bad YAML file is fixed in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sla_config.schema import SlaConfig


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: SlaConfig) -> ValidationResult:
    errors: list[str] = []

    imp = config.checklist_import
    if min(imp.name_column, imp.zone_column, imp.connectivity_column) < 0:
        errors.append("checklist_import columns must be non-negative")
    if imp.name_column == imp.zone_column:
        errors.append("checklist_import.name_column and zone_column must differ")
    if imp.min_cells < 1:
        errors.append("checklist_import.min_cells must be at least 1")
    if not imp.header_tokens:
        errors.append("checklist_import.header_tokens must not be empty")

    if config.reconciliation.tolerance_factor < Decimal("1"):
        errors.append("reconciliation.tolerance_factor must be >= 1")

    if not config.storage.signature_prefix:
        errors.append("storage.signature_prefix must not be empty")

    if not config.work_order.company_name.strip():
        errors.append("work_order.company_name must not be empty")

    return ValidationResult(errors=tuple(errors))
