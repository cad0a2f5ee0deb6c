"""
Service categories and their execution procedures (``sla_kernel.domain.category``).

Responsibility
--------------
Defines the fixed set of service contract categories and maps each one to
exactly one *procedure*: either a checklist-driven inspection or a free-text
execution report.  ``Procedure`` is a closed tagged union; the execution
session and the work-order generator both dispatch on it with ``match`` so
category behaviour lives in one place.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every ``ServiceCategory`` maps to exactly one procedure.
* Only ``InspectionProcedure`` carries check fields; report-based categories
  never read or write checklist items.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sla_kernel.exceptions import InvalidChecklistFieldError


class ServiceCategory(str, Enum):
    """Contract category.  Values are the labels stored on the contract."""

    ACCESS_CONTROL = "Toegangscontrole"  # inspection-based
    REVOLVING_DOOR = "Draaideurautomatisatie"
    GATE_AUTOMATION = "Poortautomatisatie"
    SUN_SHADING = "Zonneweringen"


class CheckField(str, Enum):
    """The three independent inspection checks on a checklist item."""

    BATTERY = "check_battery"
    ACCESS_RIGHTS = "check_rights"
    FIRMWARE = "check_firmware"


CHECK_FIELDS: tuple[CheckField, ...] = (
    CheckField.BATTERY,
    CheckField.ACCESS_RIGHTS,
    CheckField.FIRMWARE,
)


def parse_check_field(field: str | CheckField) -> CheckField:
    """Resolve a check field name, raising InvalidChecklistFieldError if unknown."""
    if isinstance(field, CheckField):
        return field
    try:
        return CheckField(field)
    except ValueError:
        raise InvalidChecklistFieldError(
            str(field), tuple(f.value for f in CHECK_FIELDS)
        ) from None


@dataclass(frozen=True)
class InspectionProcedure:
    """Checklist-driven procedure: one row per inspected access point."""

    category: ServiceCategory
    check_fields: tuple[CheckField, ...] = CHECK_FIELDS


@dataclass(frozen=True)
class ReportProcedure:
    """Free-text procedure: the technician writes an execution report."""

    category: ServiceCategory


Procedure = InspectionProcedure | ReportProcedure


def procedure_for(category: ServiceCategory | str) -> Procedure:
    """Return the procedure for a category.

    Raises:
        ValueError: If ``category`` is not a known category label.
    """
    category = ServiceCategory(category)
    match category:
        case ServiceCategory.ACCESS_CONTROL:
            return InspectionProcedure(category)
        case (
            ServiceCategory.REVOLVING_DOOR
            | ServiceCategory.GATE_AUTOMATION
            | ServiceCategory.SUN_SHADING
        ):
            return ReportProcedure(category)
    raise ValueError(f"Unmapped service category: {category!r}")


def uses_checklist(category: ServiceCategory | str) -> bool:
    """True when the category's procedure is checklist-driven."""
    return isinstance(procedure_for(category), InspectionProcedure)
