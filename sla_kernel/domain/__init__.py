"""
Pure domain layer.

Immutable value objects and DTOs with NO dependencies on the ORM, the
database or I/O.  Time enters only through a ``Clock``.
"""

from sla_kernel.domain.capability import (
    ROLE_CAPABILITIES,
    Actor,
    Capability,
    Role,
    require_capability,
)
from sla_kernel.domain.category import (
    CHECK_FIELDS,
    CheckField,
    InspectionProcedure,
    Procedure,
    ReportProcedure,
    ServiceCategory,
    parse_check_field,
    procedure_for,
    uses_checklist,
)
from sla_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from sla_kernel.domain.dtos import ChecklistItemInfo, ContractInfo
from sla_kernel.domain.values import Attachment, ResultClass, Unavailable, parse_hours
from sla_kernel.domain.workflow import (
    EXECUTION_WORKFLOW,
    ExecutionStage,
    Guard,
    Transition,
    Workflow,
)

__all__ = [
    "Actor",
    "Attachment",
    "CHECK_FIELDS",
    "Capability",
    "CheckField",
    "ChecklistItemInfo",
    "Clock",
    "ContractInfo",
    "DeterministicClock",
    "EXECUTION_WORKFLOW",
    "ExecutionStage",
    "Guard",
    "InspectionProcedure",
    "Procedure",
    "ROLE_CAPABILITIES",
    "ReportProcedure",
    "ResultClass",
    "Role",
    "ServiceCategory",
    "SystemClock",
    "Transition",
    "Unavailable",
    "Workflow",
    "parse_check_field",
    "parse_hours",
    "procedure_for",
    "require_capability",
    "uses_checklist",
]
