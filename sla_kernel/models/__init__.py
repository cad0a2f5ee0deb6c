"""ORM models for the SLA kernel."""

from sla_kernel.models.checklist import ChecklistItem
from sla_kernel.models.contract import ServiceContract

__all__ = [
    "ChecklistItem",
    "ServiceContract",
]
