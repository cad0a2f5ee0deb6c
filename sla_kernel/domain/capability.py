"""
Actor capabilities (``sla_kernel.domain.capability``).

Role-gated editability is an explicit parameter: every mutating operation
receives the acting ``Actor`` and calls ``require_capability`` before it
touches anything.  There is no ambient role state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sla_kernel.exceptions import CapabilityError
from sla_kernel.logging_config import get_logger

logger = get_logger("domain.capability")


class Role(str, Enum):
    ADMINISTRATOR = "admin"
    TECHNICIAN = "technician"


class Capability(str, Enum):
    EXECUTE_SERVICE = "execute_service"  # edit checklist/report, sign, finalize
    IMPORT_CHECKLIST = "import_checklist"
    WIPE_CHECKLIST = "wipe_checklist"
    RECONCILE = "reconcile"
    START_SERVICE_YEAR = "start_service_year"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMINISTRATOR: frozenset(Capability),
    Role.TECHNICIAN: frozenset({Capability.EXECUTE_SERVICE}),
}


@dataclass(frozen=True)
class Actor:
    """Who performs an operation."""

    actor_id: UUID
    role: Role

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())


def require_capability(actor: Actor, capability: Capability) -> None:
    """Raise CapabilityError unless ``actor`` holds ``capability``."""
    if not actor.can(capability):
        logger.warning(
            "capability_denied",
            extra={
                "actor_id": str(actor.actor_id),
                "role": actor.role.value,
                "capability": capability.value,
            },
        )
        raise CapabilityError(str(actor.actor_id), actor.role.value, capability.value)
