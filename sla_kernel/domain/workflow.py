"""
Canonical workflow types (``sla_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, and the one state machine
the system has: the execution / sign-off workflow of a service contract.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the session does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"initial_state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t.action!r} references unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"Terminal state {t.from_state!r} has outgoing transition")

    def transition_for(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


class ExecutionStage(str, Enum):
    """Stages of an execution session."""

    LOADING = "loading"
    EDITING = "editing"
    AWAITING_SIGNATURE = "awaiting_signature"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


SIGNATURE_COMPLETE = Guard(
    name="signature_complete",
    description="Signer name is non-empty and a signature image was captured",
)

EXECUTION_WORKFLOW = Workflow(
    name="service_execution",
    description="Execute -> sign -> finalize a service contract visit",
    initial_state=ExecutionStage.LOADING.value,
    states=tuple(s.value for s in ExecutionStage),
    transitions=(
        Transition("loading", "editing", action="load"),
        Transition("editing", "editing", action="edit"),
        Transition("editing", "editing", action="checkpoint"),
        Transition("editing", "awaiting_signature", action="request_finalization"),
        Transition("awaiting_signature", "editing", action="resume_editing"),
        Transition("awaiting_signature", "finalizing", action="finalize", guard=SIGNATURE_COMPLETE),
        Transition("finalizing", "completed", action="complete"),
        Transition("finalizing", "awaiting_signature", action="fail"),
        Transition("editing", "abandoned", action="abandon"),
        Transition("awaiting_signature", "abandoned", action="abandon"),
    ),
    terminal_states=(ExecutionStage.COMPLETED.value,),
)
