"""
Value objects shared by engines and services (``sla_kernel.domain.values``).

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Hours are Decimal, never float.  ``parse_hours`` converts ints, floats
      and strings through ``str`` so ``4.4`` becomes ``Decimal("4.4")``.
    - Stored hours have two decimal places.  ``has_hours_precision`` tells
      whether a value survives that column unchanged.
    - Pure calculations signal unusable input with ``Unavailable`` instead
      of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class ResultClass(str, Enum):
    """Outcome of the planned-vs-actual hours reconciliation."""

    PROFIT = "profit"
    CORRECT = "correct"
    LOSS = "loss"


@dataclass(frozen=True, slots=True)
class Unavailable:
    """Typed absence: the calculation cannot be made for this input."""

    reason: str

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file attached to a contract (photo or document)."""

    name: str
    url: str
    kind: str = "file"  # "image" | "file"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            name=data["name"],
            url=data["url"],
            kind=data.get("kind") or data.get("type") or "file",
        )

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url, "kind": self.kind}


def parse_hours(value: Any) -> Decimal | None:
    """
    Convert a submitted hours value to Decimal.

    Returns None for None, booleans, non-numeric strings, NaN and infinity.
    Negative values are returned as-is; callers decide whether to accept them.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip().replace(",", "."))
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


HOURS_QUANTUM = Decimal("0.01")


def has_hours_precision(value: Decimal) -> bool:
    """True when ``value`` has no digits below 0.01 (``4.400`` does, ``4.404`` does not)."""
    return value == value.quantize(HOURS_QUANTUM)
