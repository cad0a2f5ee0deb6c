"""
Module: sla_engines.status
Responsibility:
    Classify a service contract into an urgency bucket from its planned
    month, its executed flag and the current calendar month.  Every display
    surface (overview, list, map) uses this one rule.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import sla_kernel/domain.

Invariants enforced:
    - Executed contracts are always EXECUTED, whatever the planned month.
    - The two months following the current month (1-indexed, wrapping
      December -> January) are UPCOMING.  This takes precedence over the
      "planned month <= current month" test, so in November and December
      the January / February contracts read as UPCOMING, not CRITICAL.
    - "Due this month" and "overdue" are one bucket: CRITICAL.
    - Purity: the current month is a parameter; no clock access.

Known limitation:
    The rule has no notion of year.  A contract planned for March is judged
    only against the current calendar month, recurring every year.  This
    suits yearly-cycle contracts and is kept as is.

Failure modes:
    - Never raises for bad input.  A planned or current month outside 1..12
      (or missing) yields ``Unavailable``.

Usage:
    from sla_engines.status import StatusClassifier, UrgencyBucket

    bucket = StatusClassifier().classify(
        planned_month=1, is_executed=False, current_month=12,
    )  # UrgencyBucket.UPCOMING
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from sla_kernel.domain.dtos import ContractInfo
from sla_kernel.domain.values import Unavailable
from sla_kernel.logging_config import get_logger
from sla_engines.tracer import traced_engine

logger = get_logger("engines.status")


class UrgencyBucket(str, Enum):
    """Display urgency of a contract."""

    EXECUTED = "executed"
    CRITICAL = "critical"  # due this month or overdue
    UPCOMING = "upcoming"  # due in one of the next two months
    FUTURE = "future"


def _is_month(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 12


def following_months(current_month: int) -> tuple[int, int]:
    """The two calendar months after ``current_month``, wrapping after December."""
    n1 = (current_month % 12) + 1
    n2 = (n1 % 12) + 1
    return n1, n2


class StatusClassifier:
    """
    Pure urgency classifier.

    Contract:
        No I/O, no clock access, fully deterministic.
    Guarantees:
        - Returns exactly one ``UrgencyBucket`` for valid input.
        - Returns ``Unavailable`` for input outside the valid shape.
    """

    @traced_engine(
        "status", "1.0",
        fingerprint_fields=("planned_month", "is_executed", "current_month"),
    )
    def classify(
        self,
        *,
        planned_month: int | None,
        is_executed: bool,
        current_month: int,
    ) -> UrgencyBucket | Unavailable:
        """
        Classify one schedule.

        Args:
            planned_month: Month of the yearly visit (1..12).
            is_executed: Whether this cycle's visit is signed off.
            current_month: Current calendar month (1..12).

        Returns:
            UrgencyBucket, or Unavailable when a month is out of range.
        """
        if is_executed:
            return UrgencyBucket.EXECUTED

        if not _is_month(current_month):
            logger.warning("status_current_month_invalid", extra={
                "current_month": repr(current_month),
            })
            return Unavailable(f"current month out of range: {current_month!r}")
        if not _is_month(planned_month):
            logger.warning("status_planned_month_invalid", extra={
                "planned_month": repr(planned_month),
            })
            return Unavailable(f"planned month out of range: {planned_month!r}")

        if planned_month in following_months(current_month):
            return UrgencyBucket.UPCOMING
        if planned_month <= current_month:
            return UrgencyBucket.CRITICAL
        return UrgencyBucket.FUTURE

    def classify_on(
        self,
        *,
        planned_month: int | None,
        is_executed: bool,
        today: date,
    ) -> UrgencyBucket | Unavailable:
        """Classify against a date; only its month number is used."""
        return self.classify(
            planned_month=planned_month,
            is_executed=is_executed,
            current_month=today.month,
        )

    def classify_contract(self, contract: ContractInfo, today: date) -> UrgencyBucket | Unavailable:
        """Classify a contract snapshot."""
        return self.classify_on(
            planned_month=contract.planned_month,
            is_executed=contract.is_executed,
            today=today,
        )
