"""
Module: sla_engines.reconciliation
Responsibility:
    Classify the labor variance of a completed service visit ("nacalculatie"):
    actual hours against planned hours, with a fixed tolerance band.

        actual <  planned                      -> PROFIT
        planned <= actual <= planned * 1.10    -> CORRECT
        actual >  planned * 1.10               -> LOSS

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``sla_services.reconciliation_service`` which owns the
    commit / revert writes.

Invariants enforced:
    - Decimal-only arithmetic; ``4 * 1.10 == 4.40`` exactly, so 4.4 hours
      against 4 planned is CORRECT and 4.41 is LOSS.
    - Identical inputs produce identical results and notes.
    - Actual hours are classified only at the two places they are stored
      with, so a stored class always matches the stored hours.

Failure modes:
    - Never raises for bad input shape.  Missing or non-positive planned
      hours, and missing, negative, non-numeric or sub-0.01 actual hours,
      yield ``Unavailable``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sla_kernel.domain.values import ResultClass, Unavailable, has_hours_precision, parse_hours
from sla_kernel.logging_config import get_logger
from sla_engines.tracer import traced_engine

logger = get_logger("engines.reconciliation")

DEFAULT_TOLERANCE_FACTOR = Decimal("1.10")

_HUNDRED = Decimal("100")
_PERCENT_PLACES = Decimal("0.1")


def _percent(variance: Decimal, planned: Decimal) -> Decimal:
    return (variance / planned * _HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)


def _fmt(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Result of a planned-vs-actual classification.

    Guarantees:
        - ``variance_hours`` = actual - planned (negative means under plan).
        - ``upper_bound`` = planned * tolerance factor.
    """

    hours_planned: Decimal
    actual_hours: Decimal
    result_class: ResultClass
    variance_hours: Decimal
    upper_bound: Decimal
    note: str

    @property
    def variance_percent(self) -> Decimal:
        return _percent(self.variance_hours, self.hours_planned)


class ReconciliationCalculator:
    """
    Pure labor-variance classifier.

    Contract:
        No I/O, no database access, fully deterministic.
    Non-goals:
        - Does not check whether the contract is executed or already
          reconciled; that is the service's job.
        - Does not persist anything.
    """

    def __init__(self, tolerance_factor: Decimal = DEFAULT_TOLERANCE_FACTOR):
        if tolerance_factor < Decimal("1"):
            raise ValueError(f"tolerance_factor must be >= 1, got {tolerance_factor}")
        self.tolerance_factor = tolerance_factor

    @traced_engine(
        "reconciliation", "1.0",
        fingerprint_fields=("hours_planned", "actual_hours"),
    )
    def classify(
        self,
        *,
        hours_planned: Any,
        actual_hours: Any,
    ) -> ReconciliationResult | Unavailable:
        """
        Classify actual hours against planned hours.

        Args:
            hours_planned: Planned labor hours (must be > 0).
            actual_hours: Hours actually spent (must be >= 0).

        Returns:
            ReconciliationResult, or Unavailable when either input is unusable.
        """
        planned = parse_hours(hours_planned)
        if planned is None or planned <= 0:
            logger.info("reconciliation_unavailable", extra={
                "reason": "planned_hours",
                "hours_planned": repr(hours_planned),
            })
            return Unavailable("planned hours missing or not positive")

        actual = parse_hours(actual_hours)
        if actual is None or actual < 0 or not has_hours_precision(actual):
            logger.info("reconciliation_unavailable", extra={
                "reason": "actual_hours",
                "actual_hours": repr(actual_hours),
            })
            return Unavailable("actual hours missing, negative, not a number or finer than 0.01")

        upper_bound = planned * self.tolerance_factor
        if actual < planned:
            result_class = ResultClass.PROFIT
        elif actual <= upper_bound:
            result_class = ResultClass.CORRECT
        else:
            result_class = ResultClass.LOSS

        variance = actual - planned
        note = self._note(result_class, planned, actual, variance)

        return ReconciliationResult(
            hours_planned=planned,
            actual_hours=actual,
            result_class=result_class,
            variance_hours=variance,
            upper_bound=upper_bound,
            note=note,
        )

    def _note(
        self,
        result_class: ResultClass,
        planned: Decimal,
        actual: Decimal,
        variance: Decimal,
    ) -> str:
        percent = _percent(variance, planned)
        head = f"{_fmt(actual)} h actual vs {_fmt(planned)} h planned"
        band = _fmt((self.tolerance_factor - 1) * _HUNDRED)
        match result_class:
            case ResultClass.PROFIT:
                return f"Profit: {head} ({_fmt(-variance)} h under plan, {percent}%)"
            case ResultClass.CORRECT:
                return f"Correct: {head} (+{percent}%, within the {band}% band)"
            case ResultClass.LOSS:
                return f"Loss: {head} ({_fmt(variance)} h over plan, +{percent}%, above the {band}% band)"
