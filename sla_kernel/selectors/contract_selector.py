"""
Module: sla_kernel.selectors.contract_selector
Responsibility: Read-side queries over service contracts: the full list,
    the reconciliation pools handed to reporting/export, and the urgency
    overview every display surface is built from.

Invariants enforced:
    - Pool membership is derived from stored flags, never stored itself:
      pending = executed and not calculation_done,
      completed = executed and calculation_done.
    - Urgency is computed with the one StatusClassifier rule; no surface
      re-implements it.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy import select

from sla_kernel.domain.dtos import ContractInfo
from sla_kernel.exceptions import ContractNotFoundError
from sla_kernel.models.contract import ServiceContract
from sla_kernel.selectors.base import BaseSelector
from sla_engines.status import StatusClassifier, UrgencyBucket


def month_name(month: int | None) -> str:
    """Label of a planned month; "Unknown" outside 1..12."""
    if isinstance(month, int) and not isinstance(month, bool) and 1 <= month <= 12:
        return calendar.month_name[month]
    return "Unknown"


@dataclass(frozen=True)
class UrgencyOverview:
    """Contracts grouped by urgency bucket, each group in list order."""

    as_of: date
    buckets: dict[UrgencyBucket, tuple[ContractInfo, ...]] = field(default_factory=dict)
    unavailable: tuple[ContractInfo, ...] = ()

    def count(self, bucket: UrgencyBucket) -> int:
        return len(self.buckets.get(bucket, ()))

    def contracts(self, bucket: UrgencyBucket) -> tuple[ContractInfo, ...]:
        return self.buckets.get(bucket, ())


class ContractSelector(BaseSelector[ServiceContract]):
    """Read-only contract queries."""

    def __init__(self, session, classifier: StatusClassifier | None = None):
        super().__init__(session)
        self._classifier = classifier or StatusClassifier()

    def get(self, contract_id: UUID) -> ContractInfo:
        contract = self.session.get(ServiceContract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract.to_dto()

    def list_all(self) -> list[ContractInfo]:
        """All contracts by planned month, then client name."""
        stmt = select(ServiceContract).order_by(
            ServiceContract.planned_month, ServiceContract.client_name,
        )
        return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def pending_reconciliation(self) -> list[ContractInfo]:
        """Executed contracts still awaiting hours reconciliation."""
        stmt = (
            select(ServiceContract)
            .where(
                ServiceContract.is_executed.is_(True),
                ServiceContract.calculation_done.is_(False),
            )
            .order_by(ServiceContract.executed_at, ServiceContract.client_name)
        )
        return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def completed_reconciliation(self) -> list[ContractInfo]:
        """Executed and reconciled contracts."""
        stmt = (
            select(ServiceContract)
            .where(
                ServiceContract.is_executed.is_(True),
                ServiceContract.calculation_done.is_(True),
            )
            .order_by(ServiceContract.executed_at, ServiceContract.client_name)
        )
        return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def urgency_overview(self, today: date) -> UrgencyOverview:
        """Group every contract by its urgency bucket on ``today``."""
        grouped: dict[UrgencyBucket, list[ContractInfo]] = {b: [] for b in UrgencyBucket}
        unavailable: list[ContractInfo] = []
        for info in self.list_all():
            bucket = self._classifier.classify_contract(info, today)
            if isinstance(bucket, UrgencyBucket):
                grouped[bucket].append(info)
            else:
                unavailable.append(info)
        return UrgencyOverview(
            as_of=today,
            buckets={b: tuple(items) for b, items in grouped.items()},
            unavailable=tuple(unavailable),
        )
