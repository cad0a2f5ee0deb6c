"""
Injectable time source (``sla_kernel.domain.clock``).

The urgency bucket of a contract flips at a month boundary, checkpoints and
finalization stamp ``last_update`` / ``executed_at``, and the work order
prints an issue date.  All of them read time through a ``Clock`` passed in
by the caller, never from ``datetime.now()``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current instant."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """
    Wall clock.  ``tz`` decides where the month boundary falls for urgency;
    pass the sites' timezone when it is not UTC.
    """

    def __init__(self, tz: tzinfo = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """Fixed instant for tests; moves only through ``advance``, ``tick`` or ``set_time``."""

    def __init__(self, fixed_time: datetime | None = None):
        self._base = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._base + self._offset

    def set_time(self, time: datetime) -> None:
        self._base = time
        self._offset = timedelta()

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self.now()
