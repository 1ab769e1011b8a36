"""
Injectable time source for the mill ledger.

Services take a ``Clock`` in their constructor and never read the wall
clock themselves.  Scrap dates, disposal dates, ``last_stock_update`` and
the ``YYYYMMDD`` part of every document number come from it, so a test
that pins the clock pins all of them.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

MILL_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current UTC instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today_stamp(self) -> str:
        """The current UTC day formatted for document numbers."""
        return self.now().astimezone(timezone.utc).strftime("%Y%m%d")


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant.

    Starts at noon UTC on 2024-01-01 unless told otherwise.  Time only moves
    when a test calls ``set_time``.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or MILL_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment
