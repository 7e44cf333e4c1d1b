"""
Clock -- injectable time source.

Services never call ``datetime.now()`` or ``date.today()``.  Lot dates,
transaction and cash-flow codes, and ``reversed_at`` stamps all come from
the Clock handed to the service.

``now()`` is always timezone-aware UTC.  ``today()`` is the trading date
in the mandi's own timezone, so a lot entered at 01:00 local time is
numbered with the local date, not the UTC one.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Time source for services."""

    def __init__(self, business_tz: tzinfo = timezone.utc):
        self.business_tz = business_tz

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Trading date in the business timezone."""
        return self.now().astimezone(self.business_tz).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock frozen at 2024-01-15 10:00 UTC unless told otherwise.

    Only moves when ``advance()`` or ``set_time()`` is called.
    """

    DEFAULT_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_tz: tzinfo = timezone.utc,
    ):
        super().__init__(business_tz)
        self._now = fixed_time or self.DEFAULT_TIME

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, *, days: int = 0, seconds: int = 0) -> datetime:
        self._now += timedelta(days=days, seconds=seconds)
        return self._now
