"""
billing_kernel.domain.clock -- Where "today" comes from.

Billing decisions are made per calendar day: the issue date stamped on
send, the default receipt date of a payment, the as-of date of an overdue
sweep. The lifecycle and the engines take those dates as arguments; only
the services ask a ``Clock``. ``SystemClock`` reads the wall clock in UTC;
``DeterministicClock`` stays where a test puts it.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, time, timedelta


class Clock(ABC):
    """Source of the current UTC instant and the billing day it falls on."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


def _instant(value: date | datetime) -> datetime:
    # datetime is a date subclass, so test it first
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError(f"clock time must be timezone-aware: {value!r}")
        return value.astimezone(UTC)
    return datetime.combine(value, time(12), tzinfo=UTC)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant.

    Accepts an aware ``datetime`` or a plain ``date`` (read as noon UTC, so
    the billing day never shifts across a timezone conversion). Moves only
    through ``set_date`` and ``advance_days``.
    """

    def __init__(self, start: date | datetime = date(2024, 1, 1)) -> None:
        self._now = _instant(start)

    def now(self) -> datetime:
        return self._now

    def set_date(self, day: date | datetime) -> None:
        self._now = _instant(day)

    def advance_days(self, days: int = 1) -> date:
        """Move forward ``days`` calendar days; returns the new billing day."""
        self._now += timedelta(days=days)
        return self._now.date()
