"""Time sources for the engine.

Business logic never reads wall-clock time directly; services receive a
:class:`Clock` so unlock boundaries can be tested with fixed instants.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from programme_engine.domain.configuration import get_settings


def resolve_timezone(name: str | None = None) -> tzinfo:
    """Return the ``tzinfo`` for ``name`` (defaults to the programme timezone)."""

    key = name or get_settings().programme_timezone
    if key.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(key)


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant."""

    def today(self) -> date:
        return to_local_date(self.now())


class SystemClock(Clock):
    """Clock backed by the host's time, expressed in the programme timezone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self._tz = resolve_timezone(tz_name)

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, moment: datetime | date) -> None:
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day)
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime | date) -> None:
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day)
        self._moment = moment

    def advance(self, *, days: int = 0, hours: int = 0, minutes: int = 0) -> datetime:
        self._moment = self._moment + timedelta(days=days, hours=hours, minutes=minutes)
        return self._moment


def to_local_date(value: datetime | date) -> date:
    """Truncate ``value`` to a calendar date in the programme timezone.

    Naive datetimes are taken as already local. Aware datetimes are converted
    to the programme timezone before truncation so the unlock boundary sits at
    local midnight.
    """

    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(resolve_timezone()).date()


__all__ = ["Clock", "SystemClock", "FixedClock", "to_local_date", "resolve_timezone"]
