"""Time-gated day unlocking.

Locking is purely calendar based: Day ``n`` becomes viewable on
``start_date + (n - 1)`` regardless of which earlier days were completed.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta

from programme_engine.domain.clock import to_local_date


def _check_duration(duration_days: int) -> None:
    if duration_days < 1:
        raise ValueError(f"duration_days must be at least 1, got {duration_days}")


def days_since_start(start_date: date, now: datetime | date) -> int:
    """Whole calendar days between ``start_date`` and ``now`` (may be negative)."""

    return (to_local_date(now) - start_date).days


def unlocked_day_count(start_date: date, now: datetime | date, duration_days: int) -> int:
    """Return how many days are unlocked at ``now``.

    Day 1 unlocks on ``start_date`` itself. The result is clamped to
    ``[1, duration_days]`` so an enrollment starting in the future still
    reports one unlocked day.
    """

    _check_duration(duration_days)
    unlocked = days_since_start(start_date, now) + 1
    return max(1, min(unlocked, duration_days))


def is_day_unlocked(day_number: int, start_date: date, now: datetime | date, duration_days: int) -> bool:
    if day_number < 1 or day_number > duration_days:
        return False
    return day_number <= unlocked_day_count(start_date, now, duration_days)


def unlock_date_for(day_number: int, start_date: date) -> date:
    """Calendar date on which ``day_number`` unlocks."""

    if day_number < 1:
        raise ValueError(f"day_number must be at least 1, got {day_number}")
    return start_date + timedelta(days=day_number - 1)


def days_until_unlock(day_number: int, start_date: date, now: datetime | date) -> int:
    """Days remaining before ``day_number`` unlocks; ``0`` once it is viewable."""

    remaining = (unlock_date_for(day_number, start_date) - to_local_date(now)).days
    return max(0, remaining)


__all__ = [
    "days_since_start",
    "unlocked_day_count",
    "is_day_unlocked",
    "unlock_date_for",
    "days_until_unlock",
]
