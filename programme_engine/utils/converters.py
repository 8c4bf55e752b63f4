"""Type conversion helpers for records read back from the store."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional


def to_int(value: Any) -> Optional[int]:
    """Safely convert ``value`` to ``int`` where possible."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(value) if value == int(value) else None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped)
        except ValueError:
            return None
    return None


def to_date(value: Any) -> Optional[date]:
    """Best-effort conversion of common date representations to ``date``."""

    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return date.fromisoformat(stripped[:10])
        except ValueError:
            return None
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion of ISO strings and datetimes to ``datetime``."""

    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return datetime.fromisoformat(stripped.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_day_numbers(values: Iterable[Any] | None) -> List[int]:
    """Return the distinct integer day numbers in ``values``, sorted."""

    days: set[int] = set()
    for raw in values or ():
        number = to_int(raw)
        if number is not None:
            days.add(number)
    return sorted(days)


def isoformat_or_none(value: date | datetime | None) -> Optional[str]:
    return value.isoformat() if value is not None else None
