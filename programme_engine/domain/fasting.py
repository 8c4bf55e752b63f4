"""Fasting sub-configuration and compliance statistics."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from programme_engine.domain.configuration import get_settings


class FastingType(str, Enum):
    NONE = "none"
    NO_FOOD = "no_food"
    TIME_WINDOW = "time_window"
    DANIEL_FAST = "daniel_fast"

    @property
    def requires_window(self) -> bool:
        return self is FastingType.TIME_WINDOW

    @property
    def label(self) -> str:
        return FASTING_TYPE_LABELS[self]


FASTING_TYPE_LABELS: Dict[FastingType, str] = {
    FastingType.NONE: "None",
    FastingType.NO_FOOD: "No-Food Fast",
    FastingType.TIME_WINDOW: "Time-Based Window",
    FastingType.DANIEL_FAST: "Daniel Fast",
}


def _parse_clock_time(text: str) -> time:
    text = text.strip()
    try:
        parsed = datetime.strptime(text, "%H:%M")
    except ValueError as exc:
        raise ValueError(f"Invalid time of day '{text}', expected HH:MM") from exc
    return parsed.time()


@dataclass(frozen=True)
class FastingWindow:
    """Daily eating window; ``end`` must fall after ``start`` on the same day."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(
                f"Eating window must end after it starts ({self.start:%H:%M}-{self.end:%H:%M})"
            )

    @classmethod
    def parse(cls, value: "str | FastingWindow") -> "FastingWindow":
        if isinstance(value, FastingWindow):
            return value
        if not isinstance(value, str) or value.count("-") != 1:
            raise ValueError(f"Invalid eating window {value!r}, expected 'HH:MM-HH:MM'")
        start_text, end_text = value.split("-")
        return cls(start=_parse_clock_time(start_text), end=_parse_clock_time(end_text))

    @property
    def duration_hours(self) -> float:
        start_minutes = self.start.hour * 60 + self.start.minute
        end_minutes = self.end.hour * 60 + self.end.minute
        return (end_minutes - start_minutes) / 60.0

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


def default_window() -> FastingWindow:
    return FastingWindow.parse(get_settings().default_fasting_window)


@dataclass(frozen=True)
class FastingConfig:
    """A validated fasting type plus optional eating window."""

    fasting_type: FastingType = FastingType.NONE
    window: Optional[FastingWindow] = None

    def __post_init__(self) -> None:
        if self.fasting_type.requires_window and self.window is None:
            raise ValueError(f"Fasting type '{self.fasting_type.value}' requires an eating window")
        if not self.fasting_type.requires_window and self.window is not None:
            raise ValueError(f"Fasting type '{self.fasting_type.value}' does not take an eating window")

    @classmethod
    def from_values(cls, fasting_type: Any, window: Any = None) -> "FastingConfig":
        """Build a config from raw values (strings, enums or ``None``)."""

        if fasting_type is None:
            fasting_type = FastingType.NONE
        try:
            resolved_type = FastingType(fasting_type)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in FastingType)
            raise ValueError(f"Unknown fasting type {fasting_type!r} (allowed: {allowed})") from exc
        resolved_window = None
        if window is not None and window != "":
            resolved_window = FastingWindow.parse(window)
        return cls(fasting_type=resolved_type, window=resolved_window)

    @property
    def window_text(self) -> Optional[str]:
        return str(self.window) if self.window is not None else None

    def to_record(self) -> Dict[str, Optional[str]]:
        return {"fasting_type": self.fasting_type.value, "fasting_window": self.window_text}


@dataclass(frozen=True)
class FastingStats:
    """Compliance summary across an enrollment's fasting logs."""

    total_days: int
    food_compliant: int
    media_compliant: int
    comfort_compliant: int
    logs: List[Dict[str, Any]] = field(default_factory=list)

    @staticmethod
    def _rate(count: int, total: int) -> float:
        return (count / total) * 100 if total > 0 else 0.0

    @property
    def food_compliance_rate(self) -> float:
        return self._rate(self.food_compliant, self.total_days)

    @property
    def media_compliance_rate(self) -> float:
        return self._rate(self.media_compliant, self.total_days)

    @property
    def comfort_compliance_rate(self) -> float:
        return self._rate(self.comfort_compliant, self.total_days)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_days": self.total_days,
            "food_compliant": self.food_compliant,
            "media_compliant": self.media_compliant,
            "comfort_compliant": self.comfort_compliant,
            "food_compliance_rate": self.food_compliance_rate,
            "media_compliance_rate": self.media_compliance_rate,
            "comfort_compliance_rate": self.comfort_compliance_rate,
        }


def compute_fasting_stats(logs: Iterable[Mapping[str, Any]]) -> FastingStats:
    """Aggregate fasting logs, ordered by ``log_date``."""

    def _sort_key(row: Mapping[str, Any]) -> str:
        value = row.get("log_date")
        return value.isoformat() if isinstance(value, date) else str(value or "")

    ordered = sorted((dict(row) for row in logs), key=_sort_key)
    return FastingStats(
        total_days=len(ordered),
        food_compliant=sum(1 for row in ordered if row.get("food_fast_compliant") is True),
        media_compliant=sum(1 for row in ordered if row.get("media_fast_compliant") is True),
        comfort_compliant=sum(1 for row in ordered if row.get("comfort_fast_compliant") is True),
        logs=ordered,
    )


__all__ = [
    "FastingType",
    "FastingWindow",
    "FastingConfig",
    "FastingStats",
    "FASTING_TYPE_LABELS",
    "compute_fasting_stats",
    "default_window",
]
