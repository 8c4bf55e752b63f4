"""Domain entities for programmes, enrollments and their progress records."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from programme_engine.domain.fasting import FastingConfig
from programme_engine.utils import converters

PROGRAMMES = "programmes"
ENROLLMENTS = "program_enrollments"
DAY_COMPLETIONS = "program_day_completions"
FASTING_LOGS = "fasting_logs"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


def enrollment_key(user_id: str, programme_id: str) -> str:
    """Store key of the single enrollment record for a (user, programme) pair."""

    return f"{user_id}:{programme_id}"


def completion_key(enrollment_id: str, enrollment_round: int, day_number: int) -> str:
    return f"{enrollment_id}:{enrollment_round}:{day_number}"


def fasting_log_key(user_id: str, enrollment_id: str, log_date: date) -> str:
    return f"{user_id}:{enrollment_id}:{log_date.isoformat()}"


def completion_percentage(completed_count: int, duration_days: int) -> int:
    """Whole-number percentage, rounding halves up."""

    if duration_days <= 0:
        return 0
    return int(math.floor(completed_count / duration_days * 100 + 0.5))


@dataclass(frozen=True)
class Programme:
    """Static programme definition; read-only to the engine."""

    id: str
    title: str
    duration_days: int
    includes_fasting: bool = False
    slug: Optional[str] = None
    days: Tuple[Mapping[str, Any], ...] = ()

    def __post_init__(self) -> None:
        if self.duration_days < 1:
            raise ValueError(f"Programme {self.id} must last at least one day")

    def day_content(self, day_number: int) -> Optional[Mapping[str, Any]]:
        for entry in self.days:
            if converters.to_int(entry.get("day_number")) == day_number:
                return entry
        if 1 <= day_number <= len(self.days):
            return self.days[day_number - 1]
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Programme":
        return cls(
            id=str(record["id"]),
            title=str(record.get("title") or record["id"]),
            duration_days=int(record["duration_days"]),
            includes_fasting=bool(record.get("includes_fasting", False)),
            slug=record.get("slug"),
            days=tuple(record.get("days") or ()),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "duration_days": self.duration_days,
            "includes_fasting": self.includes_fasting,
            "slug": self.slug,
            "days": [dict(entry) for entry in self.days],
        }


@dataclass(frozen=True)
class Enrollment:
    """A user's participation in one programme, including schedule and progress."""

    user_id: str
    programme_id: str
    start_date: date
    duration_days: int
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    completed_days: FrozenSet[int] = frozenset()
    enrollment_round: int = 1
    fasting: Optional[FastingConfig] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: Optional[int] = None

    def __post_init__(self) -> None:
        out_of_range = [day for day in self.completed_days if not 1 <= day <= self.duration_days]
        if out_of_range:
            raise ValueError(
                f"completed_days {sorted(out_of_range)} outside 1..{self.duration_days}"
            )
        if self.status is EnrollmentStatus.COMPLETED and self.completed_at is None:
            raise ValueError("completed enrollments must carry completed_at")

    @property
    def id(self) -> str:
        return enrollment_key(self.user_id, self.programme_id)

    @property
    def completion_percentage(self) -> int:
        return completion_percentage(len(self.completed_days), self.duration_days)

    @property
    def current_day(self) -> int:
        """Where the user left off: the day after the furthest completed one."""

        if not self.completed_days:
            return 1
        return min(max(self.completed_days) + 1, self.duration_days)

    @property
    def is_fully_complete(self) -> bool:
        return len(self.completed_days) >= self.duration_days

    def with_completed_day(self, day_number: int) -> "Enrollment":
        return replace(self, completed_days=self.completed_days | {day_number})

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Enrollment":
        fasting = None
        if record.get("fasting_type") is not None:
            fasting = FastingConfig.from_values(record.get("fasting_type"), record.get("fasting_window"))
        start_date = converters.to_date(record.get("start_date"))
        if start_date is None:
            raise ValueError(f"Enrollment record {record.get('id')!r} has no start_date")
        return cls(
            user_id=str(record["user_id"]),
            programme_id=str(record["programme_id"]),
            start_date=start_date,
            duration_days=int(record["duration_days"]),
            status=EnrollmentStatus(record.get("status", EnrollmentStatus.ACTIVE.value)),
            completed_days=frozenset(converters.to_day_numbers(record.get("completed_days"))),
            enrollment_round=converters.to_int(record.get("enrollment_round")) or 1,
            fasting=fasting,
            completed_at=converters.to_datetime(record.get("completed_at")),
            created_at=converters.to_datetime(record.get("created_at")),
            updated_at=converters.to_datetime(record.get("updated_at")),
            version=converters.to_int(record.get("version")),
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialise for the store; derived fields are recomputed on every write."""

        fasting = self.fasting.to_record() if self.fasting else {"fasting_type": None, "fasting_window": None}
        return {
            "id": self.id,
            "user_id": self.user_id,
            "programme_id": self.programme_id,
            "start_date": self.start_date.isoformat(),
            "duration_days": self.duration_days,
            "status": self.status.value,
            "completed_days": sorted(self.completed_days),
            "completion_percentage": self.completion_percentage,
            "current_day": self.current_day,
            "enrollment_round": self.enrollment_round,
            **fasting,
            "completed_at": converters.isoformat_or_none(self.completed_at),
            "created_at": converters.isoformat_or_none(self.created_at),
            "updated_at": converters.isoformat_or_none(self.updated_at),
        }


@dataclass(frozen=True)
class DayCompletion:
    """Durable evidence that a day was completed within one enrollment round."""

    enrollment_id: str
    enrollment_round: int
    day_number: int
    reflection_response: Dict[str, Any] = field(default_factory=dict)
    action_completed: bool = True
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return completion_key(self.enrollment_id, self.enrollment_round, self.day_number)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "DayCompletion":
        return cls(
            enrollment_id=str(record["enrollment_id"]),
            enrollment_round=converters.to_int(record.get("enrollment_round")) or 1,
            day_number=int(record["day_number"]),
            reflection_response=dict(record.get("reflection_response") or {}),
            action_completed=bool(record.get("action_completed", True)),
            completed_at=converters.to_datetime(record.get("completed_at")),
            updated_at=converters.to_datetime(record.get("updated_at")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "enrollment_id": self.enrollment_id,
            "enrollment_round": self.enrollment_round,
            "day_number": self.day_number,
            "reflection_response": dict(self.reflection_response),
            "action_completed": self.action_completed,
            "completed_at": converters.isoformat_or_none(self.completed_at),
            "updated_at": converters.isoformat_or_none(self.updated_at),
        }


@dataclass(frozen=True)
class FastingLog:
    """Daily fasting compliance flags for one user and enrollment."""

    user_id: str
    enrollment_id: str
    log_date: date
    food_fast_compliant: Optional[bool] = None
    media_fast_compliant: Optional[bool] = None
    comfort_fast_compliant: Optional[bool] = None
    notes: Optional[str] = None

    @property
    def key(self) -> str:
        return fasting_log_key(self.user_id, self.enrollment_id, self.log_date)

    def to_record(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "enrollment_id": self.enrollment_id,
            "log_date": self.log_date.isoformat(),
            "food_fast_compliant": self.food_fast_compliant,
            "media_fast_compliant": self.media_fast_compliant,
            "comfort_fast_compliant": self.comfort_fast_compliant,
            "notes": self.notes,
        }
