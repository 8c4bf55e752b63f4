"""Read-model describing where an enrollment stands today."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from programme_engine.domain.entities import Enrollment
from programme_engine.domain.resume import next_day_to_show
from programme_engine.domain.unlock import unlock_date_for, unlocked_day_count


@dataclass(frozen=True)
class ProgressSnapshot:
    enrollment_id: str
    status: str
    enrollment_round: int
    start_date: date
    duration_days: int
    completed_days: Tuple[int, ...]
    completion_percentage: int
    current_day: int
    unlocked_day_count: int
    next_day_to_show: int
    next_unlock_date: Optional[date]
    fasting_type: Optional[str] = None
    fasting_window: Optional[str] = None

    @property
    def days_remaining(self) -> int:
        return self.duration_days - len(self.completed_days)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "enrollment_id": self.enrollment_id,
            "status": self.status,
            "enrollment_round": self.enrollment_round,
            "start_date": self.start_date.isoformat(),
            "duration_days": self.duration_days,
            "completed_days": list(self.completed_days),
            "completion_percentage": self.completion_percentage,
            "current_day": self.current_day,
            "unlocked_day_count": self.unlocked_day_count,
            "next_day_to_show": self.next_day_to_show,
            "next_unlock_date": self.next_unlock_date.isoformat() if self.next_unlock_date else None,
            "days_remaining": self.days_remaining,
            "fasting_type": self.fasting_type,
            "fasting_window": self.fasting_window,
        }


def build_snapshot(enrollment: Enrollment, now: datetime | date) -> ProgressSnapshot:
    unlocked = unlocked_day_count(enrollment.start_date, now, enrollment.duration_days)
    next_unlock = None
    if unlocked < enrollment.duration_days:
        next_unlock = unlock_date_for(unlocked + 1, enrollment.start_date)
    fasting = enrollment.fasting
    return ProgressSnapshot(
        enrollment_id=enrollment.id,
        status=enrollment.status.value,
        enrollment_round=enrollment.enrollment_round,
        start_date=enrollment.start_date,
        duration_days=enrollment.duration_days,
        completed_days=tuple(sorted(enrollment.completed_days)),
        completion_percentage=enrollment.completion_percentage,
        current_day=enrollment.current_day,
        unlocked_day_count=unlocked,
        next_day_to_show=next_day_to_show(enrollment.completed_days, unlocked),
        next_unlock_date=next_unlock,
        fasting_type=fasting.fasting_type.value if fasting else None,
        fasting_window=fasting.window_text if fasting else None,
    )
