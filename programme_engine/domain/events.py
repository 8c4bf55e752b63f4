"""Domain events emitted to downstream collaborators.

Events are fire-and-forget: analytics and notification systems receive them
through an :class:`EventSink`, and a failing sink never affects the primary
operation that produced the event.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping


class EventType(str, Enum):
    ENROLLMENT_CREATED = "enrollment_created"
    ENROLLMENT_REACTIVATED = "enrollment_reactivated"
    ENROLLMENT_PAUSED = "enrollment_paused"
    ENROLLMENT_RESUMED = "enrollment_resumed"
    DAY_COMPLETED = "day_completed"
    PROGRAMME_COMPLETED = "programme_completed"
    FASTING_TYPE_CHANGED = "fasting_type_changed"


@dataclass(frozen=True)
class ProgrammeEvent:
    event_type: EventType
    enrollment_id: str
    user_id: str
    programme_id: str
    occurred_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "enrollment_id": self.enrollment_id,
            "user_id": self.user_id,
            "programme_id": self.programme_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class FastingChange:
    """Tagged transition produced by a mid-programme fasting change."""

    enrollment_id: str
    old_type: str | None
    old_window: str | None
    new_type: str
    new_window: str | None
    changed_at: datetime

    @property
    def changed(self) -> bool:
        return (self.old_type, self.old_window) != (self.new_type, self.new_window)

    def as_payload(self) -> Dict[str, Any]:
        return {
            "old": {"fasting_type": self.old_type, "fasting_window": self.old_window},
            "new": {"fasting_type": self.new_type, "fasting_window": self.new_window},
            "changed_at": self.changed_at.isoformat(),
        }


class EventSink(ABC):
    """Receiver for programme events."""

    @abstractmethod
    def emit(self, event: ProgrammeEvent) -> None:
        """Deliver ``event``; implementations may raise, callers must not care."""


__all__ = ["EventType", "ProgrammeEvent", "FastingChange", "EventSink"]
