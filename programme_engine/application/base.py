"""Shared plumbing for the engine's application services."""

from __future__ import annotations

from typing import Any, Optional

from programme_engine.application.repository import ProgrammeRepository
from programme_engine.domain.clock import Clock, SystemClock
from programme_engine.domain.entities import Enrollment
from programme_engine.domain.events import EventType, ProgrammeEvent
from programme_engine.domain.repositories import RecordStore
from programme_engine.infrastructure.event_sinks import EventDispatcher


class EngineService:
    """Holds the repository, clock and event dispatcher every service needs."""

    def __init__(
        self,
        store: RecordStore | ProgrammeRepository,
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventDispatcher] = None,
    ) -> None:
        self.repository = store if isinstance(store, ProgrammeRepository) else ProgrammeRepository(store)
        self.clock = clock or SystemClock()
        self.events = events or EventDispatcher()

    def _emit(self, event_type: EventType, enrollment: Enrollment, **payload: Any) -> None:
        self.events.dispatch(
            ProgrammeEvent(
                event_type=event_type,
                enrollment_id=enrollment.id,
                user_id=enrollment.user_id,
                programme_id=enrollment.programme_id,
                occurred_at=self.clock.now(),
                payload=payload,
            )
        )
