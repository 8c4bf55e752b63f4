"""Caller-facing facade over the enrollment, completion, navigation and fasting services."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from programme_engine.application.completion_service import CompletionResult, CompletionService
from programme_engine.application.enrollment_service import EnrollmentService
from programme_engine.application.fasting_service import FastingService
from programme_engine.application.navigation_service import NavigationService
from programme_engine.application.repository import ProgrammeRepository
from programme_engine.domain.clock import Clock, SystemClock
from programme_engine.domain.entities import DayCompletion, Enrollment, EnrollmentStatus, Programme
from programme_engine.domain.events import EventSink, FastingChange
from programme_engine.domain.fasting import FastingConfig, FastingStats
from programme_engine.domain.progress import ProgressSnapshot
from programme_engine.domain.repositories import RecordStore
from programme_engine.infrastructure import log_utils
from programme_engine.infrastructure.event_sinks import EventDispatcher


class ProgressionEngine:
    """Single entry point used by the API and CLI.

    All services share one repository, clock and event dispatcher so an
    operation and the events it emits see the same instant.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Optional[Clock] = None,
        sink: Optional[EventSink] = None,
        conflict_retries: Optional[int] = None,
    ) -> None:
        self.store = store
        self.repository = ProgrammeRepository(store)
        self.clock = clock or SystemClock()
        self.events = EventDispatcher(sink)
        shared = dict(clock=self.clock, events=self.events)
        self.enrollments = EnrollmentService(self.repository, **shared)
        self.completions = CompletionService(
            self.repository,
            lifecycle=self.enrollments,
            conflict_retries=conflict_retries,
            **shared,
        )
        self.navigation = NavigationService(self.repository, **shared)
        self.fasting = FastingService(self.repository, **shared)

    # ------------------------------------------------------------------
    # Programme catalogue
    # ------------------------------------------------------------------
    def register_programme(self, programme: Programme | Mapping[str, Any]) -> Programme:
        if not isinstance(programme, Programme):
            programme = Programme.from_record(programme)
        self.repository.save_programme(programme)
        log_utils.info(f"Registered programme {programme.id} ({programme.duration_days} days).", tag="ENGINE")
        return programme

    def register_programmes(self, programmes: Iterable[Programme | Mapping[str, Any]]) -> List[Programme]:
        return [self.register_programme(item) for item in programmes]

    def get_programme(self, programme_id: str) -> Programme:
        return self.repository.get_programme(programme_id)

    def list_programmes(self) -> List[Programme]:
        return self.repository.list_programmes()

    # ------------------------------------------------------------------
    # Enrollment lifecycle
    # ------------------------------------------------------------------
    def enroll(
        self,
        user_id: str,
        programme_id: str,
        *,
        start_date: Optional[date] = None,
        fasting: Optional[FastingConfig] = None,
        fasting_type: Any = None,
        fasting_window: Any = None,
    ) -> Enrollment:
        return self.enrollments.enroll(
            user_id,
            programme_id,
            start_date=start_date,
            fasting=fasting,
            fasting_type=fasting_type,
            fasting_window=fasting_window,
        )

    def pause(self, enrollment_id: str) -> Enrollment:
        return self.enrollments.pause(enrollment_id)

    def resume(self, enrollment_id: str) -> Enrollment:
        return self.enrollments.resume(enrollment_id)

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        return self.enrollments.get_enrollment(enrollment_id)

    def find_enrollment(self, user_id: str, programme_id: str) -> Enrollment:
        return self.enrollments.find_enrollment(user_id, programme_id)

    def list_enrollments(self, user_id: str, status: EnrollmentStatus | str | None = None) -> List[Enrollment]:
        return self.enrollments.list_enrollments(user_id, status)

    # ------------------------------------------------------------------
    # Day progress
    # ------------------------------------------------------------------
    def mark_day_complete(
        self,
        enrollment_id: str,
        day_number: int,
        reflection_response: Optional[Mapping[str, Any]] = None,
        action_completed: bool = True,
    ) -> CompletionResult:
        return self.completions.mark_day_complete(
            enrollment_id,
            day_number,
            reflection_response=reflection_response,
            action_completed=action_completed,
        )

    def is_day_completed(self, enrollment_id: str, day_number: int) -> bool:
        return self.completions.is_day_completed(enrollment_id, day_number)

    def get_day_completion(self, enrollment_id: str, day_number: int) -> Optional[DayCompletion]:
        return self.completions.get_day_completion(enrollment_id, day_number)

    def progress(self, enrollment_id: str) -> ProgressSnapshot:
        return self.completions.progress(enrollment_id)

    def get_unlocked_day_count(self, enrollment_id: str) -> int:
        return self.navigation.get_unlocked_day_count(enrollment_id)

    def get_next_day_to_show(self, enrollment_id: str) -> int:
        return self.navigation.get_next_day_to_show(enrollment_id)

    # ------------------------------------------------------------------
    # Fasting
    # ------------------------------------------------------------------
    def change_fasting_type(self, enrollment_id: str, new_type: Any, new_window: Any = None) -> FastingChange:
        return self.fasting.change_fasting_type(enrollment_id, new_type, new_window)

    def save_fasting_log(self, user_id: str, enrollment_id: str, log_date: date | str, **flags: Any) -> Dict[str, Any]:
        return self.fasting.save_fasting_log(user_id, enrollment_id, log_date, **flags)

    def fasting_stats(self, user_id: str, enrollment_id: str) -> FastingStats:
        return self.fasting.fasting_stats(user_id, enrollment_id)


__all__ = ["ProgressionEngine"]
