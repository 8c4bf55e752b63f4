from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from programme_engine.application.base import EngineService
from programme_engine.application.enrollment_service import EnrollmentService
from programme_engine.application.exceptions import (
    ConflictError,
    DataAccessError,
    DayLockedError,
    DayOutOfRangeError,
    EnrollmentInactiveError,
    PartialFailureError,
)
from programme_engine.config import settings
from programme_engine.domain.entities import DayCompletion, Enrollment, EnrollmentStatus
from programme_engine.domain.events import EventType
from programme_engine.domain.progress import ProgressSnapshot, build_snapshot
from programme_engine.domain.unlock import unlock_date_for, unlocked_day_count
from programme_engine.infrastructure import log_utils


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of :meth:`CompletionService.mark_day_complete`."""

    enrollment: Enrollment
    completion: DayCompletion
    newly_completed: bool
    programme_completed: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "enrollment_id": self.enrollment.id,
            "day_number": self.completion.day_number,
            "newly_completed": self.newly_completed,
            "programme_completed": self.programme_completed,
            "status": self.enrollment.status.value,
            "completed_days": sorted(self.enrollment.completed_days),
            "completion_percentage": self.enrollment.completion_percentage,
            "current_day": self.enrollment.current_day,
        }


class CompletionService(EngineService):
    """Records day completions and keeps the enrollment's progress in step."""

    def __init__(
        self,
        store,
        *,
        clock=None,
        events=None,
        lifecycle: Optional[EnrollmentService] = None,
        conflict_retries: Optional[int] = None,
    ) -> None:
        super().__init__(store, clock=clock, events=events)
        self.lifecycle = lifecycle or EnrollmentService(self.repository, clock=self.clock, events=self.events)
        self.conflict_retries = conflict_retries or settings.COMPLETION_CONFLICT_RETRIES

    def mark_day_complete(
        self,
        enrollment_id: str,
        day_number: int,
        reflection_response: Optional[Mapping[str, Any]] = None,
        action_completed: bool = True,
    ) -> CompletionResult:
        """Persist a day completion, then fold the day into the enrollment.

        The completion record is written first and the enrollment second. A
        failure of the second write after the first succeeded is reported as
        :class:`PartialFailureError`; repeating the call repairs it because
        both writes are idempotent.
        """

        enrollment = self.repository.get_enrollment(enrollment_id)
        if enrollment.status is EnrollmentStatus.COMPLETED:
            # A finished round only answers repeats of days it already holds.
            recorded = None
            if day_number in enrollment.completed_days:
                recorded = self.repository.get_completion(enrollment_id, enrollment.enrollment_round, day_number)
            if recorded is None:
                raise EnrollmentInactiveError(enrollment_id, enrollment.status.value)
            return CompletionResult(enrollment=enrollment, completion=recorded, newly_completed=False)
        if not 1 <= day_number <= enrollment.duration_days:
            raise DayOutOfRangeError(day_number, enrollment.duration_days)

        now = self.clock.now()
        unlocked = unlocked_day_count(enrollment.start_date, now, enrollment.duration_days)
        if day_number > unlocked:
            log_utils.info(f"Rejected day {day_number} for {enrollment_id}: only {unlocked} unlocked.")
            raise DayLockedError(day_number, unlocked, unlock_date_for(day_number, enrollment.start_date))

        existing = self.repository.get_completion(enrollment_id, enrollment.enrollment_round, day_number)
        if reflection_response is None:
            reflection = dict(existing.reflection_response) if existing else {}
        else:
            reflection = dict(reflection_response)
        completion = DayCompletion(
            enrollment_id=enrollment_id,
            enrollment_round=enrollment.enrollment_round,
            day_number=day_number,
            reflection_response=reflection,
            action_completed=action_completed,
            completed_at=existing.completed_at if existing and existing.completed_at else now,
            updated_at=now,
        )
        self.repository.save_completion(completion)

        try:
            enrollment, newly_completed = self._add_completed_day(enrollment, day_number)
        except (DataAccessError, ConflictError) as exc:
            log_utils.error(
                f"Day {day_number} completion saved for {enrollment_id} but enrollment update failed: {exc}"
            )
            raise PartialFailureError(
                f"Saved completion for day {day_number} but could not update enrollment {enrollment_id}; "
                "retry to finish recording progress.",
                succeeded=["day_completion"],
                failed="enrollment",
            ) from exc

        if newly_completed:
            log_utils.info(
                f"Day {day_number} complete for {enrollment_id} "
                f"({len(enrollment.completed_days)}/{enrollment.duration_days})."
            )
            self._emit(
                EventType.DAY_COMPLETED,
                enrollment,
                day_number=day_number,
                enrollment_round=enrollment.enrollment_round,
                completion_percentage=enrollment.completion_percentage,
                action_completed=action_completed,
            )

        programme_completed = False
        if enrollment.is_fully_complete and enrollment.status is not EnrollmentStatus.COMPLETED:
            enrollment = self.lifecycle.complete_full_programme(enrollment_id, enrollment)
            programme_completed = True

        return CompletionResult(
            enrollment=enrollment,
            completion=completion,
            newly_completed=newly_completed,
            programme_completed=programme_completed,
        )

    def _add_completed_day(self, enrollment: Enrollment, day_number: int) -> Tuple[Enrollment, bool]:
        current = enrollment
        for attempt in range(1, self.conflict_retries + 1):
            if day_number in current.completed_days:
                return current, False
            updated = replace(current.with_completed_day(day_number), updated_at=self.clock.now())
            try:
                return self.repository.save_enrollment(updated), True
            except ConflictError as exc:
                if attempt >= self.conflict_retries:
                    raise
                log_utils.warn(
                    f"Enrollment {current.id} changed while recording day {day_number}; "
                    f"re-reading (attempt {attempt}/{self.conflict_retries})."
                )
                current = self.repository.get_enrollment(current.id)
                if current.enrollment_round != enrollment.enrollment_round:
                    raise ConflictError(
                        f"Enrollment {current.id} was re-enrolled while recording day {day_number}."
                    ) from exc
        raise ConflictError(f"Could not record day {day_number} for {enrollment.id}.")

    def is_day_completed(self, enrollment_id: str, day_number: int) -> bool:
        enrollment = self.repository.get_enrollment(enrollment_id)
        return day_number in enrollment.completed_days

    def get_day_completion(self, enrollment_id: str, day_number: int) -> Optional[DayCompletion]:
        """Saved completion (with reflection answers) for the current round."""

        enrollment = self.repository.get_enrollment(enrollment_id)
        return self.repository.get_completion(enrollment_id, enrollment.enrollment_round, day_number)

    def progress(self, enrollment_id: str) -> ProgressSnapshot:
        enrollment = self.repository.get_enrollment(enrollment_id)
        return build_snapshot(enrollment, self.clock.now())
