"""Enrollment lifecycle: enroll, reactivate, pause, resume and complete.

Status machine::

    (none)            --enroll-->         active
    active            --pause-->          paused
    paused            --resume-->         active
    active | paused   --all days done-->  completed
    paused | completed --re-enroll-->     active (new round)

Each public call performs exactly one status write, so a cancelled call
leaves the enrollment either untouched or fully transitioned.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, List, Optional

from programme_engine.application.base import EngineService
from programme_engine.application.exceptions import (
    ConflictError,
    DuplicateEnrollmentError,
    InvalidFastingConfigError,
    InvalidTransitionError,
)
from programme_engine.domain.entities import Enrollment, EnrollmentStatus, Programme, enrollment_key
from programme_engine.domain.events import EventType
from programme_engine.domain.fasting import FastingConfig, FastingType
from programme_engine.domain.repositories import DuplicateKeyError
from programme_engine.infrastructure import log_utils


def resolve_fasting_config(
    programme: Programme,
    fasting_type: Any = None,
    fasting_window: Any = None,
) -> Optional[FastingConfig]:
    """Validate an optional fasting selection against ``programme``."""

    if fasting_type is None and fasting_window is None:
        return None
    try:
        config = FastingConfig.from_values(fasting_type, fasting_window)
    except ValueError as exc:
        raise InvalidFastingConfigError(str(exc)) from exc
    if not programme.includes_fasting:
        if config.fasting_type is FastingType.NONE:
            return None
        raise InvalidFastingConfigError(
            f"Programme {programme.id} has no fasting component; cannot select '{config.fasting_type.value}'"
        )
    return config


class EnrollmentService(EngineService):
    """Owns the enrollment record's status machine."""

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
        if fasting is not None:
            fasting_type, fasting_window = fasting.fasting_type, fasting.window
        programme = self.repository.get_programme(programme_id)
        fasting = resolve_fasting_config(programme, fasting_type, fasting_window)
        start = start_date or self.clock.today()
        now = self.clock.now()
        key = enrollment_key(user_id, programme_id)

        existing = self.repository.find_enrollment(key)
        if existing is None:
            enrollment = Enrollment(
                user_id=user_id,
                programme_id=programme_id,
                start_date=start,
                duration_days=programme.duration_days,
                fasting=fasting,
                created_at=now,
                updated_at=now,
            )
            try:
                created = self.repository.insert_enrollment(enrollment)
            except DuplicateKeyError:
                # Another enroll call created the record between our read and insert.
                raise self._lost_race(user_id, programme_id) from None
            log_utils.info(f"Enrolled {user_id} in {programme_id} starting {start.isoformat()}.")
            self._emit(
                EventType.ENROLLMENT_CREATED,
                created,
                start_date=start.isoformat(),
                enrollment_round=created.enrollment_round,
                **(fasting.to_record() if fasting else {}),
            )
            return created

        if existing.status is EnrollmentStatus.ACTIVE:
            raise DuplicateEnrollmentError(user_id, programme_id)

        reactivated = replace(
            existing,
            status=EnrollmentStatus.ACTIVE,
            start_date=start,
            duration_days=programme.duration_days,
            completed_days=frozenset(),
            enrollment_round=existing.enrollment_round + 1,
            fasting=fasting,
            completed_at=None,
            updated_at=now,
        )
        try:
            saved = self.repository.save_enrollment(reactivated)
        except ConflictError:
            raise self._lost_race(user_id, programme_id) from None
        log_utils.info(
            f"Reactivated {saved.id} for round {saved.enrollment_round} starting {start.isoformat()} "
            f"(was {existing.status.value})."
        )
        self._emit(
            EventType.ENROLLMENT_REACTIVATED,
            saved,
            start_date=start.isoformat(),
            enrollment_round=saved.enrollment_round,
            previous_status=existing.status.value,
        )
        return saved

    def _lost_race(self, user_id: str, programme_id: str) -> Exception:
        current = self.repository.find_enrollment(enrollment_key(user_id, programme_id))
        if current is not None and current.status is EnrollmentStatus.ACTIVE:
            log_utils.warn(f"Concurrent enroll for {user_id}/{programme_id} rejected as duplicate.")
            return DuplicateEnrollmentError(user_id, programme_id)
        return ConflictError(
            f"Enrollment for {user_id}/{programme_id} changed concurrently; refresh and retry."
        )

    def pause(self, enrollment_id: str) -> Enrollment:
        enrollment = self.repository.get_enrollment(enrollment_id)
        if enrollment.status is not EnrollmentStatus.ACTIVE:
            raise InvalidTransitionError(enrollment_id, "pause", enrollment.status.value)
        saved = self.repository.save_enrollment(
            replace(enrollment, status=EnrollmentStatus.PAUSED, updated_at=self.clock.now())
        )
        log_utils.info(f"Paused {enrollment_id}.")
        self._emit(EventType.ENROLLMENT_PAUSED, saved)
        return saved

    def resume(self, enrollment_id: str) -> Enrollment:
        enrollment = self.repository.get_enrollment(enrollment_id)
        if enrollment.status is not EnrollmentStatus.PAUSED:
            raise InvalidTransitionError(enrollment_id, "resume", enrollment.status.value)
        saved = self.repository.save_enrollment(
            replace(enrollment, status=EnrollmentStatus.ACTIVE, updated_at=self.clock.now())
        )
        log_utils.info(f"Resumed {enrollment_id}.")
        self._emit(EventType.ENROLLMENT_RESUMED, saved)
        return saved

    def complete_full_programme(self, enrollment_id: str, enrollment: Optional[Enrollment] = None) -> Enrollment:
        """Mark the programme finished once every day has been completed.

        Already completed enrollments are returned unchanged.
        """

        enrollment = enrollment or self.repository.get_enrollment(enrollment_id)
        if enrollment.status is EnrollmentStatus.COMPLETED:
            return enrollment
        if not enrollment.is_fully_complete:
            raise InvalidTransitionError(
                enrollment_id,
                f"complete ({len(enrollment.completed_days)}/{enrollment.duration_days} days done)",
                enrollment.status.value,
            )
        now = self.clock.now()
        saved = self.repository.save_enrollment(
            replace(
                enrollment,
                status=EnrollmentStatus.COMPLETED,
                completed_at=enrollment.completed_at or now,
                updated_at=now,
            )
        )
        log_utils.info(f"Programme complete for {enrollment_id} (round {saved.enrollment_round}).")
        self._emit(
            EventType.PROGRAMME_COMPLETED,
            saved,
            enrollment_round=saved.enrollment_round,
            completed_at=saved.completed_at.isoformat() if saved.completed_at else None,
        )
        return saved

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        return self.repository.get_enrollment(enrollment_id)

    def find_enrollment(self, user_id: str, programme_id: str) -> Enrollment:
        return self.repository.get_enrollment(enrollment_key(user_id, programme_id))

    def list_enrollments(self, user_id: str, status: EnrollmentStatus | str | None = None) -> List[Enrollment]:
        if status is not None and not isinstance(status, EnrollmentStatus):
            status = EnrollmentStatus(status)
        return self.repository.list_enrollments(user_id, status)
