"""Typed access to engine records on top of a generic :class:`RecordStore`.

Store-level failures are translated into the engine's exception hierarchy
here so services only deal with :mod:`programme_engine.application.exceptions`.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterator, List, Optional

from programme_engine.application.exceptions import (
    ConflictError,
    DataAccessError,
    EnrollmentNotFoundError,
    ProgrammeNotFoundError,
)
from programme_engine.domain.entities import (
    DAY_COMPLETIONS,
    ENROLLMENTS,
    FASTING_LOGS,
    PROGRAMMES,
    DayCompletion,
    Enrollment,
    EnrollmentStatus,
    FastingLog,
    Programme,
    completion_key,
    fasting_log_key,
)
from programme_engine.domain.repositories import (
    RecordStore,
    StoreConflictError,
    StoreUnavailableError,
)


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except StoreUnavailableError as exc:
        raise DataAccessError(f"Store unavailable while trying to {action}.") from exc
    except StoreConflictError as exc:
        raise ConflictError(
            f"Record changed concurrently while trying to {action}; refresh and retry."
        ) from exc


class ProgrammeRepository:
    """Reads and writes programmes, enrollments, completions and fasting logs."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Programmes
    # ------------------------------------------------------------------
    def get_programme(self, programme_id: str) -> Programme:
        with translate_store_errors(f"load programme {programme_id}"):
            record = self.store.get(PROGRAMMES, programme_id)
        if record is None:
            raise ProgrammeNotFoundError(programme_id)
        return Programme.from_record(record)

    def save_programme(self, programme: Programme) -> Programme:
        with translate_store_errors(f"save programme {programme.id}"):
            self.store.put(PROGRAMMES, programme.id, programme.to_record())
        return programme

    def list_programmes(self) -> List[Programme]:
        with translate_store_errors("list programmes"):
            rows = self.store.query(PROGRAMMES)
        return [Programme.from_record(row) for row in rows]

    # ------------------------------------------------------------------
    # Enrollments
    # ------------------------------------------------------------------
    def find_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        with translate_store_errors(f"load enrollment {enrollment_id}"):
            record = self.store.get(ENROLLMENTS, enrollment_id)
        return Enrollment.from_record(record) if record is not None else None

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = self.find_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        return enrollment

    def insert_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Create the pair's enrollment record; :class:`DuplicateKeyError` propagates."""

        with translate_store_errors(f"create enrollment {enrollment.id}"):
            stored = self.store.insert(ENROLLMENTS, enrollment.id, enrollment.to_record())
        return replace(enrollment, version=stored.get("version"))

    def save_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Conditional write guarded by the version the enrollment was read at."""

        with translate_store_errors(f"update enrollment {enrollment.id}"):
            stored = self.store.put(
                ENROLLMENTS,
                enrollment.id,
                enrollment.to_record(),
                expected_version=enrollment.version,
            )
        return replace(enrollment, version=stored.get("version"))

    def list_enrollments(self, user_id: str, status: EnrollmentStatus | None = None) -> List[Enrollment]:
        filters = {"user_id": user_id}
        if status is not None:
            filters["status"] = status.value
        with translate_store_errors(f"list enrollments for {user_id}"):
            rows = self.store.query(ENROLLMENTS, filters)
        enrollments = [Enrollment.from_record(row) for row in rows]
        return sorted(
            enrollments,
            key=lambda item: (item.created_at.isoformat() if item.created_at else "", item.id),
            reverse=True,
        )

    # ------------------------------------------------------------------
    # Day completions
    # ------------------------------------------------------------------
    def get_completion(self, enrollment_id: str, enrollment_round: int, day_number: int) -> Optional[DayCompletion]:
        key = completion_key(enrollment_id, enrollment_round, day_number)
        with translate_store_errors(f"load day completion {key}"):
            record = self.store.get(DAY_COMPLETIONS, key)
        return DayCompletion.from_record(record) if record is not None else None

    def save_completion(self, completion: DayCompletion) -> DayCompletion:
        """Idempotent upsert keyed on (enrollment, round, day)."""

        with translate_store_errors(f"save day completion {completion.key}"):
            self.store.put(DAY_COMPLETIONS, completion.key, completion.to_record())
        return completion

    def list_completions(self, enrollment_id: str, enrollment_round: int) -> List[DayCompletion]:
        with translate_store_errors(f"list completions for {enrollment_id}"):
            rows = self.store.query(
                DAY_COMPLETIONS,
                {"enrollment_id": enrollment_id, "enrollment_round": enrollment_round},
            )
        return sorted((DayCompletion.from_record(row) for row in rows), key=lambda item: item.day_number)

    # ------------------------------------------------------------------
    # Fasting logs
    # ------------------------------------------------------------------
    def get_fasting_log(self, user_id: str, enrollment_id: str, log_date: date) -> Optional[dict]:
        key = fasting_log_key(user_id, enrollment_id, log_date)
        with translate_store_errors(f"load fasting log {key}"):
            return self.store.get(FASTING_LOGS, key)

    def save_fasting_log(self, log: FastingLog) -> dict:
        with translate_store_errors(f"save fasting log {log.key}"):
            return self.store.put(FASTING_LOGS, log.key, log.to_record())

    def list_fasting_logs(self, user_id: str, enrollment_id: str) -> List[dict]:
        with translate_store_errors(f"list fasting logs for {enrollment_id}"):
            return self.store.query(FASTING_LOGS, {"user_id": user_id, "enrollment_id": enrollment_id})
