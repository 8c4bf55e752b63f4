"""Exception hierarchy for the progression engine.

Every error carries a stable ``reason`` code so callers can tell "this day
isn't unlocked yet" apart from "you're already enrolled" or "please try again".
"""

from __future__ import annotations

from datetime import date
from typing import Sequence


class ProgrammeEngineError(Exception):
    """Base exception for engine failures."""

    reason = "engine_error"
    retryable = False


class UserError(ProgrammeEngineError):
    """Rejected request; reported to the user and never retried."""

    reason = "user_error"


class DuplicateEnrollmentError(UserError):
    reason = "already_enrolled"

    def __init__(self, user_id: str, programme_id: str) -> None:
        self.user_id = user_id
        self.programme_id = programme_id
        super().__init__(f"User {user_id} is already enrolled in programme {programme_id}")


class EnrollmentNotFoundError(UserError):
    reason = "enrollment_not_found"

    def __init__(self, enrollment_id: str) -> None:
        self.enrollment_id = enrollment_id
        super().__init__(f"Enrollment {enrollment_id} not found")


class ProgrammeNotFoundError(UserError):
    reason = "programme_not_found"

    def __init__(self, programme_id: str) -> None:
        self.programme_id = programme_id
        super().__init__(f"Programme {programme_id} not found")


class EnrollmentInactiveError(UserError):
    reason = "enrollment_inactive"

    def __init__(self, enrollment_id: str, status: str) -> None:
        self.enrollment_id = enrollment_id
        self.status = status
        super().__init__(f"Enrollment {enrollment_id} is {status}")


class InvalidTransitionError(UserError):
    reason = "invalid_transition"

    def __init__(self, enrollment_id: str, action: str, status: str) -> None:
        self.enrollment_id = enrollment_id
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} enrollment {enrollment_id} while it is {status}")


class DayOutOfRangeError(UserError):
    reason = "day_out_of_range"

    def __init__(self, day_number: int, duration_days: int) -> None:
        self.day_number = day_number
        self.duration_days = duration_days
        super().__init__(f"Day {day_number} is outside 1..{duration_days}")


class DayLockedError(UserError):
    """The requested day is ahead of schedule."""

    reason = "day_locked"

    def __init__(self, day_number: int, unlocked_day_count: int, unlock_date: date) -> None:
        self.day_number = day_number
        self.unlocked_day_count = unlocked_day_count
        self.unlock_date = unlock_date
        super().__init__(
            f"Day {day_number} is not unlocked yet (unlocked through day {unlocked_day_count}); "
            f"it unlocks on {unlock_date.isoformat()}"
        )


class InvalidFastingConfigError(UserError):
    reason = "invalid_fasting_config"


class ConflictError(ProgrammeEngineError):
    """The record changed since it was read; refresh and retry."""

    reason = "conflict"
    retryable = True


class DataAccessError(ProgrammeEngineError):
    """Raised when persistence layer calls fail transiently."""

    reason = "store_unavailable"
    retryable = True


class PartialFailureError(ProgrammeEngineError):
    """One of two related writes succeeded and the other failed."""

    reason = "partial_failure"

    def __init__(self, message: str, *, succeeded: Sequence[str], failed: str) -> None:
        self.succeeded = tuple(succeeded)
        self.failed = failed
        super().__init__(message)


__all__ = [
    "ProgrammeEngineError",
    "UserError",
    "DuplicateEnrollmentError",
    "EnrollmentNotFoundError",
    "ProgrammeNotFoundError",
    "EnrollmentInactiveError",
    "InvalidTransitionError",
    "DayOutOfRangeError",
    "DayLockedError",
    "InvalidFastingConfigError",
    "ConflictError",
    "DataAccessError",
    "PartialFailureError",
]
