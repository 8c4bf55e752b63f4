"""Fasting selection changes and daily fasting compliance logs."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict, Optional

from programme_engine.application.base import EngineService
from programme_engine.application.exceptions import (
    EnrollmentInactiveError,
    EnrollmentNotFoundError,
    InvalidFastingConfigError,
)
from programme_engine.domain.entities import EnrollmentStatus, FastingLog
from programme_engine.domain.events import EventType, FastingChange
from programme_engine.domain.fasting import FastingConfig, FastingStats, compute_fasting_stats
from programme_engine.infrastructure import log_utils
from programme_engine.utils import converters

_LOG_FLAGS = ("food_fast_compliant", "media_fast_compliant", "comfort_fast_compliant", "notes")


class FastingService(EngineService):

    def change_fasting_type(
        self,
        enrollment_id: str,
        new_type: Any,
        new_window: Any = None,
    ) -> FastingChange:
        """Switch the fasting selection mid-programme without touching progress.

        Choosing the configuration already in force returns an unchanged
        transition and writes nothing.
        """

        enrollment = self.repository.get_enrollment(enrollment_id)
        programme = self.repository.get_programme(enrollment.programme_id)
        if not programme.includes_fasting:
            raise InvalidFastingConfigError(f"Programme {programme.id} has no fasting component")
        if enrollment.status is EnrollmentStatus.COMPLETED:
            raise EnrollmentInactiveError(enrollment_id, enrollment.status.value)
        try:
            config = FastingConfig.from_values(new_type, new_window)
        except ValueError as exc:
            raise InvalidFastingConfigError(str(exc)) from exc

        old = enrollment.fasting
        now = self.clock.now()
        change = FastingChange(
            enrollment_id=enrollment_id,
            old_type=old.fasting_type.value if old else None,
            old_window=old.window_text if old else None,
            new_type=config.fasting_type.value,
            new_window=config.window_text,
            changed_at=now,
        )
        if not change.changed:
            log_utils.info(f"Fasting selection for {enrollment_id} unchanged ({change.new_type}).")
            return change

        saved = self.repository.save_enrollment(replace(enrollment, fasting=config, updated_at=now))
        log_utils.info(
            f"Fasting for {enrollment_id} changed {change.old_type}/{change.old_window} -> "
            f"{change.new_type}/{change.new_window}."
        )
        self._emit(EventType.FASTING_TYPE_CHANGED, saved, **change.as_payload())
        return change

    def save_fasting_log(self, user_id: str, enrollment_id: str, log_date: date | str, **flags: Any) -> Dict[str, Any]:
        """Upsert the day's fasting log; flags not supplied keep their stored value."""

        unknown = set(flags) - set(_LOG_FLAGS)
        if unknown:
            raise TypeError(f"Unknown fasting log fields: {', '.join(sorted(unknown))}")
        day = converters.to_date(log_date)
        if day is None:
            raise ValueError(f"Invalid log date {log_date!r}")

        enrollment = self.repository.get_enrollment(enrollment_id)
        if enrollment.user_id != user_id:
            raise EnrollmentNotFoundError(enrollment_id)

        existing = self.repository.get_fasting_log(user_id, enrollment_id, day) or {}
        values: Dict[str, Optional[Any]] = {name: existing.get(name) for name in _LOG_FLAGS}
        values.update(flags)
        log = FastingLog(user_id=user_id, enrollment_id=enrollment_id, log_date=day, **values)
        stored = self.repository.save_fasting_log(log)
        log_utils.debug(f"Fasting log saved for {enrollment_id} on {day.isoformat()}.")
        return stored

    def fasting_stats(self, user_id: str, enrollment_id: str) -> FastingStats:
        return compute_fasting_stats(self.repository.list_fasting_logs(user_id, enrollment_id))
