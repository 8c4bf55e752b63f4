from __future__ import annotations

from programme_engine.application.base import EngineService
from programme_engine.domain.resume import next_day_to_show
from programme_engine.domain.unlock import unlocked_day_count


class NavigationService(EngineService):
    """Answers "how far can I go" and "where do I land" for an enrollment."""

    def get_unlocked_day_count(self, enrollment_id: str) -> int:
        enrollment = self.repository.get_enrollment(enrollment_id)
        return unlocked_day_count(enrollment.start_date, self.clock.now(), enrollment.duration_days)

    def get_next_day_to_show(self, enrollment_id: str) -> int:
        enrollment = self.repository.get_enrollment(enrollment_id)
        unlocked = unlocked_day_count(enrollment.start_date, self.clock.now(), enrollment.duration_days)
        return next_day_to_show(enrollment.completed_days, unlocked)
