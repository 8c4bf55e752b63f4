from datetime import date

import pytest

from programme_engine.application.exceptions import (
    EnrollmentInactiveError,
    EnrollmentNotFoundError,
    InvalidFastingConfigError,
)
from programme_engine.domain.entities import ENROLLMENTS
from programme_engine.domain.events import EventType


ENROLLMENT_ID = "u1:lent-21"


@pytest.fixture
def fasting_enrollment(engine):
    return engine.enroll("u1", "lent-21", fasting_type="no_food")


def test_change_preserves_progress(engine, fasting_enrollment, clock, sink):
    clock.advance(days=5)
    for day in (1, 2, 3):
        engine.mark_day_complete(ENROLLMENT_ID, day)
    before = engine.get_enrollment(ENROLLMENT_ID)

    change = engine.change_fasting_type(ENROLLMENT_ID, "time_window", "12:00-20:00")

    after = engine.get_enrollment(ENROLLMENT_ID)
    assert change.changed
    assert (change.old_type, change.old_window) == ("no_food", None)
    assert (change.new_type, change.new_window) == ("time_window", "12:00-20:00")
    assert after.completed_days == before.completed_days
    assert after.start_date == before.start_date
    assert after.completion_percentage == before.completion_percentage
    assert after.fasting.window_text == "12:00-20:00"

    events = sink.of_type(EventType.FASTING_TYPE_CHANGED)
    assert len(events) == 1
    assert events[0].payload["old"] == {"fasting_type": "no_food", "fasting_window": None}
    assert events[0].payload["new"]["fasting_window"] == "12:00-20:00"


def test_same_selection_is_a_no_op(engine, fasting_enrollment, sink):
    change = engine.change_fasting_type(ENROLLMENT_ID, "no_food")
    assert not change.changed
    assert engine.get_enrollment(ENROLLMENT_ID).version == fasting_enrollment.version
    assert sink.of_type(EventType.FASTING_TYPE_CHANGED) == []


def test_invalid_selection_is_rejected(engine, fasting_enrollment):
    with pytest.raises(InvalidFastingConfigError):
        engine.change_fasting_type(ENROLLMENT_ID, "time_window")
    with pytest.raises(InvalidFastingConfigError):
        engine.change_fasting_type(ENROLLMENT_ID, "time_window", "23:00-01:00")
    with pytest.raises(InvalidFastingConfigError):
        engine.change_fasting_type(ENROLLMENT_ID, "water_only")


def test_programme_without_fasting_cannot_change(engine):
    engine.enroll("u1", "renewal-14")
    with pytest.raises(InvalidFastingConfigError):
        engine.change_fasting_type("u1:renewal-14", "no_food")


def test_programme_without_fasting_ignores_explicit_none(engine, store):
    enrollment = engine.enroll("u1", "renewal-14", fasting_type="none")

    assert enrollment.fasting is None
    record = store.get(ENROLLMENTS, "u1:renewal-14")
    assert record["fasting_type"] is None
    assert record["fasting_window"] is None
    with pytest.raises(InvalidFastingConfigError):
        engine.enroll("u2", "renewal-14", fasting_type="daniel_fast")


def test_completed_enrollment_cannot_change(engine, fasting_enrollment, clock):
    clock.advance(days=30)
    for day in range(1, 22):
        engine.mark_day_complete(ENROLLMENT_ID, day)
    with pytest.raises(EnrollmentInactiveError):
        engine.change_fasting_type(ENROLLMENT_ID, "daniel_fast")


def test_fasting_logs_upsert_and_stats(engine, fasting_enrollment):
    engine.save_fasting_log("u1", ENROLLMENT_ID, date(2024, 1, 1), food_fast_compliant=True)
    engine.save_fasting_log("u1", ENROLLMENT_ID, "2024-01-01", media_fast_compliant=True, notes="hard day")
    engine.save_fasting_log("u1", ENROLLMENT_ID, date(2024, 1, 2), food_fast_compliant=False)

    stats = engine.fasting_stats("u1", ENROLLMENT_ID)

    assert stats.total_days == 2
    assert stats.food_compliance_rate == 50.0
    assert stats.media_compliance_rate == 50.0
    assert stats.comfort_compliance_rate == 0.0
    assert stats.logs[0]["notes"] == "hard day"
    assert stats.logs[0]["food_fast_compliant"] is True


def test_fasting_log_requires_owner(engine, fasting_enrollment):
    with pytest.raises(EnrollmentNotFoundError):
        engine.save_fasting_log("u2", ENROLLMENT_ID, date(2024, 1, 1), food_fast_compliant=True)
    with pytest.raises(TypeError):
        engine.save_fasting_log("u1", ENROLLMENT_ID, date(2024, 1, 1), water=True)
