from datetime import date, datetime

import pytest

from programme_engine.domain.entities import (
    Enrollment,
    EnrollmentStatus,
    Programme,
    completion_percentage,
    enrollment_key,
)
from programme_engine.domain.fasting import FastingConfig
from programme_engine.domain.progress import build_snapshot


def _enrollment(**overrides) -> Enrollment:
    values = dict(user_id="u1", programme_id="renewal-14", start_date=date(2024, 1, 1), duration_days=14)
    values.update(overrides)
    return Enrollment(**values)


@pytest.mark.parametrize(
    "count, duration, expected",
    [(0, 14, 0), (1, 14, 7), (3, 14, 21), (7, 14, 50), (1, 8, 13), (1, 3, 33), (2, 3, 67), (14, 14, 100)],
)
def test_completion_percentage_rounds_half_up(count, duration, expected):
    assert completion_percentage(count, duration) == expected


def test_current_day_follows_furthest_completed_day():
    assert _enrollment().current_day == 1
    assert _enrollment(completed_days=frozenset({1, 2})).current_day == 3
    assert _enrollment(completed_days=frozenset({1, 5})).current_day == 6
    assert _enrollment(completed_days=frozenset(range(1, 15))).current_day == 14


def test_completed_days_must_be_in_range():
    with pytest.raises(ValueError):
        _enrollment(completed_days=frozenset({0}))
    with pytest.raises(ValueError):
        _enrollment(completed_days=frozenset({15}))


def test_completed_status_requires_timestamp():
    with pytest.raises(ValueError):
        _enrollment(status=EnrollmentStatus.COMPLETED, completed_days=frozenset(range(1, 15)))


def test_record_round_trip_keeps_derived_fields_in_step():
    enrollment = _enrollment(
        completed_days=frozenset({1, 2, 3}),
        fasting=FastingConfig.from_values("time_window", "12:00-20:00"),
        created_at=datetime(2024, 1, 1, 9, 0),
    )
    record = enrollment.to_record()
    assert record["id"] == enrollment_key("u1", "renewal-14") == "u1:renewal-14"
    assert record["completed_days"] == [1, 2, 3]
    assert record["completion_percentage"] == 21
    assert record["current_day"] == 4
    assert record["fasting_window"] == "12:00-20:00"

    record["version"] = 4
    restored = Enrollment.from_record(record)
    assert restored.completed_days == frozenset({1, 2, 3})
    assert restored.fasting == enrollment.fasting
    assert restored.version == 4
    assert restored.created_at == datetime(2024, 1, 1, 9, 0)


def test_programme_rejects_zero_duration_and_finds_day_content():
    with pytest.raises(ValueError):
        Programme(id="p", title="Empty", duration_days=0)
    programme = Programme.from_record(
        {"id": "p", "duration_days": 2, "days": [{"day_number": 2, "title": "Two"}, {"day_number": 1, "title": "One"}]}
    )
    assert programme.title == "p"
    assert programme.day_content(1)["title"] == "One"
    assert programme.day_content(3) is None


def test_snapshot_reports_next_unlock_until_final_day():
    enrollment = _enrollment(completed_days=frozenset({1}))
    snapshot = build_snapshot(enrollment, date(2024, 1, 3))
    assert snapshot.unlocked_day_count == 3
    assert snapshot.next_day_to_show == 2
    assert snapshot.next_unlock_date == date(2024, 1, 4)
    assert snapshot.days_remaining == 13

    late = build_snapshot(enrollment, date(2024, 2, 1))
    assert late.unlocked_day_count == 14
    assert late.next_unlock_date is None
    assert late.as_dict()["next_unlock_date"] is None
