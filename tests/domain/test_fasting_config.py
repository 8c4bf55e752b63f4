from datetime import time

import pytest

from programme_engine.domain.configuration import configure
from programme_engine.domain.fasting import (
    FastingConfig,
    FastingType,
    FastingWindow,
    compute_fasting_stats,
    default_window,
)


def test_window_parses_and_formats():
    window = FastingWindow.parse("12:00-20:00")
    assert window.start == time(12, 0)
    assert window.end == time(20, 0)
    assert window.duration_hours == 8.0
    assert str(window) == "12:00-20:00"


@pytest.mark.parametrize("text", ["20:00-12:00", "12:00-12:00", "noon-8pm", "12:00", "25:00-26:00", "1-2-3"])
def test_window_rejects_malformed_or_inverted(text):
    with pytest.raises(ValueError):
        FastingWindow.parse(text)


def test_time_window_requires_window():
    with pytest.raises(ValueError):
        FastingConfig.from_values("time_window")
    config = FastingConfig.from_values("time_window", "10:00-18:00")
    assert config.fasting_type is FastingType.TIME_WINDOW
    assert config.window_text == "10:00-18:00"


def test_other_types_reject_a_window():
    with pytest.raises(ValueError):
        FastingConfig.from_values("no_food", "10:00-18:00")


def test_unknown_type_lists_allowed_values():
    with pytest.raises(ValueError) as excinfo:
        FastingConfig.from_values("juice_cleanse")
    assert "daniel_fast" in str(excinfo.value)


def test_record_round_trip_fields():
    config = FastingConfig.from_values(FastingType.DANIEL_FAST)
    assert config.to_record() == {"fasting_type": "daniel_fast", "fasting_window": None}
    assert FastingType.DANIEL_FAST.label == "Daniel Fast"


def test_default_window_follows_domain_settings():
    assert str(default_window()) == "12:00-20:00"
    configure(default_fasting_window="08:00-16:00")
    assert str(default_window()) == "08:00-16:00"


def test_stats_rates_and_empty_case():
    empty = compute_fasting_stats([])
    assert empty.total_days == 0
    assert empty.food_compliance_rate == 0.0

    stats = compute_fasting_stats(
        [
            {"log_date": "2024-01-02", "food_fast_compliant": True, "media_fast_compliant": False},
            {"log_date": "2024-01-01", "food_fast_compliant": True, "comfort_fast_compliant": True},
            {"log_date": "2024-01-03", "food_fast_compliant": False, "media_fast_compliant": None},
            {"log_date": "2024-01-04", "food_fast_compliant": True, "media_fast_compliant": True},
        ]
    )
    assert stats.total_days == 4
    assert stats.food_compliance_rate == 75.0
    assert stats.media_compliance_rate == 25.0
    assert stats.comfort_compliance_rate == 25.0
    assert [row["log_date"] for row in stats.logs] == ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"]
    assert stats.as_dict()["food_compliant"] == 3
