from datetime import date, datetime, timezone

from programme_engine.domain.clock import FixedClock, SystemClock, resolve_timezone, to_local_date
from programme_engine.domain.configuration import configure


def test_fixed_clock_advances():
    clock = FixedClock(date(2024, 1, 1))
    assert clock.now() == datetime(2024, 1, 1)
    clock.advance(days=2, hours=3)
    assert clock.now() == datetime(2024, 1, 3, 3, 0)
    assert clock.today() == date(2024, 1, 3)
    clock.set(datetime(2024, 5, 1, 12, 0))
    assert clock.today() == date(2024, 5, 1)


def test_system_clock_is_timezone_aware():
    assert SystemClock("UTC").now().tzinfo is timezone.utc


def test_to_local_date_converts_aware_values():
    configure(programme_timezone="Asia/Tokyo")
    moment = datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)
    assert to_local_date(moment) == date(2024, 1, 2)
    assert to_local_date(datetime(2024, 1, 1, 20, 0)) == date(2024, 1, 1)
    assert resolve_timezone("utc") is timezone.utc
