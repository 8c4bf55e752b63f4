import pytest

from programme_engine.domain.resume import next_day_to_show


@pytest.mark.parametrize(
    "completed, unlocked, expected",
    [
        (set(), 1, 1),
        (set(), 5, 1),
        ({1, 2}, 5, 3),
        ({1, 3}, 5, 2),
        ({1, 2, 3}, 3, 3),
        ({2, 3, 4}, 4, 1),
    ],
)
def test_next_day_to_show(completed, unlocked, expected):
    assert next_day_to_show(completed, unlocked) == expected


def test_result_never_exceeds_unlocked_days():
    for unlocked in range(1, 10):
        completed = set(range(1, 15))
        assert next_day_to_show(completed, unlocked) <= unlocked


def test_rejects_zero_unlocked_days():
    with pytest.raises(ValueError):
        next_day_to_show(set(), 0)
