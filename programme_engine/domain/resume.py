"""Resume point selection."""
from __future__ import annotations

from typing import AbstractSet


def next_day_to_show(completed_days: AbstractSet[int], max_unlocked: int) -> int:
    """Pick the day a returning user should land on.

    The earliest unlocked day that is not yet complete wins, so users catch up
    before moving ahead. Once every unlocked day is done the latest unlocked
    day is shown for review.
    """

    if max_unlocked < 1:
        raise ValueError(f"max_unlocked must be at least 1, got {max_unlocked}")
    for day in range(1, max_unlocked + 1):
        if day not in completed_days:
            return day
    return max_unlocked
