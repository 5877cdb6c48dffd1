# src/study_tracker/tracker/streak.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    current_streak: int
    best_streak: int


def next_streak(
    *,
    completed_today: int,
    yesterday_completed: int | None,
    current_streak: int,
    best_streak: int,
) -> StreakUpdate:
    """
    Streak after a day ends.

    yesterday_completed is None when no summary exists for yesterday.
    A day with at least one completed task extends a streak that yesterday kept
    alive, otherwise starts a new one at 1. A day with nothing completed resets to 0.
    """
    if completed_today > 0:
        if yesterday_completed is not None and yesterday_completed > 0:
            new_current = current_streak + 1
        else:
            new_current = 1
    else:
        new_current = 0

    return StreakUpdate(
        current_streak=new_current,
        best_streak=max(new_current, best_streak),
    )
