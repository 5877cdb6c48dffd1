# src/study_tracker/tracker/day.py

"""
End of day.

end_day() closes the caller's day in a single transaction:
- force-skip whatever is still pending/in progress today,
- drop the active session,
- aggregate today's tasks into a DailySummary row,
- advance or reset the streak.

Either all of it lands or none of it does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from ..core.errors import ConflictError, ValidationError
from ..core.state import AppState
from .lifecycle import parse_int, require_user
from .stats import TaskStats
from .streak import next_streak

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EndDayResult:
    summary_date: str
    tasks_completed: int
    tasks_total: int
    success_rate: int
    total_study_hours: float
    current_streak: int
    best_streak: int
    skipped_on_close: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary_date": self.summary_date,
            "tasks_completed": self.tasks_completed,
            "tasks_total": self.tasks_total,
            "success_rate": self.success_rate,
            "total_study_hours": self.total_study_hours,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
        }


def has_day_ended(state: AppState, user_id: int) -> bool:
    today = state.clock.today().isoformat()
    with state.store.snapshot() as s:
        return s.has_summary(user_id, today)


def _problem_count(value: Any) -> int:
    n = parse_int(value)
    return max(0, n) if n is not None else 0


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def end_day(
    state: AppState,
    user_id: int,
    *,
    self_rating: Any,
    maths_problems: Any = 0,
    physics_problems: Any = 0,
    chemistry_problems: Any = 0,
    topics_covered: Any = "",
    notes: Any = "",
) -> EndDayResult:
    today_d = state.clock.today()
    today = today_d.isoformat()
    yesterday = (today_d - timedelta(days=1)).isoformat()
    now_ts = state.clock.now_ts()

    with state.store.transaction() as tx:
        user = require_user(tx, user_id)
        if tx.has_summary(user_id, today):
            raise ConflictError("You have already ended your day today.")

        rating = parse_int(self_rating)
        if rating is None or rating < 1 or rating > 5:
            raise ValidationError("Self-rating must be 1-5")

        skipped = tx.skip_open_tasks(user_id, today)
        tx.delete_active_session(user_id)

        stats = TaskStats.from_tasks(tx.list_tasks(user_id, today))

        tx.insert_summary(
            user_id,
            summary_date=today,
            maths_problems=_problem_count(maths_problems),
            physics_problems=_problem_count(physics_problems),
            chemistry_problems=_problem_count(chemistry_problems),
            topics_covered=_text(topics_covered),
            notes=_text(notes),
            self_rating=rating,
            tasks_completed=stats.completed,
            tasks_total=stats.total,
            success_rate=stats.completion_rate,
            total_study_hours=stats.study_hours,
            ended_at=now_ts,
        )

        prev = tx.get_summary(user_id, yesterday)
        streak = next_streak(
            completed_today=stats.completed,
            yesterday_completed=prev.tasks_completed if prev is not None else None,
            current_streak=user.current_streak,
            best_streak=user.best_streak,
        )
        tx.update_streak(
            user_id,
            current_streak=streak.current_streak,
            best_streak=streak.best_streak,
            last_active_date=today,
        )

    logger.info(
        "Day ended user=%s date=%s completed=%d/%d streak=%d best=%d skipped_on_close=%d",
        user_id,
        today,
        stats.completed,
        stats.total,
        streak.current_streak,
        streak.best_streak,
        skipped,
    )
    return EndDayResult(
        summary_date=today,
        tasks_completed=stats.completed,
        tasks_total=stats.total,
        success_rate=stats.completion_rate,
        total_study_hours=stats.study_hours,
        current_streak=streak.current_streak,
        best_streak=streak.best_streak,
        skipped_on_close=skipped,
    )
