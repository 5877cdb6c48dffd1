# src/study_tracker/tracker/views.py

"""
Read-only projections: today's list, peer feed, profile, history, leaderboard.

Nothing is cached; every call recomputes from the rows in one snapshot.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from ..core.errors import ValidationError
from ..core.state import AppState
from .lifecycle import require_user, resolve_active_task
from .models import HISTORY_LIMIT, RECENT_SUMMARIES_LIMIT, Task
from .stats import Period, TaskStats, period_range, week_start
from .store import StoreSession

logger = logging.getLogger(__name__)


def _parse_date(raw: Any, field: str) -> str | None:
    if raw is None or raw == "":
        return None
    try:
        return date.fromisoformat(str(raw)).isoformat()
    except ValueError as e:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format") from e


def _tasks_view(tasks: list[Task]) -> list[dict[str, Any]]:
    return [t.to_dict() for t in tasks]


def list_today(state: AppState, user_id: int) -> dict[str, Any]:
    today = state.clock.today().isoformat()
    with state.store.snapshot() as s:
        tasks = s.list_tasks(user_id, today)
        day_ended = s.has_summary(user_id, today)
    return {"tasks": _tasks_view(tasks), "day_ended": day_ended}


def list_for_other_user(state: AppState, user_id: int, target_user_id: int) -> dict[str, Any]:
    today = state.clock.today().isoformat()
    with state.store.snapshot() as s:
        target = require_user(s, target_user_id)
        tasks = s.list_tasks(target.id, today)
        day_ended = s.has_summary(target.id, today)
    return {"tasks": _tasks_view(tasks), "day_ended": day_ended, "user_name": target.name}


def _active_task_view(s: StoreSession, user_id: int, now_ts: float) -> dict[str, Any] | None:
    active = s.get_active_session(user_id)
    if active is None:
        return None
    task = resolve_active_task(s, active)
    return {
        "id": task.id,
        "task_name": task.task_name,
        "subject": task.subject.value,
        "started_at": active.started_at,
        "estimated_minutes": task.estimated_minutes,
        "elapsed_seconds": int(max(0.0, now_ts - active.started_at)),
    }


def feed_snapshot(state: AppState, user_id: int) -> dict[str, Any]:
    """Everyone except the caller: what they are doing now and how today is going."""
    today = state.clock.today().isoformat()
    now_ts = state.clock.now_ts()

    out: list[dict[str, Any]] = []
    with state.store.snapshot() as s:
        for user in s.list_users():
            if user.id == int(user_id):
                continue
            stats = TaskStats.from_tasks(s.list_tasks(user.id, today))
            out.append(
                {
                    **user.identity(),
                    "active_task": _active_task_view(s, user.id, now_ts),
                    "today_stats": stats.today_view(),
                    "day_ended": s.has_summary(user.id, today),
                }
            )
    return {"users": out}


def profile(state: AppState, target_user_id: int) -> dict[str, Any]:
    today_d = state.clock.today()
    with state.store.snapshot() as s:
        user = require_user(s, target_user_id)
        all_stats = TaskStats.from_tasks(s.list_user_tasks(user.id))
        week_stats = TaskStats.from_tasks(
            s.list_tasks_between(
                week_start(today_d).isoformat(), today_d.isoformat(), user_id=user.id
            )
        )
        recent = s.list_recent_summaries(user.id, RECENT_SUMMARIES_LIMIT)

    return {
        "user": {
            **user.identity(),
            "created_at": user.created_at,
            "current_streak": user.current_streak,
            "best_streak": user.best_streak,
            "last_active_date": user.last_active_date,
        },
        "stats": {
            "total_tasks": all_stats.total,
            "completed_ontime": all_stats.ontime,
            "completed_delayed": all_stats.delayed,
            "skipped": all_stats.skipped,
            "success_rate": all_stats.ontime_rate,
            "total_study_hours": all_stats.study_hours,
        },
        "week_stats": {
            "tasks": week_stats.total,
            "ontime": week_stats.ontime,
            "delayed": week_stats.delayed,
            "study_hours": week_stats.study_hours,
            "success_rate": week_stats.ontime_rate,
        },
        "recent_summaries": [summary.to_dict() for summary in recent],
    }


def history(
    state: AppState,
    user_id: int,
    *,
    start_date: Any = None,
    end_date: Any = None,
    subject: Any = None,
) -> dict[str, Any]:
    start = _parse_date(start_date, "startDate")
    end = _parse_date(end_date, "endDate")
    subj = subject.strip() if isinstance(subject, str) and subject.strip() else None

    with state.store.snapshot() as s:
        tasks = s.list_history(
            user_id,
            start_date=start,
            end_date=end,
            subject=subj,
            limit=HISTORY_LIMIT,
        )
    return {"tasks": _tasks_view(tasks)}


def summary_for_date(state: AppState, target_user_id: int, summary_date: Any) -> dict[str, Any]:
    day = _parse_date(summary_date, "date")
    if day is None:
        raise ValidationError("date is required")
    with state.store.snapshot() as s:
        summary = s.get_summary(target_user_id, day)
    return {"summary": summary.to_dict() if summary else None}


def leaderboard(state: AppState, period: Any = None) -> dict[str, Any]:
    """
    Rank everyone by on-time completions in the period, ties broken by on-time
    percentage. Users without tasks in the period still appear, with zeros.
    """
    parsed = Period.parse(period)
    start, end = period_range(parsed, state.clock.today())

    with state.store.snapshot() as s:
        users = s.list_users()
        tasks = s.list_tasks_between(start.isoformat(), end.isoformat())

    by_user: dict[int, list[Task]] = {u.id: [] for u in users}
    for t in tasks:
        if t.user_id in by_user:
            by_user[t.user_id].append(t)

    rows = [(u, TaskStats.from_tasks(by_user[u.id])) for u in users]
    rows.sort(key=lambda r: (-r[1].ontime, -r[1].ontime_ratio, r[0].id))

    rankings = [
        {
            **u.identity(),
            "rank": i,
            "ontime": st.ontime,
            "delayed": st.delayed,
            "total": st.total,
            "success_rate": st.ontime_rate,
            "study_hours": st.study_hours,
        }
        for i, (u, st) in enumerate(rows, start=1)
    ]
    logger.debug(
        "Leaderboard period=%s range=%s..%s users=%d", parsed.value, start, end, len(rankings)
    )
    return {
        "period": parsed.value,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "rankings": rankings,
    }
