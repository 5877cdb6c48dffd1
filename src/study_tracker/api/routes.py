# src/study_tracker/api/routes.py

"""Operation table of the request boundary."""

from __future__ import annotations

from typing import Any

from ..core.errors import AuthenticationError
from ..core.state import AppState
from ..tracker import day, lifecycle, users, views
from .dispatch import NOT_AUTHENTICATED, OperationRegistry, Request, Response, path_int

registry = OperationRegistry()


def _caller(request: Request) -> int:
    if request.user_id is None:
        raise AuthenticationError(NOT_AUTHENTICATED)
    return int(request.user_id)


def op_health(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return {"status": "ok", "timestamp": state.clock.now_ts()}


def op_register(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    p = request.payload
    user = users.register_user(state, username=p.get("username"), name=p.get("name"))
    return {"success": True, "user": user.identity()}


def op_current_user(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return {"user": users.get_user(state, _caller(request)).identity()}


def op_list_users(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return {"users": [u.identity() for u in users.list_users(state)]}


def op_batch_add(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    count = lifecycle.batch_add(state, _caller(request), request.payload.get("tasks"))
    return {"success": True, "count": count}


def op_start(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    task_id = path_int(params, "task_id", "Task not found")
    task = lifecycle.start_task(state, _caller(request), task_id)
    return {"success": True, "task": {"id": task.id, "started_at": task.started_at}}


def op_complete(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    task_id = path_int(params, "task_id", "Task not found")
    task = lifecycle.complete_task(state, _caller(request), task_id)
    return {
        "success": True,
        "task": {"id": task.id, "status": task.status.value, "actual_minutes": task.actual_minutes},
    }


def op_skip(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    task_id = path_int(params, "task_id", "Task not found")
    lifecycle.skip_task(state, _caller(request), task_id)
    return {"success": True}


def op_today(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return views.list_today(state, _caller(request))


def op_user_today(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    target = path_int(params, "user_id", "User not found")
    return views.list_for_other_user(state, _caller(request), target)


def op_feed(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return views.feed_snapshot(state, _caller(request))


def op_profile(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return views.profile(state, path_int(params, "user_id", "User not found"))


def op_history(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    p = request.payload
    return views.history(
        state,
        path_int(params, "user_id", "User not found"),
        start_date=p.get("startDate"),
        end_date=p.get("endDate"),
        subject=p.get("subject"),
    )


def op_summary(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    target = path_int(params, "user_id", "User not found")
    return views.summary_for_date(state, target, params.get("date"))


def op_end_day(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    p = request.payload
    result = day.end_day(
        state,
        _caller(request),
        self_rating=p.get("self_rating"),
        maths_problems=p.get("maths_problems"),
        physics_problems=p.get("physics_problems"),
        chemistry_problems=p.get("chemistry_problems"),
        topics_covered=p.get("topics_covered"),
        notes=p.get("notes"),
    )
    return {"success": True, "summary": result.to_dict()}


def op_leaderboard(state: AppState, request: Request, params: dict[str, str]) -> dict[str, Any]:
    return views.leaderboard(state, request.payload.get("period"))


registry.register("GET", "/health", op_health, "Liveness check.", auth=False)
registry.register("POST", "/register", op_register, "Create a user {username, name}.", auth=False)
registry.register("GET", "/current-user", op_current_user, "Identity of the caller.")
registry.register("GET", "/users", op_list_users, "All users.")
registry.register("POST", "/tasks/batch-add", op_batch_add, "Plan up to 20 tasks for today {tasks}.")
registry.register("POST", "/tasks/{task_id}/start", op_start, "Start a pending task.")
registry.register("POST", "/tasks/{task_id}/complete", op_complete, "Complete the running task.")
registry.register("POST", "/tasks/{task_id}/skip", op_skip, "Skip a pending or running task.")
registry.register("GET", "/tasks/today", op_today, "Caller's tasks for today.")
registry.register("GET", "/tasks/user/{user_id}", op_user_today, "Another user's tasks for today.")
registry.register("GET", "/feed/active", op_feed, "What everyone else is doing today.")
registry.register("GET", "/users/{user_id}/profile", op_profile, "Streaks, totals, this week, last 7 days.")
registry.register(
    "GET",
    "/users/{user_id}/history",
    op_history,
    "Up to 200 tasks {startDate, endDate, subject}.",
)
registry.register(
    "GET",
    "/summary/user/{user_id}/date/{date}",
    op_summary,
    "A user's summary for one day.",
)
registry.register("POST", "/summary/end-day", op_end_day, "Close today {self_rating, ...}.")
registry.register("GET", "/leaderboard", op_leaderboard, "Rankings {period: weekly|monthly|all-time}.")


def dispatch(state: AppState, request: Request) -> Response:
    return registry.dispatch(state, request)
