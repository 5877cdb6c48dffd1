# src/study_tracker/tracker/lifecycle.py

"""
Task planning and the per-task state machine: batch add, start, complete, skip.

Every mutation runs in one store transaction. Guards are checked inside it, so a
rejected call leaves no trace, and two racing calls for the same user serialize on
the write lock (the loser sees the winner's session/summary row and gets a Conflict).
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import ConflictError, IntegrityFault, NotFoundError, ValidationError
from ..core.state import AppState
from .models import (
    MAX_BATCH_TASKS,
    MAX_ESTIMATED_MINUTES,
    MAX_TASK_NAME_LENGTH,
    MIN_ESTIMATED_MINUTES,
    ActiveSession,
    NewTask,
    Subject,
    Task,
    TaskStatus,
)
from .stats import elapsed_minutes
from .store import StoreSession

logger = logging.getLogger(__name__)

DAY_ENDED_MESSAGE = "You have already ended your day. Start a new day first."


def parse_int(value: Any) -> int | None:
    """Lenient integer parsing for request payloads; None when not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_new_task(raw: Any) -> NewTask:
    if not isinstance(raw, dict):
        raise ValidationError("Each task must be an object")

    name = raw.get("task_name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Each task must have a name")
    if len(name) > MAX_TASK_NAME_LENGTH:
        raise ValidationError(f"Task name must be at most {MAX_TASK_NAME_LENGTH} characters")

    est = parse_int(raw.get("estimated_minutes"))
    if est is None or est < MIN_ESTIMATED_MINUTES or est > MAX_ESTIMATED_MINUTES:
        raise ValidationError(
            f"Estimated minutes must be between {MIN_ESTIMATED_MINUTES} and {MAX_ESTIMATED_MINUTES}"
        )

    return NewTask(task_name=name, subject=Subject.coerce(raw.get("subject")), estimated_minutes=est)


def require_user(session: StoreSession, user_id: int):
    user = session.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _owned_task(session: StoreSession, user_id: int, task_id: int) -> Task:
    task = session.get_task(task_id)
    # Someone else's task is reported exactly like a missing one.
    if task is None or task.user_id != int(user_id):
        raise NotFoundError("Task not found")
    return task


def resolve_active_task(session: StoreSession, active: ActiveSession) -> Task:
    """
    The task an active session points at. The session must reference an
    in-progress task owned by the same user; anything else is corrupted state.
    """
    task = session.get_task(active.active_task_id)
    if task is None or task.user_id != active.user_id or task.status != TaskStatus.IN_PROGRESS:
        raise IntegrityFault(
            f"active session of user {active.user_id} references task {active.active_task_id} "
            f"in state {task.status.value if task else 'missing'}"
        )
    return task


def batch_add(state: AppState, user_id: int, tasks: Any) -> int:
    """Plan tasks for today. All entries are validated before anything is written."""
    if not isinstance(tasks, list) or not tasks:
        raise ValidationError("Tasks array is required and must not be empty")
    if len(tasks) > MAX_BATCH_TASKS:
        raise ValidationError(f"Maximum {MAX_BATCH_TASKS} tasks per batch")

    entries = [validate_new_task(raw) for raw in tasks]

    today = state.clock.today().isoformat()
    now_ts = state.clock.now_ts()

    with state.store.transaction() as tx:
        require_user(tx, user_id)
        if tx.has_summary(user_id, today):
            raise ConflictError(DAY_ENDED_MESSAGE)
        for entry in entries:
            tx.insert_task(user_id, entry, task_date=today, now_ts=now_ts)

    logger.info("Tasks planned user=%s count=%d date=%s", user_id, len(entries), today)
    return len(entries)


def start_task(state: AppState, user_id: int, task_id: int) -> Task:
    now_ts = state.clock.now_ts()
    today = state.clock.today().isoformat()

    with state.store.transaction() as tx:
        task = _owned_task(tx, user_id, task_id)
        if task.status != TaskStatus.PENDING:
            raise ConflictError("Task is not in pending status")
        if tx.get_active_session(user_id) is not None:
            raise ConflictError("You already have an active task.")
        if tx.has_summary(user_id, today):
            raise ConflictError(DAY_ENDED_MESSAGE)

        if not tx.mark_started(task.id, now_ts=now_ts):
            raise ConflictError("Task is not in pending status")
        tx.insert_active_session(user_id, task.id, now_ts=now_ts)

    task.status = TaskStatus.IN_PROGRESS
    task.started_at = now_ts
    logger.info("Task started user=%s task=%s", user_id, task.id)
    return task


def complete_task(state: AppState, user_id: int, task_id: int) -> Task:
    now_ts = state.clock.now_ts()

    with state.store.transaction() as tx:
        task = _owned_task(tx, user_id, task_id)
        if task.status != TaskStatus.IN_PROGRESS:
            raise ConflictError("Task is not in progress")
        if task.started_at is None:
            raise IntegrityFault(f"task {task.id} is in progress without started_at")

        actual = elapsed_minutes(task.started_at, now_ts)
        status = (
            TaskStatus.COMPLETED_ONTIME
            if actual <= task.estimated_minutes
            else TaskStatus.COMPLETED_DELAYED
        )
        if not tx.mark_completed(task.id, status=status, actual_minutes=actual, now_ts=now_ts):
            raise ConflictError("Task is not in progress")

        # A task started on an earlier, already closed day has no session of its
        # own; the session may belong to a task started since.
        active = tx.get_active_session(user_id)
        if active is not None and active.active_task_id == task.id:
            tx.delete_active_session(user_id)

    task.status = status
    task.actual_minutes = actual
    task.completed_at = now_ts
    logger.info(
        "Task completed user=%s task=%s status=%s actual=%s est=%s",
        user_id,
        task.id,
        status.value,
        actual,
        task.estimated_minutes,
    )
    return task


def skip_task(state: AppState, user_id: int, task_id: int) -> Task:
    with state.store.transaction() as tx:
        task = _owned_task(tx, user_id, task_id)
        if task.status.is_terminal:
            raise ConflictError("Task is already completed or skipped")

        if not tx.mark_skipped(task.id):
            raise ConflictError("Task is already completed or skipped")

        active = tx.get_active_session(user_id)
        if active is not None and active.active_task_id == task.id:
            tx.delete_active_session(user_id)

    task.status = TaskStatus.SKIPPED
    logger.info("Task skipped user=%s task=%s", user_id, task.id)
    return task
