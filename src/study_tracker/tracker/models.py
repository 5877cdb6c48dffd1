# src/study_tracker/tracker/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

MAX_BATCH_TASKS = 20
MAX_TASK_NAME_LENGTH = 200
MIN_ESTIMATED_MINUTES = 5
MAX_ESTIMATED_MINUTES = 720
HISTORY_LIMIT = 200
RECENT_SUMMARIES_LIMIT = 7


class Subject(StrEnum):
    MATHS = "Maths"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    OTHER = "Other"

    @classmethod
    def coerce(cls, raw: Any) -> Subject:
        """Unknown or missing subjects fall back to Other."""
        try:
            return cls(raw)
        except (TypeError, ValueError):
            return cls.OTHER


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    pending -> in_progress -> completed_ontime | completed_delayed
    pending | in_progress -> skipped
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED_ONTIME = "completed_ontime"
    COMPLETED_DELAYED = "completed_delayed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self in (TaskStatus.COMPLETED_ONTIME, TaskStatus.COMPLETED_DELAYED)

    def can_become(self, target: TaskStatus) -> bool:
        return target in TRANSITIONS[self]


TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED_ONTIME, TaskStatus.COMPLETED_DELAYED, TaskStatus.SKIPPED}
)

OPEN_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})

TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.SKIPPED}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.COMPLETED_ONTIME, TaskStatus.COMPLETED_DELAYED, TaskStatus.SKIPPED}
    ),
    TaskStatus.COMPLETED_ONTIME: frozenset(),
    TaskStatus.COMPLETED_DELAYED: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
}


@dataclass(slots=True)
class User:
    id: int
    username: str
    name: str
    created_at: float
    current_streak: int
    best_streak: int
    last_active_date: str | None

    def identity(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "username": self.username}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Task:
    id: int
    user_id: int
    task_name: str
    subject: Subject
    estimated_minutes: int
    status: TaskStatus
    task_date: str
    created_at: float

    actual_minutes: int | None = None
    started_at: float | None = None
    completed_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["subject"] = self.subject.value
        d["status"] = self.status.value
        return d


@dataclass(frozen=True, slots=True)
class NewTask:
    """A validated batch entry, not yet persisted."""

    task_name: str
    subject: Subject
    estimated_minutes: int


@dataclass(frozen=True, slots=True)
class ActiveSession:
    user_id: int
    active_task_id: int
    started_at: float
    last_seen: float


@dataclass(frozen=True, slots=True)
class DailySummary:
    id: int
    user_id: int
    summary_date: str
    maths_problems: int
    physics_problems: int
    chemistry_problems: int
    topics_covered: str
    notes: str
    self_rating: int
    tasks_completed: int
    tasks_total: int
    success_rate: int
    total_study_hours: float
    ended_at: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
