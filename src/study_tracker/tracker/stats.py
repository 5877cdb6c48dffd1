# src/study_tracker/tracker/stats.py

"""
Aggregation formulas shared by end-day, profile, feed and leaderboard.

Everything here is a pure function over task collections; the store only
hands back rows.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import Any

from .models import Task, TaskStatus

ALL_TIME_START = date(2000, 1, 1)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round_half_up(part / total * 100))


def hours_from_minutes(minutes: int) -> float:
    return round_half_up((minutes or 0) / 60, 1)


def elapsed_minutes(started_at: float, now_ts: float) -> int:
    return int(round_half_up(max(0.0, now_ts - started_at) / 60))


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int = 0
    ontime: int = 0
    delayed: int = 0
    skipped: int = 0
    total_minutes: int = 0

    @property
    def completed(self) -> int:
        return self.ontime + self.delayed

    @property
    def completion_rate(self) -> int:
        """Completed (either variant) over total; the daily summary's success rate."""
        return percent(self.completed, self.total)

    @property
    def ontime_rate(self) -> int:
        """On-time over total; the success rate of profile and leaderboard views."""
        return percent(self.ontime, self.total)

    @property
    def ontime_ratio(self) -> float:
        return self.ontime * 100.0 / self.total if self.total > 0 else 0.0

    @property
    def study_hours(self) -> float:
        return hours_from_minutes(self.total_minutes)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> TaskStats:
        total = ontime = delayed = skipped = minutes = 0
        for t in tasks:
            total += 1
            if t.status == TaskStatus.COMPLETED_ONTIME:
                ontime += 1
            elif t.status == TaskStatus.COMPLETED_DELAYED:
                delayed += 1
            elif t.status == TaskStatus.SKIPPED:
                skipped += 1
            minutes += t.actual_minutes or 0
        return cls(
            total=total,
            ontime=ontime,
            delayed=delayed,
            skipped=skipped,
            total_minutes=minutes,
        )

    def today_view(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "ontime": self.ontime,
            "delayed": self.delayed,
            "skipped": self.skipped,
        }


class Period(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all-time"

    @classmethod
    def parse(cls, raw: str | None) -> Period:
        if raw is None or str(raw).strip() == "":
            return cls.WEEKLY
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.ALL_TIME


def week_start(today: date) -> date:
    """Monday of the week containing today."""
    return today - timedelta(days=today.weekday())


def period_range(period: Period, today: date) -> tuple[date, date]:
    if period == Period.WEEKLY:
        return week_start(today), today
    if period == Period.MONTHLY:
        return today.replace(day=1), today
    return ALL_TIME_START, today
