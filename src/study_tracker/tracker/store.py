# src/study_tracker/tracker/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..core.errors import ConflictError
from .models import (
    TRANSITIONS,
    ActiveSession,
    DailySummary,
    NewTask,
    Subject,
    Task,
    TaskStatus,
    User,
)

logger = logging.getLogger(__name__)


def _sources_for(target: TaskStatus) -> list[str]:
    """Statuses allowed to move into target, straight from the transition table."""
    return [src.value for src, targets in TRANSITIONS.items() if target in targets]


class TrackerStore:
    """
    SQLite store for users, tasks, active sessions and daily summaries.

    The schema is created on open (CREATE ... IF NOT EXISTS), so reopening an
    existing database is a no-op.

    Concurrency:
    - each unit of work opens its own SQLite connection
    - transaction() takes the write lock up front (BEGIN IMMEDIATE), so the
      check-then-act of one mutation cannot interleave with another
    """

    def __init__(self, db_path: str | Path = "study.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            with self.snapshot() as s:
                total = s.count_users()
        except Exception:
            total = -1
        logger.info("TrackerStore ready db=%s users=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly in transaction().
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    current_streak INTEGER NOT NULL DEFAULT 0,
                    best_streak INTEGER NOT NULL DEFAULT 0,
                    last_active_date TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    task_name TEXT NOT NULL,
                    subject TEXT NOT NULL DEFAULT 'Other',
                    estimated_minutes INTEGER NOT NULL,
                    actual_minutes INTEGER,
                    status TEXT NOT NULL DEFAULT 'pending',
                    started_at REAL,
                    completed_at REAL,
                    task_date TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS daily_summaries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    summary_date TEXT NOT NULL,
                    maths_problems INTEGER NOT NULL DEFAULT 0,
                    physics_problems INTEGER NOT NULL DEFAULT 0,
                    chemistry_problems INTEGER NOT NULL DEFAULT 0,
                    topics_covered TEXT NOT NULL DEFAULT '',
                    total_study_hours REAL NOT NULL DEFAULT 0,
                    notes TEXT NOT NULL DEFAULT '',
                    self_rating INTEGER NOT NULL,
                    tasks_completed INTEGER NOT NULL DEFAULT 0,
                    tasks_total INTEGER NOT NULL DEFAULT 0,
                    success_rate INTEGER NOT NULL DEFAULT 0,
                    ended_at REAL NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id),
                    UNIQUE (user_id, summary_date)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS active_sessions (
                    user_id INTEGER PRIMARY KEY,
                    active_task_id INTEGER NOT NULL,
                    started_at REAL NOT NULL,
                    last_seen REAL NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users(id),
                    FOREIGN KEY (active_task_id) REFERENCES tasks(id)
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_date ON tasks(user_id, task_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_date ON tasks(task_date)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_summaries_user_date "
                "ON daily_summaries(user_id, summary_date)"
            )

            cur.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    # ---- units of work ----

    @contextlib.contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """
        Write session. Commits when the block exits normally, rolls back on any
        exception (which is re-raised), so callers never see partial mutations.
        """
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield StoreSession(conn)
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextlib.contextmanager
    def snapshot(self) -> Iterator[StoreSession]:
        """Read session over a plain autocommit connection."""
        conn = self._get_conn()
        try:
            yield StoreSession(conn)
        finally:
            conn.close()


class StoreSession:
    """Row-level API bound to one connection (see TrackerStore.transaction/snapshot)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ---- row mapping ----

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            username=str(row["username"]),
            name=str(row["name"]),
            created_at=float(row["created_at"] or 0.0),
            current_streak=int(row["current_streak"] or 0),
            best_streak=int(row["best_streak"] or 0),
            last_active_date=row["last_active_date"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            task_name=str(row["task_name"]),
            subject=Subject.coerce(row["subject"]),
            estimated_minutes=int(row["estimated_minutes"]),
            status=TaskStatus(row["status"]),
            task_date=str(row["task_date"]),
            created_at=float(row["created_at"] or 0.0),
            actual_minutes=int(row["actual_minutes"]) if row["actual_minutes"] is not None else None,
            started_at=float(row["started_at"]) if row["started_at"] is not None else None,
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> ActiveSession:
        return ActiveSession(
            user_id=int(row["user_id"]),
            active_task_id=int(row["active_task_id"]),
            started_at=float(row["started_at"]),
            last_seen=float(row["last_seen"]),
        )

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> DailySummary:
        return DailySummary(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            summary_date=str(row["summary_date"]),
            maths_problems=int(row["maths_problems"] or 0),
            physics_problems=int(row["physics_problems"] or 0),
            chemistry_problems=int(row["chemistry_problems"] or 0),
            topics_covered=str(row["topics_covered"] or ""),
            notes=str(row["notes"] or ""),
            self_rating=int(row["self_rating"]),
            tasks_completed=int(row["tasks_completed"] or 0),
            tasks_total=int(row["tasks_total"] or 0),
            success_rate=int(row["success_rate"] or 0),
            total_study_hours=float(row["total_study_hours"] or 0.0),
            ended_at=float(row["ended_at"] or 0.0),
        )

    # ---- users ----

    def count_users(self) -> int:
        (n,) = self._conn.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(n)

    def insert_user(self, *, username: str, name: str, now_ts: float) -> int:
        try:
            cur = self._conn.execute(
                "INSERT INTO users(username, name, created_at) VALUES (?, ?, ?)",
                (username, name, float(now_ts)),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError("Username already taken") from e
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for users insert")
        return int(cur.lastrowid)

    def get_user(self, user_id: int) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self) -> list[User]:
        rows = self._conn.execute("SELECT * FROM users ORDER BY id ASC").fetchall()
        return [self._row_to_user(r) for r in rows]

    def update_streak(
        self,
        user_id: int,
        *,
        current_streak: int,
        best_streak: int,
        last_active_date: str,
    ) -> None:
        self._conn.execute(
            """
            UPDATE users
            SET current_streak = ?, best_streak = ?, last_active_date = ?
            WHERE id = ?
            """,
            (int(current_streak), int(best_streak), last_active_date, int(user_id)),
        )

    # ---- tasks ----

    def insert_task(self, user_id: int, task: NewTask, *, task_date: str, now_ts: float) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO tasks(user_id, task_name, subject, estimated_minutes, status, task_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(user_id),
                task.task_name,
                task.subject.value,
                int(task.estimated_minutes),
                TaskStatus.PENDING.value,
                task_date,
                float(now_ts),
            ),
        )
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        return int(cur.lastrowid)

    def get_task(self, task_id: int) -> Task | None:
        row = self._conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        return self._row_to_task(row) if row else None

    def list_tasks(self, user_id: int, task_date: str) -> list[Task]:
        """Tasks of one user/day in insertion order."""
        rows = self._conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? AND task_date = ? ORDER BY id ASC",
            (int(user_id), task_date),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def list_user_tasks(self, user_id: int) -> list[Task]:
        rows = self._conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY id ASC", (int(user_id),)
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def list_tasks_between(
        self,
        start_date: str,
        end_date: str,
        *,
        user_id: int | None = None,
    ) -> list[Task]:
        sql = "SELECT * FROM tasks WHERE task_date >= ? AND task_date <= ?"
        params: list[Any] = [start_date, end_date]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(int(user_id))
        sql += " ORDER BY id ASC"
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def list_history(
        self,
        user_id: int,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        subject: str | None = None,
        limit: int = 200,
    ) -> list[Task]:
        """Newest day first; insertion order within a day."""
        sql = "SELECT * FROM tasks WHERE user_id = ?"
        params: list[Any] = [int(user_id)]

        if start_date:
            sql += " AND task_date >= ?"
            params.append(start_date)
        if end_date:
            sql += " AND task_date <= ?"
            params.append(end_date)
        if subject:
            sql += " AND subject = ?"
            params.append(subject)

        sql += " ORDER BY task_date DESC, id ASC LIMIT ?"
        params.append(int(limit))

        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def _transition(self, task_id: int, target: TaskStatus, **fields: Any) -> bool:
        """
        Atomically move a task into target, but only from a status the transition
        table allows. Returns True if the row changed.
        """
        sources = _sources_for(target)
        assignments = ["status = ?"] + [f"{name} = ?" for name in fields]
        placeholders = ",".join("?" for _ in sources)
        cur = self._conn.execute(
            f"""
            UPDATE tasks
            SET {', '.join(assignments)}
            WHERE id = ?
              AND status IN ({placeholders})
            """,
            (target.value, *fields.values(), int(task_id), *sources),
        )
        return cur.rowcount == 1

    def mark_started(self, task_id: int, *, now_ts: float) -> bool:
        return self._transition(task_id, TaskStatus.IN_PROGRESS, started_at=float(now_ts))

    def mark_completed(
        self,
        task_id: int,
        *,
        status: TaskStatus,
        actual_minutes: int,
        now_ts: float,
    ) -> bool:
        if not status.is_completed:
            raise ValueError(f"not a completion status: {status}")
        return self._transition(
            task_id,
            status,
            completed_at=float(now_ts),
            actual_minutes=int(actual_minutes),
        )

    def mark_skipped(self, task_id: int) -> bool:
        return self._transition(task_id, TaskStatus.SKIPPED)

    def skip_open_tasks(self, user_id: int, task_date: str) -> int:
        sources = _sources_for(TaskStatus.SKIPPED)
        placeholders = ",".join("?" for _ in sources)
        cur = self._conn.execute(
            f"""
            UPDATE tasks
            SET status = ?
            WHERE user_id = ?
              AND task_date = ?
              AND status IN ({placeholders})
            """,
            (TaskStatus.SKIPPED.value, int(user_id), task_date, *sources),
        )
        return int(cur.rowcount)

    # ---- active sessions ----

    def get_active_session(self, user_id: int) -> ActiveSession | None:
        row = self._conn.execute(
            "SELECT * FROM active_sessions WHERE user_id = ?", (int(user_id),)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def insert_active_session(
        self,
        user_id: int,
        task_id: int,
        *,
        now_ts: float,
        replace: bool = False,
    ) -> None:
        """
        Insert-or-fail on the per-user primary key. replace=True overwrites an
        existing row and must only be used by a caller that means to.
        """
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        try:
            self._conn.execute(
                f"""
                {verb} INTO active_sessions(user_id, active_task_id, started_at, last_seen)
                VALUES (?, ?, ?, ?)
                """,
                (int(user_id), int(task_id), float(now_ts), float(now_ts)),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError("You already have an active task.") from e

    def delete_active_session(self, user_id: int) -> bool:
        """Idempotent; returns True if a row was removed."""
        cur = self._conn.execute("DELETE FROM active_sessions WHERE user_id = ?", (int(user_id),))
        return cur.rowcount > 0

    # ---- daily summaries ----

    def get_summary(self, user_id: int, summary_date: str) -> DailySummary | None:
        row = self._conn.execute(
            "SELECT * FROM daily_summaries WHERE user_id = ? AND summary_date = ?",
            (int(user_id), summary_date),
        ).fetchone()
        return self._row_to_summary(row) if row else None

    def has_summary(self, user_id: int, summary_date: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM daily_summaries WHERE user_id = ? AND summary_date = ?",
            (int(user_id), summary_date),
        ).fetchone()
        return row is not None

    def insert_summary(
        self,
        user_id: int,
        *,
        summary_date: str,
        maths_problems: int,
        physics_problems: int,
        chemistry_problems: int,
        topics_covered: str,
        notes: str,
        self_rating: int,
        tasks_completed: int,
        tasks_total: int,
        success_rate: int,
        total_study_hours: float,
        ended_at: float,
    ) -> int:
        try:
            cur = self._conn.execute(
                """
                INSERT INTO daily_summaries(
                    user_id, summary_date,
                    maths_problems, physics_problems, chemistry_problems,
                    topics_covered, total_study_hours, notes, self_rating,
                    tasks_completed, tasks_total, success_rate, ended_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(user_id),
                    summary_date,
                    int(maths_problems),
                    int(physics_problems),
                    int(chemistry_problems),
                    topics_covered,
                    float(total_study_hours),
                    notes,
                    int(self_rating),
                    int(tasks_completed),
                    int(tasks_total),
                    int(success_rate),
                    float(ended_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError("You have already ended your day today.") from e
        if cur.lastrowid is None:
            raise RuntimeError("SQLite did not return lastrowid for daily_summaries insert")
        return int(cur.lastrowid)

    def list_recent_summaries(self, user_id: int, limit: int = 7) -> list[DailySummary]:
        rows = self._conn.execute(
            """
            SELECT *
            FROM daily_summaries
            WHERE user_id = ?
            ORDER BY summary_date DESC
                LIMIT ?
            """,
            (int(user_id), int(limit)),
        ).fetchall()
        return [self._row_to_summary(r) for r in rows]
