# tests/test_store.py

from __future__ import annotations

from pathlib import Path

import pytest

from study_tracker.core.errors import ConflictError
from study_tracker.tracker.models import NewTask, Subject, TaskStatus
from study_tracker.tracker.store import TrackerStore


def _user(store: TrackerStore, username: str = "alice") -> int:
    with store.transaction() as tx:
        return tx.insert_user(username=username, name=username.title(), now_ts=1.0)


def _task(store: TrackerStore, user_id: int, name: str = "Limits", day: str = "2026-10-14") -> int:
    with store.transaction() as tx:
        return tx.insert_task(
            user_id,
            NewTask(task_name=name, subject=Subject.MATHS, estimated_minutes=30),
            task_date=day,
            now_ts=2.0,
        )


def _summary(tx, user_id: int, day: str, completed: int = 1) -> int:
    return tx.insert_summary(
        user_id,
        summary_date=day,
        maths_problems=0,
        physics_problems=0,
        chemistry_problems=0,
        topics_covered="",
        notes="",
        self_rating=3,
        tasks_completed=completed,
        tasks_total=completed,
        success_rate=100,
        total_study_hours=0.5,
        ended_at=3.0,
    )


def test_schema_is_idempotent(tmp_path: Path) -> None:
    db = tmp_path / "study.sqlite3"
    store = TrackerStore(db)
    uid = _user(store)
    _task(store, uid)

    reopened = TrackerStore(db)
    with reopened.snapshot() as s:
        assert s.count_users() == 1
        assert len(s.list_user_tasks(uid)) == 1


def test_duplicate_username_is_conflict(store: TrackerStore) -> None:
    _user(store, "alice")
    with pytest.raises(ConflictError):
        _user(store, "alice")


def test_transaction_rolls_back_on_error(store: TrackerStore) -> None:
    uid = _user(store)
    with pytest.raises(RuntimeError):
        with store.transaction() as tx:
            tx.insert_task(
                uid,
                NewTask(task_name="a", subject=Subject.OTHER, estimated_minutes=10),
                task_date="2026-10-14",
                now_ts=1.0,
            )
            raise RuntimeError("boom")

    with store.snapshot() as s:
        assert s.list_user_tasks(uid) == []


def test_active_session_insert_or_fail(store: TrackerStore) -> None:
    uid = _user(store)
    t1 = _task(store, uid, "a")
    t2 = _task(store, uid, "b")

    with store.transaction() as tx:
        tx.insert_active_session(uid, t1, now_ts=10.0)

    with pytest.raises(ConflictError):
        with store.transaction() as tx:
            tx.insert_active_session(uid, t2, now_ts=11.0)

    with store.snapshot() as s:
        active = s.get_active_session(uid)
    assert active is not None and active.active_task_id == t1

    with store.transaction() as tx:
        tx.insert_active_session(uid, t2, now_ts=12.0, replace=True)
    with store.snapshot() as s:
        active = s.get_active_session(uid)
    assert active is not None and active.active_task_id == t2


def test_delete_active_session_is_idempotent(store: TrackerStore) -> None:
    uid = _user(store)
    t1 = _task(store, uid)
    with store.transaction() as tx:
        tx.insert_active_session(uid, t1, now_ts=1.0)
        assert tx.delete_active_session(uid) is True
        assert tx.delete_active_session(uid) is False


def test_summary_is_unique_per_user_and_day(store: TrackerStore) -> None:
    uid = _user(store)
    with store.transaction() as tx:
        _summary(tx, uid, "2026-10-14")

    with pytest.raises(ConflictError):
        with store.transaction() as tx:
            _summary(tx, uid, "2026-10-14")

    with store.transaction() as tx:
        _summary(tx, uid, "2026-10-15")

    with store.snapshot() as s:
        assert [x.summary_date for x in s.list_recent_summaries(uid)] == ["2026-10-15", "2026-10-14"]


def test_transitions_follow_the_table(store: TrackerStore) -> None:
    uid = _user(store)
    tid = _task(store, uid)

    with store.transaction() as tx:
        # pending cannot be completed directly
        assert not tx.mark_completed(
            tid, status=TaskStatus.COMPLETED_ONTIME, actual_minutes=1, now_ts=5.0
        )
        assert tx.mark_started(tid, now_ts=5.0)
        assert not tx.mark_started(tid, now_ts=6.0)
        assert tx.mark_completed(tid, status=TaskStatus.COMPLETED_DELAYED, actual_minutes=40, now_ts=7.0)
        # terminal: nothing moves it any more
        assert not tx.mark_skipped(tid)
        assert not tx.mark_started(tid, now_ts=8.0)

    with store.snapshot() as s:
        task = s.get_task(tid)
    assert task is not None
    assert task.status == TaskStatus.COMPLETED_DELAYED
    assert task.actual_minutes == 40
    assert task.started_at == 5.0
    assert task.completed_at == 7.0


def test_skip_open_tasks_only_touches_open_tasks_of_that_day(store: TrackerStore) -> None:
    uid = _user(store)
    pending = _task(store, uid, "p")
    running = _task(store, uid, "r")
    done = _task(store, uid, "d")
    other_day = _task(store, uid, "o", day="2026-10-13")

    with store.transaction() as tx:
        tx.mark_started(running, now_ts=1.0)
        tx.mark_started(done, now_ts=1.0)
        tx.mark_completed(done, status=TaskStatus.COMPLETED_ONTIME, actual_minutes=5, now_ts=2.0)
        assert tx.skip_open_tasks(uid, "2026-10-14") == 2

    with store.snapshot() as s:
        status = {t.id: t.status for t in s.list_user_tasks(uid)}
    assert status[pending] == TaskStatus.SKIPPED
    assert status[running] == TaskStatus.SKIPPED
    assert status[done] == TaskStatus.COMPLETED_ONTIME
    assert status[other_day] == TaskStatus.PENDING


def test_history_orders_newest_day_first_then_insertion(store: TrackerStore) -> None:
    uid = _user(store)
    a = _task(store, uid, "a", day="2026-10-12")
    b = _task(store, uid, "b", day="2026-10-14")
    c = _task(store, uid, "c", day="2026-10-13")
    d = _task(store, uid, "d", day="2026-10-14")

    with store.snapshot() as s:
        assert [t.id for t in s.list_history(uid)] == [b, d, c, a]
        assert [t.id for t in s.list_history(uid, start_date="2026-10-13")] == [b, d, c]
        assert [t.id for t in s.list_history(uid, end_date="2026-10-13")] == [c, a]
        assert [t.id for t in s.list_history(uid, limit=2)] == [b, d]
        assert s.list_history(uid, subject="Physics") == []
