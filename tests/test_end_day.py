# tests/test_end_day.py

from __future__ import annotations

import pytest

from study_tracker.core.errors import ConflictError, NotFoundError, ValidationError
from study_tracker.tracker.day import end_day, has_day_ended
from study_tracker.tracker.lifecycle import batch_add, complete_task, skip_task, start_task
from study_tracker.tracker.models import TaskStatus
from study_tracker.tracker.store import StoreSession


def _plan(state, user_id, n: int, minutes: int = 30):
    batch_add(state, user_id, [{"task_name": f"task {i}", "estimated_minutes": minutes} for i in range(n)])
    with state.store.snapshot() as s:
        return s.list_tasks(user_id, state.clock.today().isoformat())


def _finish(state, clock, user_id, task_id, minutes: int) -> None:
    start_task(state, user_id, task_id)
    clock.advance(minutes=minutes)
    complete_task(state, user_id, task_id)


def _set_streak(state, user_id, current: int, best: int) -> None:
    with state.store.transaction() as tx:
        tx.update_streak(user_id, current_streak=current, best_streak=best, last_active_date=None)


def test_two_ontime_one_skipped_gives_67_percent_and_first_streak(state, make_user, clock) -> None:
    alice = make_user("alice")
    a, b, c = _plan(state, alice.id, 3)
    _finish(state, clock, alice.id, a.id, 20)
    _finish(state, clock, alice.id, b.id, 25)
    skip_task(state, alice.id, c.id)

    result = end_day(state, alice.id, self_rating=4, maths_problems=12, topics_covered=" limits ")

    assert result.summary_date == "2026-10-14"
    assert result.tasks_completed == 2
    assert result.tasks_total == 3
    assert result.success_rate == 67
    assert result.total_study_hours == 0.8
    assert result.current_streak == 1
    assert result.best_streak == 1
    assert result.skipped_on_close == 0

    with state.store.snapshot() as s:
        summary = s.get_summary(alice.id, "2026-10-14")
        user = s.get_user(alice.id)
    assert summary.self_rating == 4
    assert summary.maths_problems == 12
    assert summary.physics_problems == 0
    assert summary.topics_covered == "limits"
    assert summary.success_rate == 67
    assert user.current_streak == 1
    assert user.last_active_date == "2026-10-14"
    assert has_day_ended(state, alice.id)


def test_second_end_day_is_conflict_and_keeps_one_row(state, make_user) -> None:
    alice = make_user("alice")
    end_day(state, alice.id, self_rating=3)
    with pytest.raises(ConflictError):
        end_day(state, alice.id, self_rating=5)

    with state.store.snapshot() as s:
        rows = s.list_recent_summaries(alice.id, 10)
    assert len(rows) == 1
    assert rows[0].self_rating == 3


def test_streak_extends_when_yesterday_had_completions(state, make_user, clock) -> None:
    alice = make_user("alice")
    (t,) = _plan(state, alice.id, 1)
    _finish(state, clock, alice.id, t.id, 10)
    end_day(state, alice.id, self_rating=3)
    _set_streak(state, alice.id, current=3, best=3)

    clock.advance(days=1)
    (t2,) = _plan(state, alice.id, 1)
    _finish(state, clock, alice.id, t2.id, 10)
    result = end_day(state, alice.id, self_rating=3)

    assert result.current_streak == 4
    assert result.best_streak == 4


def test_streak_restarts_after_a_gap(state, make_user, clock) -> None:
    alice = make_user("alice")
    _set_streak(state, alice.id, current=5, best=9)

    clock.advance(days=2)
    (t,) = _plan(state, alice.id, 1)
    _finish(state, clock, alice.id, t.id, 10)
    result = end_day(state, alice.id, self_rating=3)

    assert result.current_streak == 1
    assert result.best_streak == 9


def test_day_without_completions_resets_streak_and_keeps_best(state, make_user) -> None:
    alice = make_user("alice")
    _set_streak(state, alice.id, current=5, best=7)
    (t,) = _plan(state, alice.id, 1)
    skip_task(state, alice.id, t.id)

    result = end_day(state, alice.id, self_rating=1)

    assert result.tasks_completed == 0
    assert result.success_rate == 0
    assert result.current_streak == 0
    assert result.best_streak == 7


def test_empty_day_can_be_closed(state, make_user) -> None:
    alice = make_user("alice")
    result = end_day(state, alice.id, self_rating=2)
    assert result.tasks_total == 0
    assert result.success_rate == 0
    assert result.total_study_hours == 0


@pytest.mark.parametrize("rating", [0, 6, None, "abc", 2.5])
def test_invalid_rating_changes_nothing(state, make_user, clock, rating) -> None:
    alice = make_user("alice")
    a, b = _plan(state, alice.id, 2)
    start_task(state, alice.id, a.id)

    with pytest.raises(ValidationError):
        end_day(state, alice.id, self_rating=rating)

    with state.store.snapshot() as s:
        assert s.get_summary(alice.id, "2026-10-14") is None
        assert s.get_task(a.id).status == TaskStatus.IN_PROGRESS
        assert s.get_task(b.id).status == TaskStatus.PENDING
        assert s.get_active_session(alice.id) is not None
    assert not has_day_ended(state, alice.id)


def test_open_tasks_are_force_skipped_and_session_cleared(state, make_user, clock) -> None:
    alice = make_user("alice")
    a, b, c = _plan(state, alice.id, 3)
    _finish(state, clock, alice.id, a.id, 15)
    start_task(state, alice.id, b.id)

    result = end_day(state, alice.id, self_rating="5")

    assert result.skipped_on_close == 2
    assert result.tasks_completed == 1
    assert result.success_rate == 33
    with state.store.snapshot() as s:
        assert s.get_task(b.id).status == TaskStatus.SKIPPED
        assert s.get_task(c.id).status == TaskStatus.SKIPPED
        assert s.get_active_session(alice.id) is None


def test_negative_or_garbage_problem_counts_become_zero(state, make_user) -> None:
    alice = make_user("alice")
    end_day(state, alice.id, self_rating=3, maths_problems=-4, physics_problems="x", chemistry_problems="7")
    with state.store.snapshot() as s:
        summary = s.get_summary(alice.id, "2026-10-14")
    assert (summary.maths_problems, summary.physics_problems, summary.chemistry_problems) == (0, 0, 7)


def test_unknown_user_is_not_found(state) -> None:
    with pytest.raises(NotFoundError):
        end_day(state, 42, self_rating=3)


@pytest.mark.parametrize("failing_step", ["insert_summary", "update_streak"])
def test_failure_late_in_end_day_rolls_back_everything(
    state, make_user, clock, monkeypatch, failing_step
) -> None:
    alice = make_user("alice")
    a, b, c = _plan(state, alice.id, 3)
    _finish(state, clock, alice.id, a.id, 10)
    start_task(state, alice.id, b.id)

    def fail(self, *args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(StoreSession, failing_step, fail)
    with pytest.raises(RuntimeError):
        end_day(state, alice.id, self_rating=4)
    monkeypatch.undo()

    with state.store.snapshot() as s:
        assert s.get_task(a.id).status == TaskStatus.COMPLETED_ONTIME
        assert s.get_task(b.id).status == TaskStatus.IN_PROGRESS
        assert s.get_task(c.id).status == TaskStatus.PENDING
        session = s.get_active_session(alice.id)
        assert session is not None and session.active_task_id == b.id
        assert s.get_summary(alice.id, "2026-10-14") is None
        assert s.get_user(alice.id).current_streak == 0
    assert not has_day_ended(state, alice.id)

    # the day can still be closed once the fault is gone
    assert end_day(state, alice.id, self_rating=4).skipped_on_close == 2
