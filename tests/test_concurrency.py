# tests/test_concurrency.py

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from study_tracker.api.dispatch import Request
from study_tracker.api.routes import dispatch
from study_tracker.tracker.lifecycle import batch_add


def _race(state, requests: list[Request]) -> list[int]:
    """Fire all requests at once, one thread each; return the status codes."""
    barrier = threading.Barrier(len(requests))

    def call(req: Request) -> int:
        barrier.wait()
        return dispatch(state, req).status

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(call, requests))


def test_concurrent_starts_leave_one_active_task(state, make_user) -> None:
    alice = make_user("alice")
    batch_add(state, alice.id, [{"task_name": f"t{i}", "estimated_minutes": 30} for i in range(6)])
    with state.store.snapshot() as s:
        tasks = s.list_tasks(alice.id, "2026-10-14")

    statuses = _race(state, [Request("POST", f"/tasks/{t.id}/start", user_id=alice.id) for t in tasks])

    assert sorted(statuses) == [200, 409, 409, 409, 409, 409]
    with state.store.snapshot() as s:
        running = [t for t in s.list_tasks(alice.id, "2026-10-14") if t.status == "in_progress"]
        session = s.get_active_session(alice.id)
    assert len(running) == 1
    assert session is not None and session.active_task_id == running[0].id


def test_concurrent_end_days_write_one_summary(state, make_user) -> None:
    alice = make_user("alice")
    batch_add(state, alice.id, [{"task_name": "t", "estimated_minutes": 30}])

    statuses = _race(
        state,
        [Request("POST", "/summary/end-day", user_id=alice.id, payload={"self_rating": 3}) for _ in range(8)],
    )

    assert statuses.count(200) == 1
    assert statuses.count(409) == 7
    with state.store.snapshot() as s:
        assert len(s.list_recent_summaries(alice.id, 10)) == 1


def test_different_users_do_not_block_each_other_out(state, make_user) -> None:
    users = [make_user(f"user{i}") for i in range(4)]
    for u in users:
        batch_add(state, u.id, [{"task_name": "t", "estimated_minutes": 30}])
    with state.store.snapshot() as s:
        task_ids = [s.list_tasks(u.id, "2026-10-14")[0].id for u in users]

    statuses = _race(
        state,
        [Request("POST", f"/tasks/{tid}/start", user_id=u.id) for u, tid in zip(users, task_ids)],
    )

    assert statuses == [200, 200, 200, 200]
