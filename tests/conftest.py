# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from study_tracker.core.state import AppState
from study_tracker.tracker.models import User
from study_tracker.tracker.store import TrackerStore
from study_tracker.tracker.users import register_user

from .fakes import FixedClock

# A Wednesday, so "this week" started two days earlier.
START = datetime(2026, 10, 14, 9, 0, tzinfo=UTC)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="study-test",
        log_level="DEBUG",
        console_enabled=False,
        console_user=None,
        timezone="UTC",
        data_dir=tmp_path,
        db_path=tmp_path / "study.sqlite3",
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture()
def store(settings: SimpleNamespace) -> TrackerStore:
    return TrackerStore(settings.db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TrackerStore, clock: FixedClock) -> AppState:
    """
    AppState wired with a fixed clock.

    NOTE: the SQLite store is real; its transactional behavior is part of what we test.
    """
    return AppState(settings=settings, store=store, clock=clock)


@pytest.fixture()
def make_user(state: AppState) -> Callable[..., User]:
    def _make(username: str = "alice", name: str | None = None) -> User:
        return register_user(state, username=username, name=name or username.capitalize())

    return _make
