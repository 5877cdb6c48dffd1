# src/study_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
Tests plug in a fixed clock; production wires SystemClock and TrackerStore.
"""

from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Protocol


class Clock(Protocol):
    """Single source of "now" and "today" for every lifecycle decision."""

    def now_ts(self) -> float: ...
    def today(self) -> date: ...


class TrackerRepo(Protocol):
    """
    Storage port.

    transaction() yields a write session holding the database write lock until exit
    (commit on success, rollback on any exception); snapshot() yields a read session.
    Both sessions expose the same row-level API (see tracker/store.py StoreSession).
    """

    def transaction(self) -> AbstractContextManager[Any]: ...
    def snapshot(self) -> AbstractContextManager[Any]: ...
    def close(self) -> None: ...
