# src/study_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .ports import Clock, TrackerRepo


@dataclass
class AppState:
    # Settings are kept on the state for easy access in other modules.
    settings: Any

    store: TrackerRepo
    clock: Clock
