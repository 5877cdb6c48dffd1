# src/study_tracker/core/clock.py

from __future__ import annotations

import time
from datetime import date, datetime
from zoneinfo import ZoneInfo


class SystemClock:
    """
    Wall clock used in production.

    now_ts() is epoch seconds; today() is the calendar day in the configured zone.
    """

    def __init__(self, tz_name: str = "UTC") -> None:
        self._tz = ZoneInfo(tz_name)

    def now_ts(self) -> float:
        return time.time()

    def today(self) -> date:
        return datetime.fromtimestamp(self.now_ts(), tz=self._tz).date()
