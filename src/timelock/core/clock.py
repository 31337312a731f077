"""
Clock sources for the timelock vault.

The vault never controls time; it reads one logical "now" per operation from
whatever clock it was constructed with.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall-clock time in whole Unix seconds."""

    def __init__(self, time_provider: Callable[[], float] | None = None):
        self._time_provider = time_provider or time.time

    def now(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return a numeric timestamp") from exc


class ManualClock:
    """
    Deterministic clock for tests, simulations and CLI replays.

    Time only moves forward; attempts to rewind raise ValueError so the
    non-decreasing guarantee the vault relies on cannot be broken.
    """

    def __init__(self, start: int = 0):
        if not isinstance(start, int) or start < 0:
            raise ValueError("Clock start must be a non-negative integer.")
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(
                f"Clock cannot move backwards ({timestamp} < {self._now})"
            )
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot advance clock by a negative duration.")
        self._now += seconds
        logger.debug("Manual clock advanced to %s", self._now)
        return self._now
