from __future__ import annotations

import time
from typing import Callable, Optional


class SilenceWatchdog:
    """Resettable deadline that expires once if not refreshed in time.

    Holds a single deadline compared against a monotonic clock, so at most one
    expiry is ever pending. The owner polls it; `poll` reports the expiry exactly
    once and the watchdog stays inert until armed again.
    """

    def __init__(self, timeout_s: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout_s = timeout_s
        self._clock = clock
        self._deadline: Optional[float] = None
        self._interval = timeout_s

    @property
    def armed(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def arm(self, timeout_s: Optional[float] = None, now: Optional[float] = None) -> None:
        self._interval = self.timeout_s if timeout_s is None else timeout_s
        self._deadline = self._now(now) + self._interval

    def reset(self, now: Optional[float] = None) -> None:
        if self._deadline is None:
            return
        self._deadline = self._now(now) + self._interval

    def disarm(self) -> None:
        self._deadline = None

    def remaining(self, now: Optional[float] = None) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._now(now))

    def poll(self, now: Optional[float] = None) -> bool:
        """Return True exactly once, when the deadline has been reached."""
        if self._deadline is None or self._now(now) < self._deadline:
            return False
        self._deadline = None
        return True

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now
