"""Interval-based pacing for calls to rate-limited upstream APIs.

The limiter guarantees a minimum spacing between consecutive
:meth:`IntervalRateLimiter.acquire` calls.  Clock and sleep are injectable
so tests can observe pacing without waiting on the wall clock::

    limiter = IntervalRateLimiter(1.0, clock=fake.now, sleep=fake.sleep)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class IntervalRateLimiter:
    """Allow at most one call every *interval* seconds.

    Parameters
    ----------
    interval:
        Minimum number of seconds between two permitted calls.  ``0``
        disables pacing.
    clock:
        Monotonic clock returning seconds.
    sleep:
        Blocking sleep used to wait out the remaining interval.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Block until the next call is permitted; return seconds waited."""
        with self._lock:
            waited = 0.0
            now = self._clock()
            if self._last is not None and self.interval > 0:
                remaining = self.interval - (now - self._last)
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
                    now = self._clock()
            self._last = now
            return waited

    def reset(self) -> None:
        """Forget the previous call so the next one goes through immediately."""
        with self._lock:
            self._last = None
