"""Rolling-window rate limiter for outbound inference calls."""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from typing import Awaitable, Callable, Optional

from ..models.run import RateLimitStatus

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Admit at most ``calls_per_minute`` calls in any trailing 60 seconds.

    Admissions are serialized by a lock, so concurrent callers queue up in
    arrival order and the window never holds more than the maximum.
    """

    def __init__(
        self,
        calls_per_minute: int = 20,
        safety_margin: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        log: Optional[Callable[[str], None]] = None,
    ):
        if calls_per_minute < 1:
            raise ValueError("calls_per_minute must be at least 1")
        self.max_calls = calls_per_minute
        self.safety_margin = safety_margin
        self.log = log
        self._clock = clock
        self._sleep = sleep
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def admit(self, log: Optional[Callable[[str], None]] = None) -> None:
        """Block until one more call fits in the window, then record it.

        Waits are reported to ``log`` when given, else to the limiter's own log.
        """
        log = log or self.log
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return

                wait_time = self._calls[0] + WINDOW_SECONDS - now + self.safety_margin
                if log:
                    log(f"Rate limit reached: waiting {math.ceil(wait_time)}s...")
                await self._sleep(wait_time)

    def status(self) -> RateLimitStatus:
        now = self._clock()
        cutoff = now - WINDOW_SECONDS
        used = sum(1 for t in self._calls if t > cutoff)
        return RateLimitStatus(used_this_minute=used, remaining=self.max_calls - used)
