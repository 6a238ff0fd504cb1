"""Fixed-window, in-memory rate limiter keyed by client address.

Each key gets a window that opens with its first request and lasts
``duration`` seconds. Every request inside the window consumes one point;
once more than ``points`` have been consumed the key is rejected until the
window ends. Counters live in process memory and are lost on restart.

Example:
    Guarding a request::

        limiter = RateLimiter(points=10, duration=60)
        if not await limiter.admit(request.client.host):
            return too_many_requests(limiter.retry_after(request.client.host))
"""

import asyncio
import math
import time
from typing import Callable, Dict, Tuple


class RateLimiter:
    """Per-key fixed-window counter protected by an :class:`asyncio.Lock`.

    Attributes:
        points: Requests admitted per window.
        duration: Window length, in seconds.
    """

    def __init__(
        self,
        points: int = 10,
        duration: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if points < 1:
            raise ValueError("points must be at least 1")
        if duration <= 0:
            raise ValueError("duration must be positive")
        self.points = int(points)
        self.duration = float(duration)
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = asyncio.Lock()
        self._next_prune = clock() + self.duration

    async def admit(self, key: str) -> bool:
        """Consume one point for ``key`` and tell whether the request may proceed."""
        async with self._lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.duration:
                start, count = now, 0
            count += 1
            self._windows[key] = (start, count)
            return count <= self.points

    def retry_after(self, key: str) -> int:
        """Whole seconds until the current window of ``key`` closes."""
        entry = self._windows.get(key)
        if entry is None:
            return 0
        remaining = entry[0] + self.duration - self._clock()
        return max(0, math.ceil(remaining))

    def _prune(self, now: float) -> None:
        """Drop windows that have already expired."""
        expired = [key for key, (start, _) in self._windows.items() if now - start >= self.duration]
        for key in expired:
            del self._windows[key]
        self._next_prune = now + self.duration
