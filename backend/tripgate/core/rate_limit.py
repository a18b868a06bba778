# backend/tripgate/core/rate_limit.py
"""
Per-member fixed-window request throttling.

Counters sit behind ``CounterStore`` so a multi-instance deployment can plug in
a shared store. ``InMemoryCounterStore`` is process-local: it is only correct
while every increment-and-check runs synchronously inside one event-loop turn
(no await between read and write), which is why it takes no lock. Horizontal
scaling across processes is NOT covered by it.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from tripgate.core.config import settings
from tripgate.core.errors import RateLimitError
from tripgate.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class WindowCounter:
    count: int
    window_start: float


class CounterStore(Protocol):
    def hit(self, key: str, window_seconds: float, now: float) -> WindowCounter:
        """Count one request for ``key`` in its current window and return the counter."""
        ...

    def reset(self) -> None:
        ...


class InMemoryCounterStore:
    def __init__(self) -> None:
        self._counters: dict[str, WindowCounter] = {}

    def _evict_expired(self, window_seconds: float, now: float) -> None:
        expired = [k for k, c in self._counters.items() if now - c.window_start >= window_seconds]
        for k in expired:
            del self._counters[k]

    def hit(self, key: str, window_seconds: float, now: float) -> WindowCounter:
        self._evict_expired(window_seconds, now)
        counter = self._counters.get(key)
        if counter is None:
            counter = WindowCounter(count=0, window_start=now)
            self._counters[key] = counter
        counter.count += 1
        return counter

    def reset(self) -> None:
        self._counters.clear()

    def __len__(self) -> int:
        return len(self._counters)


class RateLimiter:
    def __init__(
        self,
        store: CounterStore,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    @staticmethod
    def key_for(trip_id: str, member_id: str) -> str:
        return f"{trip_id}:{member_id}"

    def check(self, trip_id: str, member_id: str) -> None:
        """Count the request; raise RateLimitError once the window's budget is spent."""
        now = self._clock()
        counter = self.store.hit(self.key_for(trip_id, member_id), self.window_seconds, now)
        if counter.count <= self.max_requests:
            return

        remaining = counter.window_start + self.window_seconds - now
        retry_after = max(1, math.ceil(remaining))
        logger.warning(
            "rate_limited",
            trip_id=trip_id,
            member_id=member_id,
            count=counter.count,
            retry_after=retry_after,
        )
        raise RateLimitError(retry_after=retry_after)


rate_limiter = RateLimiter(
    InMemoryCounterStore(),
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
