"""
In-process sliding window rate limiter.

Counters live in memory only: they reset when the process restarts and are
not shared between workers.
"""

from __future__ import annotations

import time
from collections import OrderedDict, deque
from collections.abc import Callable

from fastapi import Request


class SlidingWindowRateLimiter:
    """
    Allow at most `max_hits` calls per `window_seconds` for each key.

    At most `max_keys` keys are tracked; the least recently used key is
    evicted when a new one arrives at capacity.
    """

    def __init__(
        self,
        max_hits: int,
        window_seconds: float,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_hits < 1:
            raise ValueError("max_hits must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_keys < 1:
            raise ValueError("max_keys must be at least 1")
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._hits: OrderedDict[str, deque[float]] = OrderedDict()

    def hit(self, key: str) -> bool:
        """Record a call for `key`. Returns False when the key is over its limit."""
        now = self._clock()
        cutoff = now - self.window_seconds

        history = self._hits.get(key)
        if history is None:
            if len(self._hits) >= self.max_keys:
                self._hits.popitem(last=False)
            history = deque()
            self._hits[key] = history
        else:
            self._hits.move_to_end(key)

        while history and history[0] <= cutoff:
            history.popleft()

        if len(history) >= self.max_hits:
            return False

        history.append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when `key` is None."""
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)

    def __len__(self) -> int:
        return len(self._hits)


def client_ip(request: Request) -> str:
    """First x-forwarded-for hop, then x-real-ip, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client is not None:
        return request.client.host
    return "local"
