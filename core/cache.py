# core/cache.py
"""In-memory response cache and per-client rate limiting."""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class RateLimitExceeded(RuntimeError):
    pass


def cache_key(text: str, mode: str, **params: Any) -> str:
    content = json.dumps({"text": text.strip(), "mode": mode, **params}, sort_keys=True)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class ResponseCache(Generic[T]):
    """
    Values kept for ttl seconds.

    Once the cache grows past max_entries, expired entries are evicted on
    the next write.
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._store: Dict[str, Tuple[T, float]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._store[key] = (value, self._clock())
        if len(self._store) > self.max_entries:
            self.evict_expired()

    def evict_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, at) in self._store.items() if now - at >= self.ttl]
        for k in expired:
            del self._store[k]

    def __len__(self) -> int:
        return len(self._store)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request counter keyed by client id."""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def allow(self, client_id: str) -> bool:
        now = self._clock()
        current = self._windows.get(client_id)
        if current is None or now > current.reset_at:
            self._windows[client_id] = _Window(count=1, reset_at=now + self.window)
            return True
        if current.count >= self.max_requests:
            return False
        current.count += 1
        return True

    def check(self, client_id: str) -> None:
        if not self.allow(client_id):
            raise RateLimitExceeded("Rate limit exceeded. Please try again later.")
