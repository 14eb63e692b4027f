"""
TTL result cache for snapshot and board outputs.

Keys are canonical strings that include the subject and every option that
changes the result. Expired entries are removed when they are looked up;
there is no background sweep, so memory is bounded by the number of distinct
keys in use. Process-local, no persistence.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Generic, TypeVar

from backend_holdermap.holdermap_logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class ResultCache(Generic[V]):
    """Key -> (value, expiry). Never returns a value at or past its expiry."""

    def __init__(self, ttl_sec: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._ttl = ttl_sec
        self._clock = clock
        self._store: dict[str, tuple[V, float]] = {}

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> V | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if expiry <= self._clock():
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        """Store value; always resets the expiry to now + ttl."""
        self._store[key] = (value, self._clock() + self._ttl)

    def clear(self) -> None:
        self._store.clear()

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[V]],
        *,
        force_refresh: bool = False,
    ) -> V:
        """
        Cached value for key, else compute and store it. force_refresh skips the
        lookup but still writes the fresh value back. Failures are not cached.
        """
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                logger.debug("cache_hit", key=key)
                return cached
        value = await compute()
        self.set(key, value)
        return value
