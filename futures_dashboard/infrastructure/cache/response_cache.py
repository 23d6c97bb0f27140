import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from pydantic import TypeAdapter

from futures_dashboard.infrastructure.cache.redis_service import RedisService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseCache:
    """
    In-process TTL cache for exchange responses, with an optional Redis level
    behind it.

    get_or_fetch runs at most one fetch per key at a time: concurrent callers
    for the same key wait on a per-key lock and then read the fresh entry.
    A failed fetch stores nothing.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        redis_service: Optional[RedisService] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.redis = redis_service
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def peek(self, key: str) -> Optional[Any]:
        """Fresh in-process value for key, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any, adapter: Optional[TypeAdapter] = None) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        if self.redis is not None and adapter is not None:
            self.redis.set(key, adapter.dump_python(value, mode="json"), self.ttl_seconds)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        if self.redis is not None:
            self.redis.delete(key)

    def _from_redis(self, key: str, adapter: Optional[TypeAdapter]) -> Optional[Any]:
        if self.redis is None or adapter is None:
            return None
        raw = self.redis.get(key)
        if raw is None:
            return None
        try:
            return adapter.validate_python(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable shared cache entry {key}: {e}")
            return None

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        adapter: Optional[TypeAdapter] = None,
        force: bool = False,
    ) -> T:
        if not force:
            cached = self.peek(key)
            if cached is not None:
                return cached

        async with self._lock_for(key):
            if not force:
                # Another caller may have filled it while we waited
                cached = self.peek(key)
                if cached is not None:
                    return cached
                shared = self._from_redis(key, adapter)
                if shared is not None:
                    self._entries[key] = (self._clock() + self.ttl_seconds, shared)
                    return shared

            logger.debug(f"Cache miss for {key}; fetching")
            value = await fetch()
            self.put(key, value, adapter)
            return value
