"""
Route cache.

Caches computed routes keyed by the ordered waypoint coordinates, with TTL
expiry, a bounded entry count (oldest-inserted evicted first) and
single-flight de-duplication of concurrent computations.

The cache is advisory: storage failures are logged and treated as a miss.
"""

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import CacheEntry, Coordinate, Route


class CacheStorage(Protocol):
    """Storage backend for cache entries, kept in insertion order."""

    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    async def put(self, entry: CacheEntry) -> None:
        """Insert or replace; a replaced key becomes the newest entry."""
        ...

    async def delete(self, key: str) -> None:
        ...

    async def count(self) -> int:
        ...

    async def oldest_keys(self, limit: int) -> List[str]:
        ...


class InMemoryCacheStorage:
    """Process-local storage backed by an insertion-ordered dict."""

    def __init__(self):
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def put(self, entry: CacheEntry) -> None:
        self._entries.pop(entry.key, None)
        self._entries[entry.key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def count(self) -> int:
        return len(self._entries)

    async def oldest_keys(self, limit: int) -> List[str]:
        keys = []
        for key in self._entries:
            if len(keys) >= limit:
                break
            keys.append(key)
        return keys


class RedisCacheStorage:
    """
    Shared storage in Redis.

    Entries are JSON strings under `<prefix><key>`; a sorted set scored by
    insertion time keeps the eviction order.
    """

    def __init__(self, redis_client, prefix: str = "synq:route_cache:"):
        """
        Args:
            redis_client: A redis.asyncio.Redis instance
            prefix: Namespace for all keys written by this cache
        """
        self.redis = redis_client
        self.prefix = prefix
        self.index_key = f"{prefix}__index__"

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self.redis.get(self.prefix + key)
        if raw is None:
            return None
        return CacheEntry.from_dict(json.loads(raw))

    async def put(self, entry: CacheEntry) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(self.prefix + entry.key, json.dumps(entry.to_dict()))
            pipe.zadd(self.index_key, {entry.key: entry.created_at})
            await pipe.execute()

    async def delete(self, key: str) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(self.prefix + key)
            pipe.zrem(self.index_key, key)
            await pipe.execute()

    async def count(self) -> int:
        return await self.redis.zcard(self.index_key)

    async def oldest_keys(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        keys = await self.redis.zrange(self.index_key, 0, limit - 1)
        return [key.decode() if isinstance(key, bytes) else key for key in keys]


class RouteCache:
    """TTL and capacity bounded route cache with single-flight computation."""

    KEY_PREFIX = "route_"

    def __init__(
        self,
        storage: Optional[CacheStorage] = None,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        precision: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            storage: Backend (defaults to a fresh in-memory store)
            ttl_seconds: Entry lifetime (defaults to settings)
            max_entries: Capacity (defaults to settings)
            precision: Decimal places kept when hashing coordinates
            clock: Returns the current time in seconds
        """
        self.storage = storage if storage is not None else InMemoryCacheStorage()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.ROUTE_CACHE_TTL_SECONDS
        self.max_entries = max_entries if max_entries is not None else settings.ROUTE_CACHE_MAX_ENTRIES
        self.precision = precision if precision is not None else settings.ROUTE_CACHE_PRECISION
        self.clock = clock

        self._in_flight: Dict[str, asyncio.Task] = {}
        self._waiters: Dict[str, int] = {}

    def make_key(self, coordinates: Sequence[Coordinate]) -> str:
        """Deterministic key for an ordered coordinate list."""
        normalized = "|".join(
            f"{self._round(point.lat):.{self.precision}f},"
            f"{self._round(point.lng):.{self.precision}f}"
            for point in coordinates
        )
        return self.KEY_PREFIX + hashlib.sha256(normalized.encode()).hexdigest()

    def _round(self, value: float) -> float:
        # + 0.0 folds -0.0 into 0.0 so noise around zero shares a key
        return round(value, self.precision) + 0.0

    async def get(self, key: str) -> Optional[Route]:
        """Return the cached route, or None on miss, expiry or storage failure."""
        try:
            entry = await self.storage.get(key)
            if entry is None:
                return None
            if entry.is_expired(self.clock()):
                logger.debug(f"Route cache entry expired: {key}")
                await self.storage.delete(key)
                return None
            logger.debug(f"Route cache hit: {key}")
            return entry.route
        except Exception as e:
            logger.warning(f"Route cache read error for {key}: {e}")
            return None

    async def set(self, key: str, route: Route) -> None:
        """Store a route with a fresh TTL, then enforce expiry and capacity."""
        now = self.clock()
        entry = CacheEntry(key=key, route=route, created_at=now, expires_at=now + self.ttl_seconds)
        try:
            await self.storage.put(entry)
            await self._purge_expired(now)
            await self._enforce_capacity()
        except Exception as e:
            logger.warning(f"Route cache write error for {key}: {e}")

    async def _purge_expired(self, now: float) -> None:
        # TTL is uniform, so insertion order is also expiry order
        total = await self.storage.count()
        for key in await self.storage.oldest_keys(total):
            entry = await self.storage.get(key)
            if entry is not None and not entry.is_expired(now):
                break
            await self.storage.delete(key)

    async def _enforce_capacity(self) -> None:
        excess = await self.storage.count() - self.max_entries
        if excess <= 0:
            return
        evicted = await self.storage.oldest_keys(excess)
        for key in evicted:
            await self.storage.delete(key)
        logger.info(f"Route cache evicted {len(evicted)} oldest entries")

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Route]]) -> Route:
        """
        Return the cached route for key, computing and storing it on a miss.

        Concurrent callers for the same key share a single computation. A
        caller that is cancelled stops waiting; the shared computation is
        cancelled only once nobody is waiting for it.
        """
        # No await between lookup and registration, so the check-and-insert
        # is atomic on the event loop.
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, compute))
            self._in_flight[key] = task
            self._waiters[key] = 0
            task.add_done_callback(lambda _: self._forget(key, task))
        else:
            logger.debug(f"Joining in-flight route computation: {key}")

        self._waiters[key] += 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._in_flight.get(key) is task:
                self._waiters[key] -= 1
                if self._waiters[key] <= 0 and not task.done():
                    logger.info(f"Cancelling abandoned route computation: {key}")
                    # detach first so a new caller starts fresh instead of
                    # joining a task that is being cancelled
                    self._forget(key, task)
                    task.cancel()
            raise

    async def _load(self, key: str, compute: Callable[[], Awaitable[Route]]) -> Route:
        cached = await self.get(key)
        if cached is not None:
            return cached
        route = await compute()
        await self.set(key, route)
        return route

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
            self._waiters.pop(key, None)


def build_route_cache() -> RouteCache:
    """Create the route cache with the backend selected in settings."""
    backend = settings.ROUTE_CACHE_BACKEND.lower()

    if backend == "redis":
        import redis.asyncio as redis

        storage = RedisCacheStorage(redis.from_url(settings.REDIS_URL))
        logger.info("Route cache using Redis storage")
    else:
        if backend != "memory":
            logger.warning(f"Unknown route cache backend '{backend}', defaulting to memory")
        storage = InMemoryCacheStorage()

    return RouteCache(storage=storage)
