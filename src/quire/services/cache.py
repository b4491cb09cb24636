"""Tag-indexed cache with get-or-populate, pre-seeding and tag eviction."""

from __future__ import annotations

import asyncio
import heapq
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from quire.metrics import cache_evictions, cache_key_kind, cache_lookups

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 10_000


class CacheBackend(Protocol):
    """Protocol for cache backends.

    Contract:
    - get returns (hit, value); expired entries are misses
    - set replaces any previous entry for the key, tags included
    - remove_by_tag evicts every entry carrying the tag and returns the count
    """

    async def get(self, key: str) -> tuple[bool, Any]:
        ...

    async def set(self, key: str, value: Any, ttl: float, tags: Iterable[str]) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def remove_by_tag(self, tag: str) -> int:
        ...


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float
    tags: frozenset[str]


class MemoryCacheBackend:
    """In-process cache backend.

    Tags are kept in a secondary index (tag -> keys) maintained alongside the
    entries. A heap ordered by expiry lets every set sweep out the entries
    that have run out, so keys that are never read again do not linger. When
    the entry count goes over max_entries, the entries closest to expiry are
    dropped first. None of the methods await, so each one is atomic on the
    event loop.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, _CacheEntry] = {}
        self._tag_index: dict[str, set[str]] = {}
        # (expires_at, key); records for replaced or removed entries are skipped
        self._expiry_heap: list[tuple[float, str]] = []

    async def get(self, key: str) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if entry.expires_at <= self._clock():
            self._evict(key)
            return False, None
        return True, entry.value

    async def set(self, key: str, value: Any, ttl: float, tags: Iterable[str]) -> None:
        now = self._clock()
        self._evict(key)
        self._sweep(lambda expires_at: expires_at <= now)
        entry = _CacheEntry(value=value, expires_at=now + ttl, tags=frozenset(tags))
        self._entries[key] = entry
        heapq.heappush(self._expiry_heap, (entry.expires_at, key))
        for tag in entry.tags:
            self._tag_index.setdefault(tag, set()).add(key)
        if len(self._entries) > self._max_entries:
            dropped = self._sweep(lambda _: len(self._entries) > self._max_entries)
            logger.debug(f"Cache full, dropped {dropped} entries closest to expiry")

    async def remove(self, key: str) -> None:
        self._evict(key)

    async def remove_by_tag(self, tag: str) -> int:
        keys = self._tag_index.pop(tag, set())
        for key in keys:
            self._evict(key)
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, should_drop: Callable[[float], bool]) -> int:
        """Evict entries in expiry order while should_drop holds for the next one."""
        dropped = 0
        heap = self._expiry_heap
        while heap and should_drop(heap[0][0]):
            expires_at, key = heapq.heappop(heap)
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at == expires_at:
                self._evict(key)
                dropped += 1
        return dropped

    def _evict(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tag_index[tag]


@dataclass
class _Flight:
    """A population in progress for one key."""

    tags: frozenset[str]
    stale: bool = False
    task: asyncio.Task | None = field(default=None, repr=False)


class CacheCoordinator:
    """Get-or-populate, set and remove-by-tag on top of a cache backend.

    Concurrent misses for the same key share one population. A population
    whose key is written or whose tags are evicted while it runs still
    answers its callers but is not stored, so it can never overwrite a value
    seeded by a write.
    """

    def __init__(self, backend: CacheBackend, default_ttl: float = 60.0):
        self.backend = backend
        self.default_ttl = default_ttl
        self._flights: dict[str, _Flight] = {}

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T | None]],
        *,
        tags: Iterable[str] = (),
        ttl: float | None = None,
    ) -> T | None:
        """Return the cached value for key, computing it on a miss.

        A None result is handed back but not cached.
        """
        hit, value = await self.backend.get(key)
        kind = cache_key_kind(key)
        if hit:
            cache_lookups.labels(kind=kind, result="hit").inc()
            return value
        cache_lookups.labels(kind=kind, result="miss").inc()

        flight = self._flights.get(key)
        if flight is None:
            flight = _Flight(tags=frozenset(tags))
            flight.task = asyncio.ensure_future(
                self._populate(key, flight, factory, self.default_ttl if ttl is None else ttl)
            )
            self._flights[key] = flight
            flight.task.add_done_callback(lambda task: self._land(key, flight, task))
        else:
            logger.debug(f"Joining in-flight population for {key}")

        # Shielded so that one cancelled caller does not cancel the others
        return await asyncio.shield(flight.task)

    async def set(
        self, key: str, value: Any, *, tags: Iterable[str] = (), ttl: float | None = None
    ) -> None:
        """Pre-seed key with a freshly computed value."""
        self._mark_stale(key=key)
        await self.backend.set(key, value, self.default_ttl if ttl is None else ttl, tags)

    async def remove(self, key: str) -> None:
        """Evict a single key."""
        self._mark_stale(key=key)
        await self.backend.remove(key)

    async def remove_by_tag(self, *tags: str) -> int:
        """Evict every entry carrying any of the tags. Returns the count."""
        removed = 0
        for tag in dict.fromkeys(tags):
            self._mark_stale(tag=tag)
            count = await self.backend.remove_by_tag(tag)
            cache_evictions.labels(tag=tag).inc(count)
            removed += count
        logger.debug(f"Evicted {removed} cache entries for tags {list(tags)}")
        return removed

    async def _populate(
        self,
        key: str,
        flight: _Flight,
        factory: Callable[[], Awaitable[T | None]],
        ttl: float,
    ) -> T | None:
        value = await factory()
        if value is not None and not flight.stale:
            await self.backend.set(key, value, ttl, flight.tags)
        return value

    def _land(self, key: str, flight: _Flight, task: asyncio.Task) -> None:
        if self._flights.get(key) is flight:
            del self._flights[key]
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Cache population for {key} failed: {task.exception()!r}")

    def _mark_stale(self, *, key: str | None = None, tag: str | None = None) -> None:
        for flight_key, flight in self._flights.items():
            if flight_key == key or (tag is not None and tag in flight.tags):
                flight.stale = True
