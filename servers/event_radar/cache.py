"""
Bounded in-memory cache with per-entry TTL.

Size is estimated from each value's serialized JSON length. When an insert
would exceed the byte budget, entries are evicted soonest-to-expire first
until just enough space is free. A background task sweeps expired entries
and logs stats; reads also check expiry themselves.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog
from pydantic_core import PydanticSerializationError, to_json

from .errors import CacheError
from .models import CacheStats


logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_SWEEP_INTERVAL_SECONDS = 60
DEFAULT_STATS_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A stored value with its lifetime and accounted size."""

    data: T
    inserted_at: float
    expires_at: float
    size_bytes: int


def estimate_size(value: Any) -> int:
    """Serialized JSON byte length of a value (pydantic models included)."""
    try:
        return len(to_json(value))
    except PydanticSerializationError as e:
        raise CacheError(f"Value is not serializable: {e}") from e


class CacheStore(Generic[T]):
    """TTL and size bounded key/value store.

    Mutations (set, delete, clear, sweeps, eviction) hold one lock that
    guards both the entry map and the byte counter. Lookups read the map
    without taking it.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty cache.

        Args:
            default_ttl: Seconds an entry lives when set() gets no ttl
            max_bytes: Hard cap on the sum of entry sizes
            clock: Monotonic time source in seconds
        """
        self.default_ttl = default_ttl
        self.max_bytes = max_bytes
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._bytes_used = 0
        self._lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._task: Optional[asyncio.Task] = None

    def get(self, key: str) -> Optional[T]:
        """Return the value for key, or None if missing or expired."""
        entry = self._entries.get(key)

        if entry is None:
            self._count(hit=False)
            return None

        if self._clock() >= entry.expires_at:
            self._remove_if_same(key, entry)
            self._count(hit=False)
            return None

        self._count(hit=True)
        return entry.data

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store a value, evicting soonest-to-expire entries if over budget.

        Raises:
            CacheError: If the value cannot be serialized or is larger than
                the whole budget
        """
        ttl = self.default_ttl if ttl is None else ttl
        size = estimate_size(value)

        if size > self.max_bytes:
            raise CacheError(f"Entry of {size} bytes exceeds cache budget of {self.max_bytes}")

        now = self._clock()
        entry = CacheEntry(data=value, inserted_at=now, expires_at=now + ttl, size_bytes=size)

        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._bytes_used -= previous.size_bytes

            overflow = self._bytes_used + size - self.max_bytes
            if overflow > 0:
                self._evict(overflow)

            self._entries[key] = entry
            self._bytes_used += size

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it was present."""
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._bytes_used -= entry.size_bytes
            return True

    def clear(self) -> None:
        """Remove every entry. Hit/miss counters are kept."""
        with self._lock:
            self._entries.clear()
            self._bytes_used = 0

    def sweep_expired(self) -> int:
        """Remove all expired entries. Returns how many were removed."""
        now = self._clock()
        freed = 0
        removed = 0

        with self._lock:
            for key, entry in list(self._entries.items()):
                if now >= entry.expires_at:
                    del self._entries[key]
                    self._bytes_used -= entry.size_bytes
                    freed += entry.size_bytes
                    removed += 1

        if removed:
            logger.info("cache_swept", removed=removed, freed_kb=round(freed / 1024, 2))
        return removed

    def stats(self) -> CacheStats:
        """Snapshot of counters. Reading it does not change them."""
        with self._counter_lock:
            hits, misses = self._hits, self._misses

        total = hits + misses
        return CacheStats(
            entries=len(self._entries),
            bytes_used=self._bytes_used,
            max_bytes=self.max_bytes,
            hits=hits,
            misses=misses,
            hit_rate=round(hits / total * 100, 2) if total else 0.0,
        )

    def entry(self, key: str) -> Optional[CacheEntry[T]]:
        """Raw entry lookup without expiry checks or counting."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    # Background maintenance

    def start(
        self,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        stats_interval: float = DEFAULT_STATS_INTERVAL_SECONDS,
    ) -> asyncio.Task:
        """Start the sweep/stats task on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(
                self._maintenance_loop(sweep_interval, stats_interval)
            )
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _maintenance_loop(self, sweep_interval: float, stats_interval: float) -> None:
        since_stats = 0.0
        while True:
            await asyncio.sleep(sweep_interval)
            self.sweep_expired()

            since_stats += sweep_interval
            if since_stats >= stats_interval:
                since_stats = 0.0
                self.log_stats()

    def log_stats(self) -> None:
        """Log the current stats snapshot."""
        snapshot = self.stats()
        logger.info(
            "cache_stats",
            entries=snapshot.entries,
            used_mb=round(snapshot.bytes_used / 1024 / 1024, 2),
            hit_rate=snapshot.hit_rate,
            hits=snapshot.hits,
            misses=snapshot.misses,
        )

    # Internals

    def _evict(self, required: int) -> None:
        """Evict by ascending expires_at until `required` bytes are freed. Lock held."""
        freed = 0
        evicted = 0

        for key, entry in sorted(self._entries.items(), key=lambda item: item[1].expires_at):
            if freed >= required:
                break
            del self._entries[key]
            self._bytes_used -= entry.size_bytes
            freed += entry.size_bytes
            evicted += 1

        logger.info("cache_evicted", evicted=evicted, freed_kb=round(freed / 1024, 2))

    def _remove_if_same(self, key: str, entry: CacheEntry[T]) -> None:
        with self._lock:
            if self._entries.get(key) is entry:
                del self._entries[key]
                self._bytes_used -= entry.size_bytes

    def _count(self, hit: bool) -> None:
        with self._counter_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1
