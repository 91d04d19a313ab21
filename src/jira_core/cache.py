"""In-process TTL cache for Jira API responses.

The store is a plain object created once by the server entry point and passed
to every component that needs it:
- JiraClient reads through get_or_set() and writes nothing else
- CacheInvalidator deletes keys after successful writes
- the cache_clear / cache_stats tools inspect it

Cache keys are built with generate_cache_key() and have the form
``<namespace>:<operation>:<canonical params>``. Invalidation matches
substrings of these keys, so the canonical params stay human readable.
"""
import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger("jira-core.cache")

T = TypeVar("T")

_MISSING = object()


class _Population:
    """A running producer call; stale once its key is deleted."""

    __slots__ = ("stale",)

    def __init__(self) -> None:
        self.stale = False


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the monotonic time after which it is stale."""

    value: T
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def _prune(value: Any) -> Any:
    """Drop None values recursively so optional params key like omitted ones."""
    if isinstance(value, dict):
        return {str(k): _prune(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_prune(item) for item in value]
    return value


def canonicalize_params(params: Optional[dict]) -> str:
    """Serialize params deterministically, independent of key insertion order."""
    return json.dumps(
        _prune(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def generate_cache_key(namespace: str, operation: str, params: Optional[dict] = None) -> str:
    """Build the cache key for a request.

    Examples:
        >>> generate_cache_key("jira", "issue", {"issueIdOrKey": "PROJ-1"})
        'jira:issue:{"issueIdOrKey":"PROJ-1"}'
        >>> generate_cache_key("jira", "serverInfo")
        'jira:serverInfo'
    """
    base_key = f"{namespace}:{operation}"
    pruned = _prune(params or {})
    if not pruned:
        return base_key
    return f"{base_key}:{canonicalize_params(pruned)}"


class CacheStore:
    """Key/value store with per-entry expiration.

    Entries are only evicted lazily (on access, purge_expired() or when
    max_items is exceeded); there is no background timer.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_items: Optional[int] = 1000,
        single_flight: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._in_flight: dict[str, asyncio.Future] = {}
        self._populations: dict[str, set[_Population]] = {}
        self._default_ttl = default_ttl
        self._max_items = max_items
        self._single_flight = single_flight
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "evictions": 0}

        logger.info(
            f"Cache store initialized (default_ttl={default_ttl}s, max_items={max_items}, "
            f"single_flight={single_flight})"
        )

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return default

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._stats["misses"] += 1
            logger.debug(f"Cache expired: {key}")
            return default

        self._stats["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key, replacing any existing entry."""
        ttl = self._default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        self._entries.move_to_end(key)
        self._stats["sets"] += 1

        if self._max_items and len(self._entries) > self._max_items:
            evicted, _ = self._entries.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug(f"Cache full, evicted oldest entry: {evicted}")

    def delete(self, key: str) -> bool:
        """Remove key and detach any fetch in progress for it.

        Returns False if no value was stored.
        """
        self._detach(key)
        if self._entries.pop(key, None) is None:
            return False
        self._stats["deletes"] += 1
        return True

    def _detach(self, key: str) -> None:
        for population in self._populations.pop(key, ()):
            population.stale = True
        self._in_flight.pop(key, None)

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self, include_pending: bool = False) -> list[str]:
        """All stored keys, including entries that expired but were not yet evicted.

        With include_pending, keys whose producer is still running are
        listed too.
        """
        keys = list(self._entries.keys())
        if include_pending:
            keys.extend(key for key in self._populations if key not in self._entries)
        return keys

    def ttl(self, key: str) -> float:
        """Remaining lifetime of key in seconds (0 if absent or expired)."""
        entry = self._entries.get(key)
        if entry is None:
            return 0
        return max(0.0, entry.expires_at - self._clock())

    def purge_expired(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def flush(self) -> None:
        """Remove all entries and reset statistics."""
        for key in list(self._populations):
            self._detach(key)
        self._in_flight.clear()
        self._entries.clear()
        for name in self._stats:
            self._stats[name] = 0
        logger.info("Cache flushed")

    def stats(self) -> dict:
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "keys": len(self._entries),
            "hit_rate": self._stats["hits"] / lookups if lookups else 0.0,
        }

    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
    ) -> T:
        """Return the cached value for key, calling producer() on a miss.

        The producer result is stored with the given TTL. If the producer
        raises, the error propagates and nothing is cached. If key is
        deleted while the producer runs, the result is returned to its
        callers but not stored.

        With single_flight enabled, concurrent misses on the same key share
        one producer call instead of each hitting the remote service. A
        caller sharing a call whose owner was cancelled fetches again itself.
        """
        while True:
            value = self.get(key, _MISSING)
            if value is not _MISSING:
                return value

            if not self._single_flight:
                return await self._populate(key, producer, ttl)

            pending = self._in_flight.get(key)
            if pending is None:
                return await self._lead(key, producer, ttl)

            logger.debug(f"Awaiting in-flight fetch: {key}")
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                logger.debug(f"In-flight fetch was cancelled, retrying: {key}")

    async def _lead(self, key: str, producer: Callable[[], Awaitable[T]], ttl: Optional[float]) -> T:
        future = asyncio.get_running_loop().create_future()
        # Mark the exception retrieved even if no other caller was waiting
        future.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._in_flight[key] = future
        try:
            value = await self._populate(key, producer, ttl)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(value)
            return value
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    async def _populate(self, key: str, producer: Callable[[], Awaitable[T]], ttl: Optional[float]) -> T:
        logger.debug(f"Cache miss, calling producer: {key}")
        population = _Population()
        self._populations.setdefault(key, set()).add(population)
        try:
            value = await producer()
        finally:
            running = self._populations.get(key)
            if running is not None:
                running.discard(population)
                if not running:
                    del self._populations[key]

        if population.stale:
            logger.debug(f"Key invalidated while fetching, result not cached: {key}")
        else:
            self.set(key, value, ttl)
        return value
