"""In-memory TTL cache for expensive upstream calls.

The cache memoizes coroutine results per key. Concurrent callers asking for
the same missing key share a single in-flight computation, so a burst of
identical feed requests results in one upstream call. Only successful
results are stored; failures propagate to every waiter and are retried on
the next request.

Expired entries are ignored at read time and replaced on the next write for
that key. :meth:`TTLCache.sweep` physically drops expired entries that are
never read again.
"""

import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 24 * 60 * 60


@dataclass(slots=True)
class CacheEntry:
    """A cached value with its insertion time (clock seconds)."""

    value: Any
    inserted_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class TTLCache:
    """Memoizing key/value store with time-based expiry and single-flight fills."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Default time-to-live of entries in seconds.
            clock: Monotonic time source, injectable for tests.
        """
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")

        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._pending: dict[Hashable, asyncio.Task] = {}
        self.hits = 0
        self.misses = 0
        self.logger = logger.bind(component="cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    async def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for key, computing it on a miss.

        Args:
            key: Hashable cache key.
            compute: Zero-argument coroutine function producing the value.
            ttl: Lifetime of a newly stored value (defaults to the cache TTL).

        Returns:
            The cached or freshly computed value.

        Raises:
            Whatever ``compute`` raises; failures are not cached.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            self.hits += 1
            self.logger.debug("Cache hit", key=key)
            return entry.value

        task = self._pending.get(key)
        if task is None:
            self.misses += 1
            self.logger.debug("Cache miss", key=key)
            task = asyncio.ensure_future(self._fill(key, compute, ttl or self.ttl))
            # Mark the exception as retrieved if every waiter went away
            task.add_done_callback(lambda t: t.cancelled() or t.exception())
            self._pending[key] = task

        # Shielded so a cancelled waiter does not cancel the fill for the others
        return await asyncio.shield(task)

    async def _fill(self, key: Hashable, compute: Callable[[], Awaitable[T]], ttl: float) -> T:
        try:
            value = await compute()
            self._entries[key] = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)
            return value
        finally:
            self._pending.pop(key, None)

    def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            self.logger.debug("Swept expired cache entries", removed=len(expired), remaining=len(self))
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep expired entries every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def clear(self) -> None:
        """Drop all stored entries (in-flight computations are unaffected)."""
        self._entries.clear()


def cached_operation(
    name: str | None = None,
    key: Callable[..., Any] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Cache an async back-end method in the back-end's :class:`TTLCache`.

    The cache key is ``(backend.name, operation, *arguments)``; arguments are
    bound against the method signature (defaults applied) so equivalent calls
    share an entry. Pass ``key`` to derive the argument part from
    unhashable arguments, e.g. ``key=lambda item: item.id``.

    Args:
        name: Operation name used in the key (defaults to the method name).
        key: Maps the bound arguments (without self) to a hashable value.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        operation = name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(self, *args: Any, **kwargs: Any) -> T:
            bound = signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            values = tuple(bound.arguments.values())[1:]

            parts = key(*values) if key is not None else values
            if not isinstance(parts, tuple):
                parts = (parts,)

            return await self.cache.get_or_compute(
                (self.name, operation, *parts),
                lambda: func(self, *args, **kwargs),
            )

        return wrapper

    return decorator
