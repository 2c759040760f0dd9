"""
Process-wide cache store keyed by (endpoint, argument).

The store deduplicates concurrent fetches, tracks subscribers, evicts
unused entries after a retention window and notifies listeners on every
state change. It never fetches on its own: callers hand it a fetcher.
"""

import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from shared.errors import CacheMissError, InvalidStateError
from shared.logging import get_logger, set_endpoint_context
from shared.metrics import MetricsCollector
from .entry import CacheEntry, CacheKey, CacheStatus
from .tag_index import TagIndex


Listener = Callable[[CacheEntry], None]
Fetcher = Callable[[], Awaitable[Any]]


class SubscriptionHandle:
    """Keeps a cache entry alive while held. Disposing twice raises InvalidStateError."""

    def __init__(self, store: "CacheStore", key: CacheKey):
        self._store = store
        self.key = key
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            raise InvalidStateError(
                "Subscription handle already disposed",
                details={"endpoint": self.key.endpoint}
            )
        self._disposed = True
        self._store._release_subscriber(self.key)


@dataclass
class PatchRecord:
    """Pre-patch snapshot of an optimistically patched entry."""
    key: CacheKey
    snapshot: Any


class CacheStore:
    """Single source of truth for fetched server data."""

    def __init__(
        self,
        tag_index: TagIndex,
        *,
        retention_seconds: float = 0.0,
        keep_data_on_error: bool = False,
        strict: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.tag_index = tag_index
        self.retention_seconds = retention_seconds
        self.keep_data_on_error = keep_data_on_error
        self.strict = strict
        self.metrics = metrics
        self.logger = get_logger("console.cache_store")

        self.entries: Dict[CacheKey, CacheEntry] = {}

    # Lookup

    def get_or_create(self, key: CacheKey) -> CacheEntry:
        """Return the entry for ``key``, allocating an uninitialized one if needed."""
        entry = self.entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self.entries[key] = entry
            self._record_size()
        return entry

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return a registered entry; unknown keys are a CacheMissError."""
        entry = self.entries.get(key)
        if entry is None:
            self._cache_miss(key)
        return entry

    def keys_for_endpoint(self, endpoint: str) -> List[CacheKey]:
        return [key for key in self.entries if key.endpoint == endpoint]

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def _cache_miss(self, key: CacheKey) -> None:
        error = CacheMissError(key)
        if self.strict:
            raise error
        self.logger.error("Read of unregistered cache key", key=repr(key))

    # Subscribers and eviction

    def subscribe(self, key: CacheKey) -> SubscriptionHandle:
        """Register a subscriber for ``key``; the handle's dispose() releases it."""
        entry = self.get_or_create(key)
        entry.subscriber_count += 1
        self._cancel_eviction(entry)
        return SubscriptionHandle(self, key)

    def _release_subscriber(self, key: CacheKey) -> None:
        entry = self.entries.get(key)
        if entry is None:
            self._cache_miss(key)
            return

        entry.subscriber_count -= 1
        if entry.subscriber_count == 0:
            self._schedule_eviction(entry)

    def _schedule_eviction(self, entry: CacheEntry) -> None:
        self._cancel_eviction(entry)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._evict(entry.key)
            return
        entry.eviction_handle = loop.call_later(self.retention_seconds, self._evict, entry.key)

    def _cancel_eviction(self, entry: CacheEntry) -> None:
        if entry.eviction_handle is not None:
            entry.eviction_handle.cancel()
            entry.eviction_handle = None

    def _evict(self, key: CacheKey) -> None:
        entry = self.entries.get(key)
        if entry is None:
            return
        entry.eviction_handle = None
        # Resubscribed, or an optimistic mutation still points at it
        if entry.subscriber_count > 0 or entry.optimistic_holds > 0:
            return

        del self.entries[key]
        self.tag_index.unregister(key)
        entry.listeners.clear()

        self.logger.debug("Evicted cache entry", endpoint=key.endpoint, arg=repr(key.arg))
        if self.metrics:
            self.metrics.increment_counter("cache_evictions_total")
        self._record_size()

    # State transitions

    def update(
        self,
        key: CacheKey,
        status: CacheStatus,
        data: Any = None,
        error: Optional[Exception] = None,
    ) -> Optional[CacheEntry]:
        """Transition an entry. ``last_updated`` moves on success or error only."""
        entry = self.get(key)
        if entry is None:
            return None

        entry.status = status
        if status is CacheStatus.SUCCESS:
            entry.data = data
            entry.loaded = True
            entry.error = None
            entry.last_updated = time.time()
        elif status is CacheStatus.ERROR:
            entry.error = error
            if not self.keep_data_on_error:
                entry.data = None
                entry.loaded = False
            entry.last_updated = time.time()
        elif status is CacheStatus.UNINITIALIZED:
            entry.data = None
            entry.loaded = False
            entry.error = None

        self._notify(entry)
        return entry

    def invalidate(self, keys: Iterable[CacheKey]) -> Set[CacheKey]:
        """Mark entries stale, keeping their data. In-flight fetches are superseded."""
        marked: Set[CacheKey] = set()
        changed: List[CacheEntry] = []

        for key in keys:
            entry = self.entries.get(key)
            if entry is None:
                continue
            if entry.status not in (CacheStatus.SUCCESS, CacheStatus.LOADING):
                continue

            self._supersede(entry)
            entry.status = CacheStatus.STALE
            marked.add(key)
            changed.append(entry)

        for entry in changed:
            self._notify(entry)

        if marked:
            self.logger.info(
                "Invalidated cache entries",
                count=len(marked),
                endpoints=sorted({key.endpoint for key in marked})
            )
        return marked

    def _supersede(self, entry: CacheEntry) -> None:
        """Make any in-flight response for ``entry`` non-authoritative."""
        entry.generation += 1
        if entry.status is CacheStatus.LOADING:
            entry.status = CacheStatus.STALE

    # Fetching

    def fetch(self, key: CacheKey, fetcher: Fetcher) -> "asyncio.Future":
        """Start a fetch for ``key`` or join the one already in flight.

        The returned future resolves with the entry once the response is
        stored; it never raises for fetch failures.

        While an optimistic patch holds the entry no request is sent: the
        entry is marked stale and refetched once the last hold is released.
        """
        entry = self.get(key)
        if entry is None:
            done = asyncio.get_running_loop().create_future()
            done.set_result(None)
            return done

        if entry.optimistic_holds:
            if entry.status is not CacheStatus.STALE:
                entry.status = CacheStatus.STALE
                self._notify(entry)
            self.logger.debug("Deferred fetch for held entry", endpoint=key.endpoint)
            done = asyncio.get_running_loop().create_future()
            done.set_result(entry)
            return done

        if entry.status is CacheStatus.LOADING and entry.is_fetching:
            self.logger.debug("Joined in-flight fetch", endpoint=key.endpoint)
            if self.metrics:
                self.metrics.increment_counter("cache_dedup_total", endpoint=key.endpoint)
            return entry.in_flight

        entry.generation += 1
        entry.status = CacheStatus.LOADING
        task = asyncio.ensure_future(self._run_fetch(entry, entry.generation, fetcher))
        entry.in_flight = task

        self.logger.debug("Fetch started", endpoint=key.endpoint, arg=repr(key.arg))
        self._notify(entry)
        return task

    async def _run_fetch(self, entry: CacheEntry, generation: int, fetcher: Fetcher) -> CacheEntry:
        key = entry.key
        set_endpoint_context(key.endpoint)
        error: Optional[Exception] = None
        data: Any = None

        start = time.perf_counter()
        try:
            data = await fetcher()
        except Exception as exc:
            error = exc
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "fetch_duration_seconds", time.perf_counter() - start, endpoint=key.endpoint
                )

        if entry.in_flight is asyncio.current_task():
            entry.in_flight = None

        if self.entries.get(key) is not entry:
            self.logger.debug("Dropped response for evicted entry", endpoint=key.endpoint)
            self._record_fetch(key, "evicted")
            return entry

        if entry.generation != generation:
            self.logger.info(
                "Dropped superseded response",
                endpoint=key.endpoint,
                status=entry.status.value
            )
            self._record_fetch(key, "superseded")
            self._notify(entry)
            return entry

        if error is not None:
            self.logger.warning(
                "Fetch failed",
                endpoint=key.endpoint,
                error=str(error),
                error_type=type(error).__name__
            )
            self._record_fetch(key, "error")
            self.update(key, CacheStatus.ERROR, error=error)
        else:
            self._record_fetch(key, "success")
            self.update(key, CacheStatus.SUCCESS, data=data)
        return entry

    # Optimistic patches

    def patch(self, key: CacheKey, recipe: Callable[[Any], Any]) -> Optional[PatchRecord]:
        """Apply ``recipe`` to a copy of the entry's data and hold the entry.

        ``recipe`` may mutate its argument in place or return a replacement.
        Returns None (and holds nothing) when there is no data to patch.
        """
        entry = self.entries.get(key)
        if entry is None or not entry.has_data:
            return None

        record = PatchRecord(key=key, snapshot=copy.deepcopy(entry.data))
        draft = copy.deepcopy(entry.data)
        result = recipe(draft)
        entry.data = draft if result is None else result

        # Responses already in flight predate the patch
        self._supersede(entry)
        entry.optimistic_holds += 1

        self.logger.debug("Applied optimistic patch", endpoint=key.endpoint)
        self._notify(entry)
        return record

    def restore(self, record: PatchRecord, rollback: Optional[Callable[[Any], Any]] = None) -> None:
        """Undo a patch: run ``rollback`` on the current data, or restore the snapshot."""
        entry = self.get(record.key)
        if entry is None:
            return

        if rollback is None:
            entry.data = record.snapshot
        else:
            draft = copy.deepcopy(entry.data)
            result = rollback(draft)
            entry.data = draft if result is None else result

        self.logger.info("Rolled back optimistic patch", endpoint=record.key.endpoint)
        self._notify(entry)

    def release(self, key: CacheKey) -> None:
        """Drop one optimistic hold; a fully released entry notifies its listeners."""
        entry = self.entries.get(key)
        if entry is None or entry.optimistic_holds == 0:
            raise InvalidStateError("No optimistic hold to release", details={"endpoint": key.endpoint})

        entry.optimistic_holds -= 1
        if entry.optimistic_holds:
            return

        self._notify(entry)
        if entry.subscriber_count == 0:
            self._schedule_eviction(entry)

    # Observers

    def add_listener(self, key: CacheKey, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for changes of ``key``; returns a remover."""
        entry = self.get_or_create(key)
        entry.listeners.append(listener)

        def remove() -> None:
            if listener in entry.listeners:
                entry.listeners.remove(listener)

        return remove

    def _notify(self, entry: CacheEntry) -> None:
        for listener in list(entry.listeners):
            try:
                listener(entry)
            except Exception as exc:
                self.logger.error(
                    "Cache listener failed",
                    endpoint=entry.key.endpoint,
                    error=str(exc)
                )

    # Statistics

    def _record_fetch(self, key: CacheKey, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("cache_fetches_total", endpoint=key.endpoint, result=result)

    def _record_size(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("cache_entries", len(self.entries))

    def stats(self) -> Dict[str, Any]:
        """Entry counts per status, subscribers and in-flight fetches."""
        by_status = {status.value: 0 for status in CacheStatus}
        for entry in self.entries.values():
            by_status[entry.status.value] += 1

        return {
            "entries": len(self.entries),
            "by_status": by_status,
            "subscribers": sum(entry.subscriber_count for entry in self.entries.values()),
            "in_flight": sum(1 for entry in self.entries.values() if entry.is_fetching),
            "tagged_keys": len(self.tag_index),
        }
