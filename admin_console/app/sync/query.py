"""
Query layer: component-facing subscriptions over the cache store.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from shared.errors import InvalidStateError
from shared.logging import get_logger
from ..caching.entry import CacheEntry, CacheKey, CacheStatus, normalize_arg
from ..caching.store import CacheStore, SubscriptionHandle
from ..caching.tag_index import TagIndex
from .descriptors import QueryDescriptor


ResultListener = Callable[["QueryResult"], None]


@dataclass(frozen=True)
class QueryResult:
    """What a view renders: data, status and error of one cache entry."""
    data: Any = None
    status: CacheStatus = CacheStatus.UNINITIALIZED
    error: Optional[Exception] = None
    is_stale: bool = False
    is_fetching: bool = False
    last_updated: Optional[float] = None

    @property
    def is_loading(self) -> bool:
        """First load: nothing to render yet."""
        return self.status is CacheStatus.LOADING and self.data is None

    @property
    def is_success(self) -> bool:
        return self.status is CacheStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is CacheStatus.ERROR

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> "QueryResult":
        status = entry.status
        if status is CacheStatus.STALE:
            # Views only see uninitialized/loading/success/error
            if entry.has_data:
                status = CacheStatus.SUCCESS
            elif entry.is_fetching:
                status = CacheStatus.LOADING
            else:
                status = CacheStatus.UNINITIALIZED

        return cls(
            data=entry.data,
            status=status,
            error=entry.error,
            is_stale=entry.status is CacheStatus.STALE,
            is_fetching=entry.is_fetching,
            last_updated=entry.last_updated,
        )


class QuerySubscription:
    """A mounted view's dependency on one cache entry.

    Mounting subscribes and fetches when the entry is uninitialized, stale or
    errored. While mounted, an entry that turns stale is refetched in the
    background and the last known data keeps rendering. ``close()`` releases
    the entry without cancelling any request in flight.
    """

    def __init__(self, client: "QueryClient", descriptor: QueryDescriptor, arg: Any = None):
        self._client = client
        self.descriptor = descriptor
        self.arg: Any = None
        self.key: Optional[CacheKey] = None
        self._handle: Optional[SubscriptionHandle] = None
        self._remove_listener: Optional[Callable[[], None]] = None
        self._view_listeners: List[ResultListener] = []
        self._mount(arg)

    @property
    def closed(self) -> bool:
        return self._handle is None

    @property
    def result(self) -> QueryResult:
        if self.closed:
            raise InvalidStateError("Query subscription is closed", details={"endpoint": self.descriptor.endpoint})
        entry = self._client.store.get(self.key)
        if entry is None:
            return QueryResult()
        return QueryResult.from_entry(entry)

    def _mount(self, arg: Any) -> None:
        store = self._client.store
        self.arg = arg
        self.key = self._client.resolve(self.descriptor, arg)
        self._handle = store.subscribe(self.key)
        self._remove_listener = store.add_listener(self.key, self._on_entry_change)

        entry = store.get(self.key)
        if entry is not None and self._client.needs_fetch(entry):
            self._client.start_fetch(self.descriptor, arg, self.key)

    def _unmount(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        handle, self._handle = self._handle, None
        if handle is None:
            raise InvalidStateError("Query subscription already closed", details={"endpoint": self.descriptor.endpoint})
        handle.dispose()

    def _on_entry_change(self, entry: CacheEntry) -> None:
        if entry.status is CacheStatus.STALE and self._client.needs_fetch(entry):
            # start_fetch notifies again with the loading state
            self._client.start_fetch(self.descriptor, self.arg, self.key)
            return

        result = QueryResult.from_entry(entry)
        for listener in list(self._view_listeners):
            listener(result)

    def add_listener(self, listener: ResultListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh QueryResult on every entry change."""
        self._view_listeners.append(listener)

        def remove() -> None:
            if listener in self._view_listeners:
                self._view_listeners.remove(listener)

        return remove

    async def wait(self) -> QueryResult:
        """Wait until no fetch is in flight for this entry. Never raises for fetch errors."""
        while not self.closed:
            entry = self._client.store.entries.get(self.key)
            if entry is None or not entry.is_fetching:
                break
            await asyncio.shield(entry.in_flight)
        return self.result

    def refetch(self) -> "asyncio.Future":
        """Force a refetch; joins the current request, or waits out optimistic holds."""
        if self.closed:
            raise InvalidStateError("Query subscription is closed", details={"endpoint": self.descriptor.endpoint})
        return self._client.start_fetch(self.descriptor, self.arg, self.key)

    def set_arg(self, arg: Any) -> None:
        """Switch to another argument (page, search term); the old entry is released."""
        if self.closed:
            raise InvalidStateError("Query subscription is closed", details={"endpoint": self.descriptor.endpoint})
        if normalize_arg(arg) == self.key.arg:
            self.arg = arg
            return

        old_handle, old_remove = self._handle, self._remove_listener
        self._mount(arg)
        old_remove()
        old_handle.dispose()

    def close(self) -> None:
        """Unmount. Closing twice raises InvalidStateError."""
        self._unmount()


class QueryClient:
    """Entry point for views that read server state."""

    def __init__(self, store: CacheStore, tag_index: TagIndex, transport: Any):
        self.store = store
        self.tag_index = tag_index
        self.transport = transport
        self.logger = get_logger("console.query")

    def use_query(self, descriptor: QueryDescriptor, arg: Any = None) -> QuerySubscription:
        """Subscribe a view to ``descriptor`` at ``arg``, fetching as needed."""
        return QuerySubscription(self, descriptor, arg)

    async def prefetch(self, descriptor: QueryDescriptor, arg: Any = None) -> QueryResult:
        """Fetch into the cache without keeping a subscriber."""
        subscription = self.use_query(descriptor, arg)
        try:
            return await subscription.wait()
        finally:
            subscription.close()

    def resolve(self, descriptor: QueryDescriptor, arg: Any) -> CacheKey:
        """Key for ``arg``, with its entry allocated and its tags indexed."""
        key = descriptor.key(arg)
        self.store.get_or_create(key)
        self.tag_index.register_provides(key, descriptor.provides)
        return key

    @staticmethod
    def needs_fetch(entry: CacheEntry) -> bool:
        if entry.optimistic_holds:
            return False
        return entry.status in (CacheStatus.UNINITIALIZED, CacheStatus.STALE, CacheStatus.ERROR)

    def start_fetch(self, descriptor: QueryDescriptor, arg: Any, key: CacheKey) -> "asyncio.Future":
        async def fetcher() -> Any:
            spec = descriptor.build_request(arg)
            response = await self.transport.request(
                descriptor.method,
                spec.path,
                params=spec.params,
                body=spec.body,
                requires_auth=spec.requires_auth,
            )
            return response.data

        return self.store.fetch(key, fetcher)
