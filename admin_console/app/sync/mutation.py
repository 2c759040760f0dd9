"""
Mutation dispatcher: executes writes and drives tag invalidation.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from shared.logging import clear_context, get_logger, set_endpoint_context
from shared.metrics import MetricsCollector
from ..caching.entry import CacheKey, CacheStatus
from ..caching.store import CacheStore, PatchRecord
from ..caching.tag_index import TagIndex
from .descriptors import MutationDescriptor


@dataclass(frozen=True)
class OptimisticUpdate:
    """Local patch applied to one cache entry before the write resolves.

    ``recipe`` receives a copy of the entry's data and may mutate it in place
    or return a replacement. ``rollback`` does the same on failure; without
    one, the pre-patch data is restored exactly.
    """
    key: CacheKey
    recipe: Callable[[Any], Any]
    rollback: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class MutationResult:
    """Outcome of ``MutationHandle.trigger``."""
    data: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the response data or raise the mutation's error."""
        if self.error is not None:
            raise self.error
        return self.data


class MutationDispatcher:
    """Runs write requests and invalidates the tags they declare."""

    def __init__(
        self,
        store: CacheStore,
        tag_index: TagIndex,
        transport: Any,
        *,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.tag_index = tag_index
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("console.mutation")

    async def mutate(
        self,
        descriptor: MutationDescriptor,
        arg: Any = None,
        optimistic: Sequence[OptimisticUpdate] = (),
    ) -> Any:
        """Execute a write.

        On success every entry tagged with ``descriptor.invalidates`` is
        marked stale. On failure optimistic patches are rolled back, nothing
        is invalidated and the error propagates.
        """
        set_endpoint_context(descriptor.endpoint)
        spec = descriptor.build_request(arg)

        applied: List[Tuple[OptimisticUpdate, PatchRecord]] = []
        try:
            for update in optimistic:
                record = self.store.patch(update.key, update.recipe)
                if record is not None:
                    applied.append((update, record))

            response = await self.transport.request(
                descriptor.method,
                spec.path,
                params=spec.params,
                body=spec.body,
                requires_auth=spec.requires_auth,
            )
        except Exception as exc:
            for update, record in reversed(applied):
                self.store.restore(record, update.rollback)

            self.logger.warning(
                "Mutation failed",
                endpoint=descriptor.endpoint,
                error=str(exc),
                error_type=type(exc).__name__,
                rolled_back=len(applied)
            )
            self._record(descriptor, "error")
            raise
        else:
            keys = self.tag_index.resolve_keys_for_tags(descriptor.invalidates)
            marked = self.store.invalidate(keys)

            self.logger.info(
                "Mutation succeeded",
                endpoint=descriptor.endpoint,
                tags=[tag.value for tag in descriptor.invalidates],
                invalidated=len(marked)
            )
            self._record(descriptor, "success")
            if self.metrics:
                for tag in descriptor.invalidates:
                    self.metrics.increment_counter("cache_invalidations_total", tag=tag.value)
            return response.data
        finally:
            # Held entries refetch once released
            for _, record in applied:
                self.store.release(record.key)
            clear_context()

    def use_mutation(self, descriptor: MutationDescriptor) -> "MutationHandle":
        """Component-facing handle for ``descriptor``."""
        return MutationHandle(self, descriptor)

    def _record(self, descriptor: MutationDescriptor, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("mutations_total", endpoint=descriptor.endpoint, result=result)


class MutationHandle:
    """Tracks the latest trigger of one mutation for a view."""

    def __init__(self, dispatcher: MutationDispatcher, descriptor: MutationDescriptor):
        self._dispatcher = dispatcher
        self.descriptor = descriptor
        self.status = CacheStatus.UNINITIALIZED
        self.data: Any = None
        self.error: Optional[Exception] = None
        self._request_count = 0
        self._listeners: List[Callable[["MutationHandle"], None]] = []

    @property
    def is_loading(self) -> bool:
        return self.status is CacheStatus.LOADING

    async def trigger(self, arg: Any = None, optimistic: Sequence[OptimisticUpdate] = ()) -> MutationResult:
        """Run the mutation. Never raises; use ``unwrap()`` on the result to re-raise."""
        self._request_count += 1
        request_number = self._request_count
        self._set(CacheStatus.LOADING, None, None)

        try:
            data = await self._dispatcher.mutate(self.descriptor, arg, optimistic)
        except Exception as exc:
            if request_number == self._request_count:
                self._set(CacheStatus.ERROR, None, exc)
            return MutationResult(error=exc)

        # Only the latest trigger owns the handle state
        if request_number == self._request_count:
            self._set(CacheStatus.SUCCESS, data, None)
        return MutationResult(data=data)

    def reset(self) -> None:
        self._request_count += 1
        self._set(CacheStatus.UNINITIALIZED, None, None)

    def add_listener(self, listener: Callable[["MutationHandle"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set(self, status: CacheStatus, data: Any, error: Optional[Exception]) -> None:
        self.status = status
        self.data = data
        self.error = error
        for listener in list(self._listeners):
            listener(self)
