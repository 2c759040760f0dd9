"""
Common plumbing for per-entity resource clients.
"""

import copy
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..caching.entry import CacheKey
from ..sync.descriptors import MutationDescriptor, QueryDescriptor
from ..sync.mutation import MutationDispatcher, OptimisticUpdate
from ..sync.query import QueryClient, QuerySubscription

# Envelope keys the backend wraps lists and records in
ENVELOPE_KEYS = ("data", "result")

_ABSENT = object()


def iter_records(payload: Any) -> Iterator[Dict[str, Any]]:
    """Yield every record (a dict carrying ``_id`` or ``id``) inside a payload."""
    if isinstance(payload, list):
        for item in payload:
            yield from iter_records(item)
    elif isinstance(payload, dict):
        if "_id" in payload or "id" in payload:
            yield payload
            return
        for name in ENVELOPE_KEYS:
            if name in payload:
                yield from iter_records(payload[name])


def record_id(record: Dict[str, Any]) -> Optional[str]:
    value = record.get("_id", record.get("id"))
    return None if value is None else str(value)


def patch_record(payload: Any, item_id: Any, changes: Dict[str, Any]) -> int:
    """Apply ``changes`` in place to records matching ``item_id``; returns the match count."""
    matched = 0
    for record in iter_records(payload):
        if record_id(record) == str(item_id):
            record.update(changes)
            matched += 1
    return matched


def record_update(key: CacheKey, item_id: Any, changes: Dict[str, Any]) -> OptimisticUpdate:
    """Optimistic update for one record whose rollback undoes only its own fields.

    Other records in the same entry, including ones patched by overlapping
    mutations, keep their current values when this update is rolled back.
    """
    previous: Dict[str, Any] = {}

    def recipe(data: Any) -> None:
        for record in iter_records(data):
            if record_id(record) == str(item_id):
                for name in changes:
                    previous.setdefault(name, record.get(name, _ABSENT))
        patch_record(data, item_id, changes)

    def rollback(data: Any) -> None:
        for record in iter_records(data):
            if record_id(record) != str(item_id):
                continue
            for name, value in previous.items():
                if value is _ABSENT:
                    record.pop(name, None)
                else:
                    record[name] = copy.deepcopy(value)

    return OptimisticUpdate(key=key, recipe=recipe, rollback=rollback)


class ResourceClient:
    """Binds one entity's descriptors to the query and mutation layers."""

    def __init__(self, queries: QueryClient, mutations: MutationDispatcher):
        self.queries = queries
        self.mutations = mutations

    def _query(self, descriptor: QueryDescriptor, arg: Any = None) -> QuerySubscription:
        return self.queries.use_query(descriptor, arg)

    async def _mutate(
        self,
        descriptor: MutationDescriptor,
        arg: Any = None,
        optimistic: Sequence[OptimisticUpdate] = (),
    ) -> Any:
        return await self.mutations.mutate(descriptor, arg, optimistic)

    def _record_patches(
        self,
        descriptors: Sequence[QueryDescriptor],
        item_id: Any,
        changes: Dict[str, Any],
    ) -> List[OptimisticUpdate]:
        """One optimistic update per cached entry of ``descriptors`` holding the item."""
        store = self.queries.store
        updates = []
        for descriptor in descriptors:
            for key in store.keys_for_endpoint(descriptor.endpoint):
                entry = store.entries[key]
                if any(record_id(record) == str(item_id) for record in iter_records(entry.data)):
                    updates.append(record_update(key, item_id, changes))
        return updates
