"""
Cache entry model: keys, statuses and per-entry bookkeeping.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, List, NamedTuple, Optional


class CacheStatus(Enum):
    """Cache entry states."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    STALE = "stale"      # Outdated, still renderable pending refetch


class CacheKey(NamedTuple):
    """Identity of a cache entry: endpoint plus normalized argument."""
    endpoint: str
    arg: Hashable

    def __repr__(self) -> str:
        return f"CacheKey({self.endpoint!r}, {self.arg!r})"


def normalize_arg(arg: Any) -> Hashable:
    """Turn a query argument into a canonical hashable value.

    Mappings become key-sorted tuples of pairs with ``None`` values dropped,
    so ``{"page": 1, "searchTerm": None}`` and ``{"page": 1}`` address the
    same entry. Lists, tuples and sets are normalized element-wise.
    """
    if isinstance(arg, Mapping):
        return tuple(
            (str(k), normalize_arg(v))
            for k, v in sorted(arg.items(), key=lambda item: str(item[0]))
            if v is not None
        )
    if isinstance(arg, (list, tuple)):
        return tuple(normalize_arg(item) for item in arg)
    if isinstance(arg, (set, frozenset)):
        return tuple(sorted((normalize_arg(item) for item in arg), key=repr))
    return arg


def make_key(endpoint: str, arg: Any = None) -> CacheKey:
    """Build the cache key for an endpoint/argument pair."""
    return CacheKey(endpoint, normalize_arg(arg))


@dataclass(eq=False)
class CacheEntry:
    """Last known response for one (endpoint, argument) pair."""
    key: CacheKey
    status: CacheStatus = CacheStatus.UNINITIALIZED
    data: Any = None
    # A stored null body still counts as data
    loaded: bool = False
    error: Optional[Exception] = None
    last_updated: Optional[float] = None
    subscriber_count: int = 0

    # Bookkeeping owned by the store
    in_flight: Optional["asyncio.Future"] = None
    generation: int = 0
    optimistic_holds: int = 0
    eviction_handle: Optional[asyncio.TimerHandle] = None
    listeners: List[Callable[["CacheEntry"], None]] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.loaded

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()

    def snapshot(self) -> dict:
        """Plain view of the observable state."""
        return {
            "endpoint": self.key.endpoint,
            "arg": self.key.arg,
            "status": self.status.value,
            "has_data": self.has_data,
            "error": str(self.error) if self.error else None,
            "last_updated": self.last_updated,
            "subscriber_count": self.subscriber_count,
            "is_fetching": self.is_fetching,
        }
