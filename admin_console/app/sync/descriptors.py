"""
Static request descriptors declared by resource clients.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from ..caching.entry import CacheKey, make_key
from ..caching.tag_index import Tag


@dataclass(frozen=True)
class RequestSpec:
    """HTTP request produced from a descriptor and an argument."""
    path: str
    params: Optional[Dict[str, Any]] = None
    body: Any = None
    requires_auth: bool = False


@dataclass(frozen=True)
class QueryDescriptor:
    """Read endpoint: how to build the request and which tags its entries provide."""
    endpoint: str
    build_request: Callable[[Any], RequestSpec]
    provides: Tuple[Tag, ...] = field(default_factory=tuple)
    method: str = "GET"

    def key(self, arg: Any = None) -> CacheKey:
        return make_key(self.endpoint, arg)


@dataclass(frozen=True)
class MutationDescriptor:
    """Write endpoint: how to build the request and which tags a success invalidates."""
    endpoint: str
    build_request: Callable[[Any], RequestSpec]
    invalidates: Tuple[Tag, ...] = field(default_factory=tuple)
    method: str = "POST"


def query(endpoint: str, build_request: Callable[[Any], RequestSpec], *provides: Tag) -> QueryDescriptor:
    return QueryDescriptor(endpoint=endpoint, build_request=build_request, provides=tuple(provides))


def mutation(
    endpoint: str,
    method: str,
    build_request: Callable[[Any], RequestSpec],
    *invalidates: Tag,
) -> MutationDescriptor:
    return MutationDescriptor(
        endpoint=endpoint,
        build_request=build_request,
        invalidates=tuple(invalidates),
        method=method,
    )
