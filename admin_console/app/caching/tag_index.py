"""
Tag index mapping resource tags to the cache keys that provide them.
"""

from enum import Enum
from typing import Dict, Iterable, Set

from shared.logging import get_logger
from .entry import CacheKey


class Tag(str, Enum):
    """Resource tags shared by queries (provides) and mutations (invalidates)."""
    CATEGORIES = "Categories"
    PRODUCTS = "Products"
    ORDERS = "Orders"
    BLOGS = "Blogs"
    FEEDBACK = "Feedback"
    MATERIALS = "Materials"
    CUSTOMERS = "Customers"


class TagIndex:
    """Many-to-many index between tags and cache keys."""

    def __init__(self):
        self.logger = get_logger("console.tag_index")
        self.tag_keys: Dict[Tag, Set[CacheKey]] = {}  # tag -> keys
        self.key_tags: Dict[CacheKey, Set[Tag]] = {}  # key -> tags

    def register_provides(self, key: CacheKey, tags: Iterable[Tag]) -> None:
        """Record that ``key`` provides ``tags``. Re-registering is a no-op."""
        tags = {Tag(tag) for tag in tags}
        known = self.key_tags.setdefault(key, set())
        added = tags - known
        if not added:
            return

        known.update(added)
        for tag in added:
            if tag not in self.tag_keys:
                self.tag_keys[tag] = set()
            self.tag_keys[tag].add(key)

        self.logger.debug(
            "Registered provided tags",
            endpoint=key.endpoint,
            tags=sorted(tag.value for tag in added)
        )

    def resolve_keys_for_tags(self, tags: Iterable[Tag]) -> Set[CacheKey]:
        """All keys tagged with any of ``tags``."""
        keys: Set[CacheKey] = set()
        for tag in tags:
            keys.update(self.tag_keys.get(Tag(tag), ()))
        return keys

    def unregister(self, key: CacheKey) -> None:
        """Remove ``key`` from every tag bucket."""
        tags = self.key_tags.pop(key, set())
        for tag in tags:
            bucket = self.tag_keys.get(tag)
            if bucket is None:
                continue
            bucket.discard(key)
            if not bucket:
                del self.tag_keys[tag]

    def tags_for(self, key: CacheKey) -> Set[Tag]:
        return set(self.key_tags.get(key, ()))

    def __contains__(self, key: object) -> bool:
        return key in self.key_tags

    def __len__(self) -> int:
        return len(self.key_tags)
