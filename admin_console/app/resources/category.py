"""
Category resource client.
"""

from typing import Any, Dict

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


def _update_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec(f"/category/update-category/{arg['id']}", body=arg["updated_data"])


GET_CATEGORIES = query(
    "get_categories",
    lambda _: RequestSpec("/category/get-all-categories"),
    Tag.CATEGORIES,
)
ADD_CATEGORY = mutation(
    "add_category", "POST",
    lambda form: RequestSpec("/category/create-category", body=form),
    Tag.CATEGORIES,
)
UPDATE_CATEGORY = mutation("update_category", "PATCH", _update_request, Tag.CATEGORIES)
DELETE_CATEGORY = mutation(
    "delete_category", "DELETE",
    lambda category_id: RequestSpec(f"/category/delete-category/{category_id}"),
    Tag.CATEGORIES,
)


class CategoryClient(ResourceClient):
    """Categories list and CRUD."""

    def get_categories(self) -> QuerySubscription:
        return self._query(GET_CATEGORIES)

    async def add_category(self, form: Dict[str, Any]) -> Any:
        return await self._mutate(ADD_CATEGORY, form)

    async def update_category(self, category_id: str, updated_data: Dict[str, Any]) -> Any:
        return await self._mutate(UPDATE_CATEGORY, {"id": category_id, "updated_data": updated_data})

    async def delete_category(self, category_id: str) -> Any:
        return await self._mutate(DELETE_CATEGORY, category_id)
