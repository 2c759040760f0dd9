"""
Material resource client.
"""

from typing import Any, Dict

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


GET_ALL_MATERIALS = query(
    "get_all_materials",
    lambda _: RequestSpec("/materials/get-all-materials"),
    Tag.MATERIALS,
)
ADD_MATERIAL = mutation(
    "add_material", "POST",
    lambda form: RequestSpec("/materials/create-material", body=form),
    Tag.MATERIALS,
)


class MaterialClient(ResourceClient):

    def get_all_materials(self) -> QuerySubscription:
        return self._query(GET_ALL_MATERIALS)

    async def add_material(self, form: Dict[str, Any]) -> Any:
        return await self._mutate(ADD_MATERIAL, form)
