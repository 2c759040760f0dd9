"""
Product resource client.

Product lists are paginated and filtered; every (search, status, page,
limit, sort) combination is its own cache entry, all tagged ``Products``.
"""

from typing import Any, Dict, Optional

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT = "createdAt"
PUBLISHED_FIELD = "published"


def list_arg(
    search_term: Optional[str] = None,
    status: Optional[str] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    sort: str = DEFAULT_SORT,
) -> Dict[str, Any]:
    """Canonical product list argument; empty filters are left out."""
    return {
        "searchTerm": search_term or None,
        "status": status or None,
        "page": page,
        "limit": limit,
        "sort": sort,
    }


def _list_request(arg: Optional[Dict[str, Any]]) -> RequestSpec:
    arg = arg or {}
    params: Dict[str, Any] = {}
    if arg.get("searchTerm"):
        params["searchTerm"] = arg["searchTerm"]
    if arg.get("status"):
        params["status"] = arg["status"]
    params["page"] = arg.get("page", DEFAULT_PAGE)
    params["limit"] = arg.get("limit", DEFAULT_LIMIT)
    params["sort"] = arg.get("sort", DEFAULT_SORT)
    return RequestSpec("/products/get-all-products", params=params)


def _update_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec(f"/products/update-product/{arg['id']}", body=arg["updated_data"])


GET_ALL_PRODUCTS = query("get_all_products", _list_request, Tag.PRODUCTS)
GET_SINGLE_PRODUCT = query(
    "get_single_product",
    lambda product_id: RequestSpec(f"/products/get-product/{product_id}"),
    Tag.PRODUCTS,
)
ADD_PRODUCT = mutation(
    "add_product", "POST",
    lambda form: RequestSpec("/products/create-product", body=form),
    Tag.PRODUCTS,
)
UPDATE_PRODUCT = mutation("update_product", "PATCH", _update_request, Tag.PRODUCTS)
DELETE_PRODUCT = mutation(
    "delete_product", "DELETE",
    lambda product_id: RequestSpec(f"/products/delete-product/{product_id}"),
    Tag.PRODUCTS,
)


class ProductClient(ResourceClient):
    """Products with size/color/price/quantity variants."""

    def get_all_products(
        self,
        search_term: Optional[str] = None,
        status: Optional[str] = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        sort: str = DEFAULT_SORT,
    ) -> QuerySubscription:
        return self._query(GET_ALL_PRODUCTS, list_arg(search_term, status, page, limit, sort))

    def get_single_product(self, product_id: str) -> QuerySubscription:
        return self._query(GET_SINGLE_PRODUCT, product_id)

    async def add_product(self, form: Dict[str, Any]) -> Any:
        return await self._mutate(ADD_PRODUCT, form)

    async def update_product(self, product_id: str, updated_data: Dict[str, Any]) -> Any:
        return await self._mutate(UPDATE_PRODUCT, {"id": product_id, "updated_data": updated_data})

    async def delete_product(self, product_id: str) -> Any:
        return await self._mutate(DELETE_PRODUCT, product_id)

    async def set_published(self, product_id: str, published: bool) -> Any:
        """Toggle the publish flag, showing the new value in every cached view at once."""
        changes = {PUBLISHED_FIELD: published}
        optimistic = self._record_patches((GET_ALL_PRODUCTS, GET_SINGLE_PRODUCT), product_id, changes)
        return await self._mutate(
            UPDATE_PRODUCT,
            {"id": product_id, "updated_data": changes},
            optimistic,
        )
