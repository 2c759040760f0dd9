"""
Order resource client.
"""

from typing import Any, Dict

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


def _update_status_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec(f"/order/update-order-status/{arg['id']}", body=arg["updated_data"])


GET_ALL_ORDERS = query(
    "get_all_orders",
    lambda _: RequestSpec("/order/get-all-orders"),
    Tag.ORDERS,
)
# Customer views list each customer's orders, so they go stale as well
UPDATE_ORDER_STATUS = mutation(
    "update_order_status", "PATCH", _update_status_request, Tag.ORDERS, Tag.CUSTOMERS
)


class OrderClient(ResourceClient):

    def get_all_orders(self) -> QuerySubscription:
        return self._query(GET_ALL_ORDERS)

    async def update_order_status(self, order_id: str, status: str) -> Any:
        """Move an order to ``status`` (e.g. DELIVERED, CANCELED), updating the list immediately."""
        changes = {"status": status}
        optimistic = self._record_patches((GET_ALL_ORDERS,), order_id, changes)
        return await self._mutate(
            UPDATE_ORDER_STATUS,
            {"id": order_id, "updated_data": changes},
            optimistic,
        )
