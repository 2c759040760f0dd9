"""
Customer resource client (read-only).
"""

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


GET_ALL_CUSTOMERS = query(
    "get_all_customers",
    lambda _: RequestSpec("/order/get-all-customers"),
    Tag.CUSTOMERS,
)
GET_SINGLE_CUSTOMER = query(
    "get_single_customer",
    lambda customer_id: RequestSpec(f"/order/get-user-orders/{customer_id}"),
    Tag.CUSTOMERS,
)


class CustomerClient(ResourceClient):

    def get_all_customers(self) -> QuerySubscription:
        return self._query(GET_ALL_CUSTOMERS)

    def get_single_customer(self, customer_id: str) -> QuerySubscription:
        """A customer's order history."""
        return self._query(GET_SINGLE_CUSTOMER, customer_id)
