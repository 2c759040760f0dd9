"""
Review (customer feedback) resource client.
"""

from typing import Any, Dict

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


def _update_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec(f"/review/update-review/{arg['id']}", body={"isPublished": arg["is_published"]})


GET_ADMIN_FEEDBACK = query(
    "get_admin_feedback",
    lambda _: RequestSpec("/review/get-all-reviews/admin"),
    Tag.FEEDBACK,
)
ADD_REVIEW = mutation(
    "add_review", "POST",
    lambda form: RequestSpec("/review/create-review", body=form),
    Tag.FEEDBACK,
)
UPDATE_REVIEW = mutation("update_review", "PATCH", _update_request, Tag.FEEDBACK)


class ReviewClient(ResourceClient):

    def get_admin_feedback(self) -> QuerySubscription:
        return self._query(GET_ADMIN_FEEDBACK)

    async def add_review(self, form: Dict[str, Any]) -> Any:
        return await self._mutate(ADD_REVIEW, form)

    async def set_published(self, review_id: str, is_published: bool) -> Any:
        optimistic = self._record_patches((GET_ADMIN_FEEDBACK,), review_id, {"isPublished": is_published})
        return await self._mutate(
            UPDATE_REVIEW,
            {"id": review_id, "is_published": is_published},
            optimistic,
        )
