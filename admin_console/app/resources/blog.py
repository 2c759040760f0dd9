"""
Blog resource client.
"""

from typing import Any, Dict

from ..caching.tag_index import Tag
from ..sync.descriptors import RequestSpec, mutation, query
from ..sync.query import QuerySubscription
from .base import ResourceClient


def _admin_blogs_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec("/blog/get-all-blogs", params={"page": arg["page"], "limit": arg["limit"]})


def _user_blog_request(blog_id: str) -> RequestSpec:
    return RequestSpec(f"/blog/myblog/{blog_id}", requires_auth=True)


def _update_request(arg: Dict[str, Any]) -> RequestSpec:
    return RequestSpec(f"/blog/update-blog/{arg['id']}", body=arg["data"])


GET_ADMIN_BLOGS = query("get_admin_blogs", _admin_blogs_request, Tag.BLOGS)
GET_USER_BLOG = query("get_user_blog", _user_blog_request, Tag.BLOGS)
ADD_BLOG = mutation(
    "add_blog", "POST",
    lambda form: RequestSpec("/blog/create-blog", body=form),
    Tag.BLOGS,
)
UPDATE_BLOG = mutation("update_blog", "PATCH", _update_request, Tag.BLOGS)
DELETE_BLOG = mutation(
    "delete_blog", "DELETE",
    lambda blog_id: RequestSpec(f"/blog/delete-blog/{blog_id}"),
    Tag.BLOGS,
)


class BlogClient(ResourceClient):
    """Blog posts; a single post is only readable with a token."""

    def get_admin_blogs(self, page: int = 1, limit: int = 10) -> QuerySubscription:
        return self._query(GET_ADMIN_BLOGS, {"page": page, "limit": limit})

    def get_user_blog(self, blog_id: str) -> QuerySubscription:
        return self._query(GET_USER_BLOG, blog_id)

    async def add_blog(self, form: Dict[str, Any]) -> Any:
        return await self._mutate(ADD_BLOG, form)

    async def update_blog(self, blog_id: str, data: Dict[str, Any]) -> Any:
        return await self._mutate(UPDATE_BLOG, {"id": blog_id, "data": data})

    async def delete_blog(self, blog_id: str) -> Any:
        return await self._mutate(DELETE_BLOG, blog_id)
