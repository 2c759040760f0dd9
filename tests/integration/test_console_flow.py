"""
Integration tests for console flows over the HTTP transport.

The backend is served in-process through httpx.MockTransport, so requests
go through the real transport and its error mapping.
"""

import asyncio
import json
import re

import httpx
import pytest
import pytest_asyncio

from admin_console.app.adapters.http_client import HttpTransport
from admin_console.app.main import AdminConsole
from shared.config import get_config
from shared.errors import AuthenticationRequiredError, ServerError
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory


BASE_URL = "http://shop.test/api/v1"
PREFIX = "/api/v1"


class ShopBackend:
    """Minimal catalog backend with per-route holds."""

    def __init__(self):
        self.products = TestDataFactory.create_test_products(10)
        self.categories = TestDataFactory.create_test_categories()
        self.requests = []
        self.gates = {}

    def hold(self, method, path):
        gate = asyncio.Event()
        self.gates[(method, path)] = gate
        return gate

    def count(self, method, path):
        return self.requests.count((method, path))

    async def handle(self, request):
        path = request.url.path[len(PREFIX):]
        self.requests.append((request.method, path))

        gate = self.gates.get((request.method, path))
        if gate is not None:
            await gate.wait()

        if request.method == "GET" and path == "/products/get-all-products":
            page = int(request.url.params.get("page", 1))
            limit = int(request.url.params.get("limit", 10))
            start = (page - 1) * limit
            return httpx.Response(200, json=TestDataFactory.envelope(self.products[start:start + limit]))

        match = re.fullmatch(r"/products/update-product/(.+)", path)
        if request.method == "PATCH" and match:
            changes = json.loads(request.content)
            for product in self.products:
                if product["_id"] == match.group(1):
                    product.update(changes)
                    return httpx.Response(200, json=TestDataFactory.envelope(product))
            return httpx.Response(404, json={"success": False, "message": "Product not found"})

        if request.method == "GET" and path == "/category/get-all-categories":
            return httpx.Response(200, json=TestDataFactory.envelope(self.categories))

        if request.method == "DELETE" and path.startswith("/category/delete-category/"):
            return httpx.Response(409, json={"success": False, "message": "Category still has products"})

        match = re.fullmatch(r"/blog/myblog/(.+)", path)
        if request.method == "GET" and match:
            if not request.headers.get("Authorization", "").startswith("Bearer "):
                return httpx.Response(401, json={"success": False, "message": "Unauthorized"})
            return httpx.Response(200, json=TestDataFactory.envelope({"_id": match.group(1), "title": "Linen care"}))

        return httpx.Response(404, json={"success": False, "message": f"Cannot {request.method} {path}"})


class TestConsoleFlow:
    """Integration tests for complete console flows."""

    @pytest.fixture
    def backend(self):
        return ShopBackend()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("console")

    @pytest_asyncio.fixture
    async def console(self, backend, metrics):
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(backend.handle))
        transport = HttpTransport(BASE_URL, client=client)
        console = AdminConsole(get_config(api_base_url=BASE_URL), transport=transport, metrics=metrics)
        yield console
        await console.aclose()

    @pytest.mark.asyncio
    async def test_publish_toggle_never_reverts(self, console, backend):
        """Publishing a product shows at once and is confirmed by the refetch."""
        # 1. Render the product list
        listing = console.products.get_all_products()
        initial = await listing.wait()
        assert [item["published"] for item in initial.data["data"]] == [False] * 10

        seen = []
        listing.add_listener(lambda result: seen.append(
            next(item["published"] for item in result.data["data"] if item["_id"] == "prod-4")
        ))

        # 2. Toggle while the backend is slow
        gate = backend.hold("PATCH", "/products/update-product/prod-4")
        toggle = asyncio.ensure_future(console.products.set_published("prod-4", True))
        await asyncio.sleep(0.01)

        flags = {item["_id"]: item["published"] for item in listing.result.data["data"]}
        assert flags["prod-4"] is True
        assert sum(flags.values()) == 1

        # 3. Backend confirms, list refetches
        gate.set()
        await toggle
        final = await listing.wait()

        assert next(item for item in final.data["data"] if item["_id"] == "prod-4")["published"] is True
        assert backend.count("GET", "/products/get-all-products") == 2
        assert seen and all(seen)
        listing.close()

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_list_untouched(self, console, backend, metrics):
        """A rejected delete surfaces the server error and invalidates nothing."""
        categories = console.categories.get_categories()
        before = await categories.wait()

        with pytest.raises(ServerError) as exc_info:
            await console.categories.delete_category("cat-1")

        assert exc_info.value.status == 409
        assert exc_info.value.message == "Category still has products"
        await asyncio.sleep(0.01)

        after = categories.result
        assert after.data == before.data
        assert after.is_success
        assert not after.is_fetching
        assert backend.count("GET", "/category/get-all-categories") == 1
        assert metrics.sample("mutations_total", endpoint="delete_category", result="error") == 1
        categories.close()

    @pytest.mark.asyncio
    async def test_views_share_requests(self, console, backend):
        """Several views of the same page cost one request."""
        views = [console.products.get_all_products(page=1) for _ in range(4)]
        other_page = console.products.get_all_products(page=2)

        for view in views + [other_page]:
            await view.wait()

        assert backend.count("GET", "/products/get-all-products") == 2
        assert views[0].result.data["data"][0]["_id"] == "prod-1"
        assert other_page.result.data["data"] == []
        for view in views + [other_page]:
            view.close()

    @pytest.mark.asyncio
    async def test_blog_detail_uses_redirect_token(self, console, backend):
        """The single-post view needs the token handed over on login redirect."""
        with pytest.raises(AuthenticationRequiredError):
            await console.transport.request("GET", "/blog/myblog/b1", requires_auth=True)
        assert backend.requests == []

        clean_url = console.transport.accept_redirect_token("https://admin.shop.test/blogs?token=abc123")
        assert clean_url == "https://admin.shop.test/blogs"

        post = console.blogs.get_user_blog("b1")
        result = await post.wait()

        assert result.is_success
        assert result.data["data"]["title"] == "Linen care"
        post.close()
