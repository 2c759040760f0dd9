"""
Unit tests for query subscriptions.
"""

import asyncio

import pytest

from admin_console.app.caching.entry import CacheStatus
from admin_console.app.caching.store import CacheStore
from admin_console.app.resources.category import DELETE_CATEGORY, GET_CATEGORIES
from admin_console.app.resources.product import GET_ALL_PRODUCTS, list_arg
from admin_console.app.sync.query import QueryClient, QueryResult
from shared.errors import InvalidStateError, ServerError


CATEGORIES_PATH = "/category/get-all-categories"
PRODUCTS_PATH = "/products/get-all-products"


@pytest.fixture
def categories(transport, factory):
    server = factory.create_test_categories()
    transport.route("GET", CATEGORIES_PATH, handler=lambda call: factory.envelope(list(server)))
    return server


@pytest.fixture
def retaining_queries(tag_index, transport, metrics):
    """Query client whose entries outlive their subscribers for a minute."""
    store = CacheStore(tag_index, retention_seconds=60.0, metrics=metrics)
    return QueryClient(store, tag_index, transport)


class TestFetchOnMount:
    """Mounting a subscription."""

    @pytest.mark.asyncio
    async def test_first_mount_fetches(self, queries, transport, categories):
        subscription = queries.use_query(GET_CATEGORIES)

        assert subscription.result.is_loading

        result = await subscription.wait()

        assert result.is_success
        assert result.data["data"] == categories
        assert result.last_updated is not None
        assert transport.count("GET", CATEGORIES_PATH) == 1
        subscription.close()

    @pytest.mark.asyncio
    async def test_concurrent_subscribers_share_one_request(self, queries, transport, categories):
        subscriptions = [queries.use_query(GET_CATEGORIES) for _ in range(5)]

        results = [await subscription.wait() for subscription in subscriptions]

        assert transport.count("GET", CATEGORIES_PATH) == 1
        assert all(result.data == results[0].data for result in results)
        assert queries.store.get(GET_CATEGORIES.key()).subscriber_count == 5
        for subscription in subscriptions:
            subscription.close()

    @pytest.mark.asyncio
    async def test_mount_on_fresh_entry_does_not_fetch(self, queries, transport, categories):
        first = queries.use_query(GET_CATEGORIES)
        await first.wait()

        second = queries.use_query(GET_CATEGORIES)

        assert second.result.is_success
        assert not second.result.is_fetching
        assert transport.count("GET", CATEGORIES_PATH) == 1
        first.close()
        second.close()

    @pytest.mark.asyncio
    async def test_failed_fetch_reports_error(self, queries, transport):
        transport.route("GET", CATEGORIES_PATH, error=ServerError(500, {"message": "database unavailable"}))
        subscription = queries.use_query(GET_CATEGORIES)

        result = await subscription.wait()

        assert result.is_error
        assert result.data is None
        assert result.error.status == 500
        assert result.error.message == "database unavailable"
        subscription.close()

    @pytest.mark.asyncio
    async def test_errored_entry_refetches_on_next_mount(self, queries, transport, factory):
        transport.route("GET", CATEGORIES_PATH, error=ServerError(500))
        first = queries.use_query(GET_CATEGORIES)
        await first.wait()

        transport.route("GET", CATEGORIES_PATH, factory.envelope([]))
        second = queries.use_query(GET_CATEGORIES)
        result = await second.wait()

        assert result.is_success
        assert first.result.is_success
        assert transport.count("GET", CATEGORIES_PATH) == 2
        first.close()
        second.close()

    @pytest.mark.asyncio
    async def test_view_listener_sees_transitions(self, queries, categories):
        subscription = queries.use_query(GET_CATEGORIES)
        seen = []
        subscription.add_listener(lambda result: seen.append(result.status))

        await subscription.wait()

        assert seen == [CacheStatus.SUCCESS]
        subscription.close()


class TestRevalidation:
    """Stale entries while mounted and unmounted."""

    @pytest.mark.asyncio
    async def test_stale_entry_refetches_and_keeps_data(self, queries, transport, categories):
        subscription = queries.use_query(GET_CATEGORIES)
        first = await subscription.wait()

        categories.append({"_id": "cat-4", "name": "Outerwear"})
        queries.store.invalidate(queries.tag_index.resolve_keys_for_tags(GET_CATEGORIES.provides))

        during = subscription.result
        assert during.data == first.data
        assert during.is_fetching
        assert not during.is_loading

        after = await subscription.wait()
        assert len(after.data["data"]) == 4
        assert transport.count("GET", CATEGORIES_PATH) == 2
        subscription.close()

    @pytest.mark.asyncio
    async def test_unmounted_stale_entry_waits_for_next_mount(self, retaining_queries, transport, categories):
        await retaining_queries.prefetch(GET_CATEGORIES)
        key = GET_CATEGORIES.key()

        retaining_queries.store.invalidate({key})
        await asyncio.sleep(0.01)

        stale = QueryResult.from_entry(retaining_queries.store.get(key))
        assert stale.is_stale
        assert stale.is_success
        assert transport.count("GET", CATEGORIES_PATH) == 1

        subscription = retaining_queries.use_query(GET_CATEGORIES)
        assert subscription.result.is_fetching
        assert subscription.result.data is not None

        await subscription.wait()
        assert transport.count("GET", CATEGORIES_PATH) == 2
        subscription.close()

    @pytest.mark.asyncio
    async def test_refetch_forces_request(self, queries, transport, categories):
        subscription = queries.use_query(GET_CATEGORIES)
        await subscription.wait()

        await subscription.refetch()

        assert transport.count("GET", CATEGORIES_PATH) == 2
        subscription.close()

    @pytest.mark.asyncio
    async def test_invalidation_supersedes_in_flight_fetch(
        self, queries, mutations, transport, categories, factory, metrics
    ):
        def delete(call):
            categories[:] = [item for item in categories if item["_id"] != "cat-2"]
            return factory.envelope({"deleted": "cat-2"})

        transport.route("DELETE", "/category/delete-category/cat-2", handler=delete)
        gate = transport.hold("GET", CATEGORIES_PATH)

        subscription = queries.use_query(GET_CATEGORIES)
        await asyncio.sleep(0.01)
        assert transport.count("GET", CATEGORIES_PATH) == 1

        await mutations.mutate(DELETE_CATEGORY, "cat-2")
        await asyncio.sleep(0.01)
        assert transport.count("GET", CATEGORIES_PATH) == 2

        gate.set()
        result = await subscription.wait()

        assert [item["_id"] for item in result.data["data"]] == ["cat-1", "cat-3"]
        assert metrics.sample("cache_fetches_total", endpoint="get_categories", result="superseded") == 1
        subscription.close()


class TestArgumentsAndLifecycle:
    """set_arg(), close() and prefetch()."""

    @pytest.fixture
    def products(self, transport, factory):
        catalog = factory.create_test_products(25)

        def page(call):
            start = (call.params["page"] - 1) * call.params["limit"]
            return factory.envelope(catalog[start:start + call.params["limit"]])

        transport.route("GET", PRODUCTS_PATH, handler=page)
        return catalog

    @pytest.mark.asyncio
    async def test_set_arg_moves_to_new_entry(self, queries, transport, products):
        subscription = queries.use_query(GET_ALL_PRODUCTS, list_arg(page=1))
        await subscription.wait()
        first_key = subscription.key

        subscription.set_arg(list_arg(page=2))
        result = await subscription.wait()
        await asyncio.sleep(0.01)

        assert result.data["data"][0]["_id"] == "prod-11"
        assert first_key not in queries.store
        assert subscription.key in queries.store
        assert transport.count("GET", PRODUCTS_PATH) == 2
        subscription.close()

    @pytest.mark.asyncio
    async def test_set_arg_with_equivalent_arg_is_noop(self, queries, transport, products):
        subscription = queries.use_query(GET_ALL_PRODUCTS, {"page": 1, "limit": 10, "sort": "createdAt"})
        await subscription.wait()
        key = subscription.key

        subscription.set_arg({"sort": "createdAt", "limit": 10, "page": 1, "searchTerm": None})

        assert subscription.key == key
        assert transport.count("GET", PRODUCTS_PATH) == 1
        subscription.close()

    @pytest.mark.asyncio
    async def test_search_term_is_sent_only_when_set(self, queries, transport, products):
        subscription = queries.use_query(GET_ALL_PRODUCTS, list_arg(search_term="linen", page=1))
        await subscription.wait()

        assert transport.calls[-1].params == {
            "searchTerm": "linen", "page": 1, "limit": 10, "sort": "createdAt"
        }
        subscription.close()

    @pytest.mark.asyncio
    async def test_close_twice_raises(self, queries, categories):
        subscription = queries.use_query(GET_CATEGORIES)
        await subscription.wait()

        subscription.close()

        assert subscription.closed
        with pytest.raises(InvalidStateError):
            subscription.close()
        with pytest.raises(InvalidStateError):
            subscription.result

    @pytest.mark.asyncio
    async def test_close_does_not_cancel_in_flight_request(self, retaining_queries, transport, categories):
        subscription = retaining_queries.use_query(GET_CATEGORIES)
        entry = retaining_queries.store.get(subscription.key)

        subscription.close()
        await entry.in_flight

        assert entry.status is CacheStatus.SUCCESS
        assert transport.count("GET", CATEGORIES_PATH) == 1

    @pytest.mark.asyncio
    async def test_prefetch_fills_cache(self, retaining_queries, transport, categories):
        result = await retaining_queries.prefetch(GET_CATEGORIES)

        assert isinstance(result, QueryResult)
        assert result.is_success

        subscription = retaining_queries.use_query(GET_CATEGORIES)
        assert subscription.result.data == result.data
        assert transport.count("GET", CATEGORIES_PATH) == 1
        subscription.close()
