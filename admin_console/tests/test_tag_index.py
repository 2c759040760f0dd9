"""
Unit tests for the tag index.
"""

import pytest

from admin_console.app.caching.entry import make_key
from admin_console.app.caching.tag_index import Tag, TagIndex


class TestTagIndex:
    """Test cases for TagIndex."""

    @pytest.fixture
    def index(self):
        return TagIndex()

    def test_register_and_resolve(self, index):
        products = make_key("get_all_products", {"page": 1})
        single = make_key("get_single_product", "prod-1")
        orders = make_key("get_all_orders")

        index.register_provides(products, [Tag.PRODUCTS])
        index.register_provides(single, [Tag.PRODUCTS])
        index.register_provides(orders, [Tag.ORDERS])

        assert index.resolve_keys_for_tags([Tag.PRODUCTS]) == {products, single}
        assert index.resolve_keys_for_tags([Tag.PRODUCTS, Tag.ORDERS]) == {products, single, orders}
        assert index.resolve_keys_for_tags([Tag.BLOGS]) == set()

    def test_register_is_idempotent(self, index):
        key = make_key("get_categories")

        index.register_provides(key, [Tag.CATEGORIES])
        index.register_provides(key, [Tag.CATEGORIES])

        assert len(index) == 1
        assert index.tag_keys[Tag.CATEGORIES] == {key}
        assert index.tags_for(key) == {Tag.CATEGORIES}

    def test_many_to_many(self, index):
        key = make_key("get_single_customer", "cust-1")

        index.register_provides(key, [Tag.CUSTOMERS, Tag.ORDERS])

        assert index.resolve_keys_for_tags([Tag.ORDERS]) == {key}
        assert index.resolve_keys_for_tags([Tag.CUSTOMERS]) == {key}

    def test_tag_values_accept_plain_strings(self, index):
        key = make_key("get_admin_feedback")

        index.register_provides(key, ["Feedback"])

        assert index.resolve_keys_for_tags([Tag.FEEDBACK]) == {key}

    def test_unknown_tag_string_rejected(self, index):
        with pytest.raises(ValueError):
            index.register_provides(make_key("get_categories"), ["Categorys"])

    def test_unregister_removes_key_from_every_bucket(self, index):
        key = make_key("get_single_customer", "cust-1")
        other = make_key("get_all_orders")
        index.register_provides(key, [Tag.CUSTOMERS, Tag.ORDERS])
        index.register_provides(other, [Tag.ORDERS])

        index.unregister(key)

        assert key not in index
        assert Tag.CUSTOMERS not in index.tag_keys
        assert index.tag_keys[Tag.ORDERS] == {other}

    def test_unregister_unknown_key_is_noop(self, index):
        index.unregister(make_key("get_categories"))
        assert len(index) == 0
