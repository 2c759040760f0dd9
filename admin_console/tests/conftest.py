"""
Shared fixtures for console data layer tests.
"""

import pytest

from admin_console.app.caching.store import CacheStore
from admin_console.app.caching.tag_index import TagIndex
from admin_console.app.sync.mutation import MutationDispatcher
from admin_console.app.sync.query import QueryClient
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeTransport, TestDataFactory


@pytest.fixture
def metrics():
    """Metrics collector on its own registry."""
    return MetricsCollector("console")


@pytest.fixture
def tag_index():
    return TagIndex()


@pytest.fixture
def store(tag_index, metrics):
    """Strict cache store with immediate eviction eligibility."""
    return CacheStore(tag_index, retention_seconds=0.0, metrics=metrics)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def queries(store, tag_index, transport):
    return QueryClient(store, tag_index, transport)


@pytest.fixture
def mutations(store, tag_index, transport, metrics):
    return MutationDispatcher(store, tag_index, transport, metrics=metrics)


@pytest.fixture
def factory():
    return TestDataFactory
