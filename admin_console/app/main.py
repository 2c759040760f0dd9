"""
Admin console data layer wiring.
"""

from typing import Any, Dict, Optional

from shared.config import ConsoleConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.retry import RetryConfig
from .adapters.http_client import HttpTransport
from .caching.store import CacheStore
from .caching.tag_index import TagIndex
from .resources import (
    BlogClient,
    CategoryClient,
    CustomerClient,
    MaterialClient,
    OrderClient,
    ProductClient,
    ReviewClient,
)
from .sync.descriptors import MutationDescriptor, QueryDescriptor
from .sync.mutation import MutationDispatcher, MutationHandle
from .sync.query import QueryClient, QuerySubscription


class AdminConsole:
    """One cache store, tag index and transport shared by every resource client."""

    def __init__(
        self,
        config: Optional[ConsoleConfig] = None,
        *,
        transport: Optional[Any] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger("console")
        configure_logging("console", self.config.log_level)
        self.metrics = metrics or get_metrics_collector("console")

        self.transport = transport or HttpTransport(
            self.config.api_base_url,
            timeout=self.config.request_timeout,
            token=self.config.api_token,
            retry_config=RetryConfig(
                max_attempts=self.config.fetch_retry_attempts,
                base_delay=self.config.fetch_retry_base_delay,
            ),
        )

        self.tag_index = TagIndex()
        self.store = CacheStore(
            self.tag_index,
            retention_seconds=self.config.retention_seconds,
            keep_data_on_error=self.config.keep_data_on_error,
            strict=self.config.strict_cache,
            metrics=self.metrics,
        )
        self.queries = QueryClient(self.store, self.tag_index, self.transport)
        self.mutations = MutationDispatcher(self.store, self.tag_index, self.transport, metrics=self.metrics)

        # Resource clients
        self.categories = CategoryClient(self.queries, self.mutations)
        self.materials = MaterialClient(self.queries, self.mutations)
        self.products = ProductClient(self.queries, self.mutations)
        self.blogs = BlogClient(self.queries, self.mutations)
        self.orders = OrderClient(self.queries, self.mutations)
        self.reviews = ReviewClient(self.queries, self.mutations)
        self.customers = CustomerClient(self.queries, self.mutations)

        self.logger.info(
            "Admin console initialized",
            env=self.config.env,
            api_base_url=self.config.api_base_url,
            retention_seconds=self.config.retention_seconds,
            strict_cache=self.config.strict_cache,
        )

    def use_query(self, descriptor: QueryDescriptor, arg: Any = None) -> QuerySubscription:
        return self.queries.use_query(descriptor, arg)

    def use_mutation(self, descriptor: MutationDescriptor) -> MutationHandle:
        return self.mutations.use_mutation(descriptor)

    def stats(self) -> Dict[str, Any]:
        return self.store.stats()

    async def aclose(self) -> None:
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()
        self.logger.info("Admin console closed")


_console: Optional[AdminConsole] = None


def get_console() -> AdminConsole:
    """Process-wide console bound to the application session."""
    global _console
    if _console is None:
        _console = AdminConsole()
    return _console


async def shutdown_console() -> None:
    global _console
    if _console is not None:
        await _console.aclose()
        _console = None
