"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from biteswipe.adapters.memory_store import InMemoryStore
from biteswipe.adapters.supabase_store import SupabaseStore
from biteswipe.adapters.yelp_client import HttpxYelpClient
from biteswipe.config import Settings, parse_store_backend
from biteswipe.services.cache import InMemoryCache
from biteswipe.services.catalog import (
    RestaurantCatalog,
    StaticRestaurantCatalog,
    YelpRestaurantCatalog,
)
from biteswipe.services.client import BiteSwipeClient
from biteswipe.services.identity import AnonymousIdentityProvider
from biteswipe.services.notices import LoggingNoticeSink, NoticeSink
from biteswipe.services.sessions import SessionCoordinator
from biteswipe.services.store import SharedStore
from biteswipe.services.votes import VoteAggregator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: SharedStore
    coordinator: SessionCoordinator
    aggregator: VoteAggregator
    catalog: RestaurantCatalog
    close_resources: Callable[[], Awaitable[None]]

    def new_client(self, notices: NoticeSink | None = None) -> BiteSwipeClient:
        """Create a participant engine sharing this container's store."""
        return BiteSwipeClient(
            identity=AnonymousIdentityProvider(),
            coordinator=self.coordinator,
            aggregator=self.aggregator,
            catalog=self.catalog,
            notices=notices or LoggingNoticeSink(),
        )


def build_store(settings: Settings) -> SharedStore:
    """Create the configured shared store."""
    backend = parse_store_backend(settings.store_backend)
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError(
                "Supabase store requires SUPABASE_URL and SUPABASE_SERVICE_KEY"
            )
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseStore(
            client=client,
            table=settings.supabase_table,
            poll_interval_seconds=settings.store_poll_interval_seconds,
        )
    return InMemoryStore()


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = build_store(resolved_settings)
    coordinator = SessionCoordinator(
        store=store,
        atomic_roster_updates=resolved_settings.atomic_roster_updates,
        code_generation_attempts=resolved_settings.code_generation_attempts,
    )
    aggregator = VoteAggregator(store=store)
    yelp_client: HttpxYelpClient | None = None
    catalog: RestaurantCatalog
    if resolved_settings.yelp_api_key:
        yelp_client = HttpxYelpClient.create(
            api_key=resolved_settings.yelp_api_key,
            base_url=resolved_settings.yelp_base_url,
        )
        catalog = YelpRestaurantCatalog(
            client=yelp_client,
            cache=InMemoryCache(),
            location=resolved_settings.yelp_location,
        )
    else:
        catalog = StaticRestaurantCatalog()

    async def close_resources() -> None:
        if yelp_client is not None:
            await yelp_client.close()
        if isinstance(store, SupabaseStore):
            await store.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        coordinator=coordinator,
        aggregator=aggregator,
        catalog=catalog,
        close_resources=close_resources,
    )
