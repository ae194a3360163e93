"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from food_lookup.adapters.file_cache_store import FileCacheStore
from food_lookup.adapters.off_client import HttpxOpenFoodFactsClient
from food_lookup.adapters.supabase_dataset_store import SupabaseDatasetStore
from food_lookup.adapters.supabase_user_food_repository import (
    SupabaseUserFoodRepository,
)
from food_lookup.config import Settings
from food_lookup.services.cache import InMemoryCache
from food_lookup.services.curated import CuratedFoodStore
from food_lookup.services.gateway import ExternalFoodGateway
from food_lookup.services.local_foods import LocalFoodDatabase
from food_lookup.services.restaurants import RestaurantMenuService
from food_lookup.services.search import FoodSearchService
from food_lookup.services.user_foods import UserFoodService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    curated_store: CuratedFoodStore
    gateway: ExternalFoodGateway
    user_food_service: UserFoodService
    restaurant_service: RestaurantMenuService
    search_service: FoodSearchService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    curated_store = CuratedFoodStore(
        cache_store=FileCacheStore(Path(resolved_settings.cache_dir)),
        remote_store=SupabaseDatasetStore(
            client=supabase_client,
            bucket=resolved_settings.dataset_bucket,
            dataset_path=resolved_settings.dataset_path,
            version_path=resolved_settings.dataset_version_path,
        ),
        update_check_interval_seconds=resolved_settings.update_check_interval_seconds,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.off_base_url,
        user_agent=resolved_settings.off_user_agent,
    )
    gateway = ExternalFoodGateway(client=off_client, cache=InMemoryCache())
    user_food_service = UserFoodService(SupabaseUserFoodRepository(supabase_client))
    restaurant_service = RestaurantMenuService.from_file()
    search_service = FoodSearchService(
        curated_store=curated_store,
        restaurant_service=restaurant_service,
        local_database=LocalFoodDatabase.from_file(),
        gateway=gateway,
        user_food_service=user_food_service,
        network_timeout_seconds=resolved_settings.network_timeout_seconds,
    )

    async def close_resources() -> None:
        await off_client.close()

    return AppContainer(
        settings=resolved_settings,
        curated_store=curated_store,
        gateway=gateway,
        user_food_service=user_food_service,
        restaurant_service=restaurant_service,
        search_service=search_service,
        close_resources=close_resources,
    )
