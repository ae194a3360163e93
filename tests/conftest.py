"""Shared test fixtures."""

import pytest

from food_lookup.config import Settings
from food_lookup.containers import AppContainer
from food_lookup.services.cache import InMemoryCache
from food_lookup.services.curated import CuratedFoodStore
from food_lookup.services.gateway import ExternalFoodGateway
from food_lookup.services.local_foods import LocalFoodDatabase
from food_lookup.services.restaurants import RestaurantMenuService
from food_lookup.services.search import FoodSearchService
from food_lookup.services.user_foods import UserFoodService
from tests.fakes import (
    FakeOffClient,
    FakeRemoteDatasetStore,
    InMemoryCacheStore,
    InMemoryUserFoodRepository,
    dataset_payload,
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        cache_dir=str(tmp_path / "cache"),
    )


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def remote_store() -> FakeRemoteDatasetStore:
    return FakeRemoteDatasetStore(
        version={"version": 2},
        dataset=dataset_payload(2, "Chicken Breast Fillet", "Turkey Mince"),
    )


@pytest.fixture
def curated_store(
    cache_store: InMemoryCacheStore, remote_store: FakeRemoteDatasetStore
) -> CuratedFoodStore:
    return CuratedFoodStore(
        cache_store=cache_store,
        remote_store=remote_store,
        check_updates_on_init=False,
    )


@pytest.fixture
def off_client() -> FakeOffClient:
    return FakeOffClient()


@pytest.fixture
def user_food_repository() -> InMemoryUserFoodRepository:
    return InMemoryUserFoodRepository()


@pytest.fixture
def container(
    settings: Settings,
    curated_store: CuratedFoodStore,
    off_client: FakeOffClient,
    user_food_repository: InMemoryUserFoodRepository,
) -> AppContainer:
    gateway = ExternalFoodGateway(
        client=off_client, cache=InMemoryCache(), retry_delay_seconds=0
    )
    user_food_service = UserFoodService(user_food_repository)
    restaurant_service = RestaurantMenuService.from_file()
    search_service = FoodSearchService(
        curated_store=curated_store,
        restaurant_service=restaurant_service,
        local_database=LocalFoodDatabase.from_file(),
        gateway=gateway,
        user_food_service=user_food_service,
        network_timeout_seconds=settings.network_timeout_seconds,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        curated_store=curated_store,
        gateway=gateway,
        user_food_service=user_food_service,
        restaurant_service=restaurant_service,
        search_service=search_service,
        close_resources=close_resources,
    )
