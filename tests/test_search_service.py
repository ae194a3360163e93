"""Tests for the tiered food search service."""

import asyncio
import json
import random
import time
from dataclasses import dataclass

import pytest

from food_lookup.domain.foods import (
    FoodCategory,
    FoodRecord,
    FoodSource,
    SearchOptions,
    food_to_payload,
)
from food_lookup.services.curated import CACHE_KEY, CuratedFoodStore
from food_lookup.services.local_foods import LocalFoodDatabase
from food_lookup.services.overrides import LIQUID_SERVINGS
from food_lookup.services.restaurants import Restaurant, RestaurantMenuService
from food_lookup.services.scoring import identity_key
from food_lookup.services.search import FoodSearchService
from food_lookup.services.user_foods import UserFoodService
from tests.fakes import (
    InMemoryCacheStore,
    InMemoryUserFoodRepository,
    StubGateway,
    dataset_payload,
    make_food,
)

WITH_API = SearchOptions(include_api=True)


def _service(
    curated_store: CuratedFoodStore,
    gateway: StubGateway,
    repository: InMemoryUserFoodRepository | None = None,
    timeout: float = 1.0,
) -> FoodSearchService:
    return FoodSearchService(
        curated_store=curated_store,
        restaurant_service=RestaurantMenuService.from_file(),
        local_database=LocalFoodDatabase.from_file(),
        gateway=gateway,
        user_food_service=UserFoodService(repository or InMemoryUserFoodRepository()),
        network_timeout_seconds=timeout,
    )


def test_empty_query_returns_nothing(curated_store) -> None:
    gateway = StubGateway(worth_calling=True)
    service = _service(curated_store, gateway)

    assert asyncio.run(service.search("   ", WITH_API)) == []
    assert gateway.calls == 0


def test_curated_hits_skip_network_without_include_api(curated_store) -> None:
    gateway = StubGateway(worth_calling=True, results=[make_food("Banana Chips")])
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("banana"))

    assert results[0].name == "Banana"
    assert results[0].source is FoodSource.CURATED
    assert gateway.calls == 0


def test_unknown_query_returns_empty_list(curated_store) -> None:
    gateway = StubGateway()
    service = _service(curated_store, gateway)

    assert asyncio.run(service.search("xyzqqq")) == []
    assert asyncio.run(service.search("xyzqqq", WITH_API)) == []


def test_overrides_cover_tier_a_misses(curated_store) -> None:
    gateway = StubGateway(worth_calling=True)
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("feta"))

    assert results[0].name == "Feta Cheese"
    assert results[0].source is FoodSource.OVERRIDE
    assert all(food.source is not FoodSource.LOCAL for food in results)
    assert gateway.calls == 0


def test_overrides_are_pinned_first_and_win_dedupe(curated_store) -> None:
    gateway = StubGateway()
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("chicken breast", WITH_API))

    assert [food.source for food in results[:2]] == [FoodSource.OVERRIDE] * 2
    assert results[0].name == "Chicken Breast (boneless, skinless, cooked)"
    assert results[1].name == "Chicken Breast (boneless, skinless, raw)"
    assert [food.name for food in results].count(results[0].name) == 1
    assert not any(
        food.source is FoodSource.LOCAL and "chicken breast" in food.name.lower()
        for food in results
    )
    assert gateway.text_queries == ["chicken breast"]


def test_results_are_deduplicated(curated_store) -> None:
    gateway = StubGateway()
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("chicken breast", WITH_API))

    keys = [identity_key(food.name) for food in results]
    assert len(keys) == len(set(keys))


def test_barcode_query_uses_barcode_lookup(curated_store) -> None:
    coke = make_food(
        "Coca-Cola (Coca-Cola)", id="5449000000996", source=FoodSource.API
    )
    gateway = StubGateway(barcode_result=coke)
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("5449000000996", WITH_API))

    assert results == [coke]
    assert gateway.barcode_queries == ["5449000000996"]
    assert gateway.text_queries == []


def test_api_results_merge_ahead_of_local(curated_store) -> None:
    remote_mango = make_food("MANGO", id="api-mango", source=FoodSource.API)
    gateway = StubGateway(results=[remote_mango])
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("mango", WITH_API))

    assert results == [remote_mango]


def test_network_timeout_returns_local_results(curated_store) -> None:
    gateway = StubGateway(
        results=[make_food("Mango Smoothie", source=FoodSource.API)],
        delay_seconds=1.0,
    )
    service = _service(curated_store, gateway, timeout=0.05)

    results = asyncio.run(service.search("mango", WITH_API))

    assert [food.name for food in results] == ["Mango"]
    assert results[0].source is FoodSource.LOCAL
    assert gateway.cancelled


def test_gateway_failure_degrades_to_local_results(curated_store) -> None:
    gateway = StubGateway(error=RuntimeError("network down"))
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("mango", WITH_API))

    assert [food.name for food in results] == ["Mango"]


def test_whole_food_with_enough_local_hits_skips_network(curated_store) -> None:
    gateway = StubGateway(worth_calling=True)
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("chicken", WITH_API))

    assert results
    assert gateway.calls == 0


def test_zero_nutrition_records_are_excluded(curated_store) -> None:
    gateway = StubGateway(
        results=[
            make_food(
                "Seltzer",
                calories=0,
                protein=0,
                carbs=0,
                fat=0,
                source=FoodSource.API,
            ),
            make_food("Seltzer Crackers", calories=0, source=FoodSource.API),
            make_food(
                "Flavored Seltzer",
                calories=5,
                protein=0,
                carbs=0,
                fat=0,
                source=FoodSource.API,
            ),
        ]
    )
    service = _service(curated_store, gateway)

    assert asyncio.run(service.search("seltzer")) == []
    assert asyncio.run(service.search("seltzer", WITH_API)) == []
    assert gateway.text_queries == ["seltzer"]


def test_foreign_annotations_are_excluded(curated_store) -> None:
    gateway = StubGateway(
        results=[
            make_food("Lychee (荔枝)", source=FoodSource.API),
            make_food("Lychee (canned)", source=FoodSource.API),
        ]
    )
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("lychee", WITH_API))

    assert [food.name for food in results] == ["Lychee (canned)"]


def test_user_foods_join_tier_a(curated_store) -> None:
    repository = InMemoryUserFoodRepository()
    service = _service(curated_store, StubGateway(), repository)
    service.user_food_service.add_food(
        "user-1", {"name": "Grandma Banana Bread", "calories": 320, "carbs": 50}
    )

    mine = asyncio.run(service.search("banana", SearchOptions(user_id="user-1")))
    theirs = asyncio.run(service.search("banana", SearchOptions(user_id="user-2")))

    assert "Grandma Banana Bread" in [food.name for food in mine]
    assert "Grandma Banana Bread" not in [food.name for food in theirs]


def test_failing_tier_contributes_nothing(curated_store) -> None:
    repository = InMemoryUserFoodRepository(fail=True)
    service = _service(curated_store, StubGateway(), repository)

    results = asyncio.run(service.search("banana", SearchOptions(user_id="user-1")))

    assert results[0].name == "Banana"


def test_options_filter_and_limit(curated_store) -> None:
    service = _service(curated_store, StubGateway())

    limited = asyncio.run(service.search("chicken", SearchOptions(limit=1)))
    fast_food = asyncio.run(
        service.search("chicken", SearchOptions(category=FoodCategory.FAST_FOOD))
    )
    lean = asyncio.run(service.search("chicken", SearchOptions(min_protein=30)))

    assert len(limited) == 1
    assert [food.name for food in fast_food] == ["Chicken Nuggets"]
    assert all(food.protein >= 30 for food in lean)


def test_restaurant_items_are_searchable(curated_store) -> None:
    service = _service(curated_store, StubGateway())

    results = asyncio.run(service.search("burrito"))

    assert results[0].source is FoodSource.RESTAURANT
    assert results[0].brand == "Chipotle"


def test_lookup_barcode(curated_store) -> None:
    coke = make_food(
        "Coca-Cola",
        id="5449000000996",
        source=FoodSource.API,
        category=FoodCategory.BEVERAGES,
    )
    gateway = StubGateway(barcode_result=coke)
    service = _service(curated_store, gateway)

    found = asyncio.run(service.lookup_barcode("5449000000996"))

    assert found is not None
    assert found.id == coke.id
    assert found.common_servings == LIQUID_SERVINGS
    assert asyncio.run(service.lookup_barcode("coke")) is None
    assert gateway.barcode_queries == ["5449000000996"]


def test_curated_views_load_lazily(curated_store) -> None:
    service = _service(curated_store, StubGateway())

    categories = asyncio.run(service.get_categories())
    stats = asyncio.run(service.get_stats())

    assert curated_store.is_loaded
    assert FoodCategory.PROTEIN in categories
    assert stats.version == 1
    banana = asyncio.run(service.get_food("banana"))
    assert banana is not None
    assert [serving.label for serving in banana.common_servings][:2] == [
        "100g",
        "1 serving",
    ]
    assert asyncio.run(service.get_popular(1))[0].name.startswith("Chicken Breast")
    assert asyncio.run(service.get_high_protein(70))[0].name == "Whey Protein Powder"
    assert asyncio.run(service.get_low_calorie(5))[0].name == "Black Coffee"
    dairy = asyncio.run(service.search_by_category(FoodCategory.DAIRY))
    assert {food.category for food in dairy} == {FoodCategory.DAIRY}


def test_branded_names_with_typographic_marks_survive(curated_store) -> None:
    gateway = StubGateway(
        results=[
            make_food("Frosties (Kellogg’s)", source=FoodSource.API),
            make_food("Frosties Bar (Kellogg®)", source=FoodSource.API),
        ]
    )
    service = _service(curated_store, gateway)

    results = asyncio.run(service.search("frosties", WITH_API))

    assert sorted(food.name for food in results) == [
        "Frosties (Kellogg’s)",
        "Frosties Bar (Kellogg®)",
    ]


def _store_with(*names: str) -> CuratedFoodStore:
    cache_store = InMemoryCacheStore(
        values={CACHE_KEY: json.dumps(dataset_payload(5, *names))}
    )
    return CuratedFoodStore(
        cache_store=cache_store, remote_store=None, check_updates_on_init=False
    )


def test_generic_short_query_with_many_hits_skips_network() -> None:
    store = _store_with(*(f"Pasta Shape {index}" for index in range(12)))
    gateway = StubGateway(worth_calling=True)
    service = _service(store, gateway)

    results = asyncio.run(service.search("pasta", WITH_API))

    assert len(results) >= 10
    assert gateway.calls == 0


def test_generic_short_query_with_few_hits_calls_network() -> None:
    store = _store_with("Pasta Shape 1", "Pasta Shape 2")
    gateway = StubGateway(worth_calling=True)
    service = _service(store, gateway)

    asyncio.run(service.search("pasta", WITH_API))

    assert gateway.text_queries == ["pasta"]


def test_long_single_word_query_is_not_generic() -> None:
    store = _store_with(*(f"Spaghetti Shape {index}" for index in range(12)))
    gateway = StubGateway(worth_calling=True)
    service = _service(store, gateway)

    asyncio.run(service.search("spaghetti", WITH_API))

    assert gateway.text_queries == ["spaghetti"]


def _random_foods(
    rng: random.Random, source: FoodSource, count: int
) -> list[FoodRecord]:
    macro_choices = (0.0, 0.0, 1.5, 8.0)
    return [
        make_food(
            f"Quorn Bite {rng.randrange(10)}",
            id=f"{source.value}-{index}",
            source=source,
            calories=rng.choice((0.0, 45.0, 210.0)),
            protein=rng.choice(macro_choices),
            carbs=rng.choice(macro_choices),
            fat=rng.choice(macro_choices),
        )
        for index in range(count)
    ]


@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("include_api", [False, True])
def test_results_never_contain_empty_or_duplicate_foods(
    seed: int, include_api: bool
) -> None:
    rng = random.Random(seed)
    curated = _random_foods(rng, FoodSource.CURATED, 6)
    cache_store = InMemoryCacheStore(
        values={
            CACHE_KEY: json.dumps(
                {"version": 5, "foods": [food_to_payload(food) for food in curated]}
            )
        }
    )
    store = CuratedFoodStore(
        cache_store=cache_store, remote_store=None, check_updates_on_init=False
    )
    repository = InMemoryUserFoodRepository(
        rows=[
            ("user-1", food) for food in _random_foods(rng, FoodSource.USER, 6)
        ]
    )
    service = FoodSearchService(
        curated_store=store,
        restaurant_service=RestaurantMenuService(
            restaurants=[
                Restaurant(
                    id="lab",
                    name="Lab Kitchen",
                    menu=tuple(_random_foods(rng, FoodSource.RESTAURANT, 6)),
                )
            ]
        ),
        local_database=LocalFoodDatabase(
            foods=_random_foods(rng, FoodSource.LOCAL, 6)
        ),
        gateway=StubGateway(
            worth_calling=True, results=_random_foods(rng, FoodSource.API, 6)
        ),
        user_food_service=UserFoodService(repository),
    )

    results = asyncio.run(
        service.search(
            "quorn", SearchOptions(include_api=include_api, user_id="user-1")
        )
    )

    assert all(food.calories > 0 for food in results)
    assert not [
        food
        for food in results
        if food.protein == 0 and food.carbs == 0 and food.fat == 0
    ]
    keys = [identity_key(food.name) for food in results]
    assert len(keys) == len(set(keys))


@dataclass
class SlowUserFoodRepository(InMemoryUserFoodRepository):
    """Repository whose searches block like a synchronous network client."""

    delay_seconds: float = 0.05

    def search_foods(self, user_id: str, query: str, limit: int) -> list[FoodRecord]:
        time.sleep(self.delay_seconds)
        return super().search_foods(user_id, query, limit)


def test_user_food_lookup_does_not_block_event_loop(curated_store) -> None:
    repository = SlowUserFoodRepository(
        rows=[
            (
                "user-1",
                make_food("Protein Waffles", id="user_1", source=FoodSource.USER),
            )
        ]
    )
    service = _service(curated_store, StubGateway(), repository)

    async def scenario() -> tuple[list[FoodRecord], int]:
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                await asyncio.sleep(0.005)
                ticks += 1

        ticking = asyncio.create_task(ticker())
        results = await service.search("waffles", SearchOptions(user_id="user-1"))
        ticking.cancel()
        return results, ticks

    results, ticks = asyncio.run(scenario())

    assert [food.name for food in results] == ["Protein Waffles"]
    assert ticks >= 3
