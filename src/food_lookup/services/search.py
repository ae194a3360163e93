"""Tiered food search across local sources and the external API."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace

from food_lookup.domain.foods import (
    DatasetStats,
    FoodCategory,
    FoodRecord,
    FoodSource,
    SearchOptions,
)
from food_lookup.services.curated import CuratedFoodStore, passes_filters
from food_lookup.services.gateway import FoodGateway, is_barcode
from food_lookup.services.local_foods import LocalFoodDatabase
from food_lookup.services.overrides import OVERRIDE_SCORE, OverrideTable
from food_lookup.services.restaurants import RestaurantMenuService
from food_lookup.services.scoring import (
    SPELLING_VARIANTS,
    QueryTerm,
    dedupe_foods,
    has_foreign_annotation,
    main_terms,
    name_matches_terms,
    normalize_query,
    rank_foods,
)
from food_lookup.services.user_foods import UserFoodService

WHOLE_FOOD_TERMS = (
    "banana",
    "apple",
    "orange",
    "chicken",
    "beef",
    "egg",
    "rice",
    "bread",
    "milk",
    "cheese",
    "potato",
    "carrot",
    "tomato",
)
WHOLE_FOOD_MIN_HITS = 5
GENERIC_QUERY_MAX_LENGTH = 7
GENERIC_MIN_HITS = 10
THIN_RESULTS = 3
API_PAGE_SIZE = 10

_logger = logging.getLogger(__name__)


@dataclass
class FoodSearchService:
    """Public entry point for food lookups.

    Tiers are consulted in a fixed order: user foods, restaurant menus and
    the curated dataset first; then overrides, the local database and,
    when asked for, the external API raced against a timeout. No tier
    failure fails the search.
    """

    curated_store: CuratedFoodStore
    restaurant_service: RestaurantMenuService
    local_database: LocalFoodDatabase
    gateway: FoodGateway
    user_food_service: UserFoodService | None = None
    override_table: OverrideTable = field(default_factory=OverrideTable)
    network_timeout_seconds: float = 8.0
    tier_limit: int = 100
    spelling_variants: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(SPELLING_VARIANTS)
    )

    async def search(
        self, raw_query: str, options: SearchOptions | None = None
    ) -> list[FoodRecord]:
        """Return a ranked, deduplicated list of foods for a query."""
        resolved = options or SearchOptions()
        query = (raw_query or "").strip()
        if not query:
            return []
        terms = normalize_query(query, self.spelling_variants)
        barcode_query = is_barcode(query)

        tier_a = await self._search_tier_a(terms, resolved)
        if tier_a and not resolved.include_api:
            return self._finalize(tier_a, terms, resolved, barcode_query)

        overrides = self.override_table.match(query)
        local = self._search_local_database(terms, shadowed=bool(overrides))
        remote: list[FoodRecord] = []
        if resolved.include_api:
            tier_a_hits = len(self._filter(tier_a, terms, resolved, barcode_query))
            local_hits = len(
                self._filter(
                    [*overrides, *tier_a, *local], terms, resolved, barcode_query
                )
            )
            if self._wants_network(query, tier_a_hits, local_hits):
                remote = await self._race_gateway(query)
        merged = [*overrides, *remote, *tier_a, *local]
        return self._finalize(merged, terms, resolved, barcode_query)

    async def lookup_barcode(self, code: str) -> FoodRecord | None:
        """Look up a single product by barcode."""
        if not is_barcode(code):
            return None
        food = await self.gateway.lookup_by_barcode(code)
        if food is None or not food.is_valid:
            return None
        return self._with_servings(food)

    async def search_by_category(
        self, category: FoodCategory, limit: int = 50
    ) -> list[FoodRecord]:
        """Return curated foods in a category."""
        await self._ensure_curated_loaded()
        return self.curated_store.search_by_category(category, limit)

    async def get_categories(self) -> list[FoodCategory]:
        """Return the categories present in the curated dataset."""
        await self._ensure_curated_loaded()
        return self.curated_store.get_categories()

    async def get_food(self, food_id: str) -> FoodRecord | None:
        """Return a curated food by id."""
        await self._ensure_curated_loaded()
        food = self.curated_store.get_by_id(food_id)
        return self._with_servings(food) if food is not None else None

    async def get_popular(self, limit: int = 20) -> list[FoodRecord]:
        """Return popular curated foods."""
        await self._ensure_curated_loaded()
        return self.curated_store.get_popular(limit)

    async def get_high_protein(
        self, min_protein: float = 20, limit: int = 20
    ) -> list[FoodRecord]:
        """Return high-protein curated foods."""
        await self._ensure_curated_loaded()
        return self.curated_store.get_high_protein(min_protein, limit)

    async def get_low_calorie(
        self, max_calories: float = 100, limit: int = 20
    ) -> list[FoodRecord]:
        """Return low-calorie curated foods."""
        await self._ensure_curated_loaded()
        return self.curated_store.get_low_calorie(max_calories, limit)

    async def force_refresh(self) -> bool:
        """Refresh the curated dataset, bypassing the update throttle."""
        await self._ensure_curated_loaded()
        return await self.curated_store.force_refresh()

    async def get_stats(self) -> DatasetStats:
        """Return curated dataset statistics."""
        await self._ensure_curated_loaded()
        return self.curated_store.get_stats()

    def _with_servings(self, food: FoodRecord) -> FoodRecord:
        return replace(food, common_servings=self.override_table.servings_for(food))

    async def _ensure_curated_loaded(self) -> None:
        if self.curated_store.is_loaded:
            return
        try:
            await self.curated_store.initialize()
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Curated store initialization failed: %s", exc)

    async def _search_tier_a(
        self, terms: list[QueryTerm], options: SearchOptions
    ) -> list[FoodRecord]:
        await self._ensure_curated_loaded()
        results: list[FoodRecord] = []
        user_food_service = self.user_food_service
        user_id = options.user_id
        if user_food_service is not None and user_id:
            results.extend(
                await _threaded_contribution(
                    "user foods",
                    lambda: user_food_service.search(user_id, terms, self.tier_limit),
                )
            )
        results.extend(
            _contribution(
                "restaurants",
                lambda: self.restaurant_service.search(terms, self.tier_limit),
            )
        )
        curated_options = replace(options, limit=self.tier_limit)
        results.extend(
            _contribution(
                "curated", lambda: self.curated_store.search(terms, curated_options)
            )
        )
        return results

    def _search_local_database(
        self, terms: list[QueryTerm], *, shadowed: bool
    ) -> list[FoodRecord]:
        foods = _contribution(
            "local database",
            lambda: self.local_database.search(terms, self.tier_limit),
        )
        if not shadowed:
            return foods
        keys = list(self.override_table.entries)
        return [
            food for food in foods if not any(key in food.name.lower() for key in keys)
        ]

    def _wants_network(self, query: str, tier_a_hits: int, local_hits: int) -> bool:
        words = query.lower().split()
        single_word = len(words) == 1
        if single_word:
            word = words[0]
            is_whole_food = any(
                word in (term, f"{term}s") for term in WHOLE_FOOD_TERMS
            )
            if is_whole_food and local_hits >= WHOLE_FOOD_MIN_HITS:
                return False
            is_generic = len(word) < GENERIC_QUERY_MAX_LENGTH
            if is_generic and tier_a_hits >= GENERIC_MIN_HITS:
                return False
        return (
            self.gateway.should_call_network(query)
            or not single_word
            or local_hits < THIN_RESULTS
        )

    async def _race_gateway(self, query: str) -> list[FoodRecord]:
        """Run the gateway call against the timeout; late results are dropped."""
        task: asyncio.Task[list[FoodRecord]] = asyncio.create_task(
            self._call_gateway(query)
        )
        done, _ = await asyncio.wait({task}, timeout=self.network_timeout_seconds)
        if task not in done:
            task.cancel()
            _logger.info(
                "External lookup timed out after %ss for %r",
                self.network_timeout_seconds,
                query,
            )
            return []
        try:
            return list(task.result())
        except Exception as exc:  # noqa: BLE001
            _logger.warning("External lookup failed for %r: %s", query, exc)
            return []

    async def _call_gateway(self, query: str) -> list[FoodRecord]:
        if is_barcode(query):
            food = await self.gateway.lookup_by_barcode(query)
            return [food] if food is not None else []
        return await self.gateway.search_by_text(query, API_PAGE_SIZE)

    def _filter(
        self,
        foods: list[FoodRecord],
        terms: list[QueryTerm],
        options: SearchOptions,
        barcode_query: bool,
    ) -> list[FoodRecord]:
        required = [] if barcode_query else main_terms(terms)
        kept: list[FoodRecord] = []
        for food in foods:
            if food.calories <= 0:
                continue
            if food.protein == 0 and food.carbs == 0 and food.fat == 0:
                continue
            if required and not name_matches_terms(food.name, required):
                continue
            if has_foreign_annotation(food.name):
                continue
            if not passes_filters(food, options):
                continue
            kept.append(food)
        return kept

    def _finalize(
        self,
        foods: list[FoodRecord],
        terms: list[QueryTerm],
        options: SearchOptions,
        barcode_query: bool,
    ) -> list[FoodRecord]:
        unique = dedupe_foods(self._filter(foods, terms, options, barcode_query))
        pinned = {
            food.id: OVERRIDE_SCORE
            for food in unique
            if food.source is FoodSource.OVERRIDE
        }
        ranked = rank_foods(unique, terms, drop_unmatched=False, pinned=pinned)
        return ranked[: options.limit]


def _contribution(
    tier: str, search: Callable[[], list[FoodRecord]]
) -> list[FoodRecord]:
    """Run one tier's search; a failing tier contributes nothing."""
    try:
        return list(search())
    except Exception as exc:  # noqa: BLE001
        _logger.warning("Food search tier %s failed: %s", tier, exc)
        return []


async def _threaded_contribution(
    tier: str, search: Callable[[], list[FoodRecord]]
) -> list[FoodRecord]:
    """Run a tier backed by blocking I/O off the event loop."""
    return await asyncio.to_thread(_contribution, tier, search)
