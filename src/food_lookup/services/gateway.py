"""External nutrition API gateway with Open Food Facts transforms."""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

import httpx

from food_lookup.adapters.off_client import OpenFoodFactsClient
from food_lookup.domain.foods import FoodCategory, FoodRecord, FoodSource
from food_lookup.services.cache import Cache

BRAND_KEYWORDS = (
    "mcdonald",
    "starbucks",
    "subway",
    "kellogg",
    "nestle",
    "coca",
    "pepsi",
    "kraft",
    "general mills",
    "post",
    "quaker",
    "campbell",
    "heinz",
)

# First match wins.
_CATEGORY_KEYWORDS: tuple[tuple[tuple[str, ...], FoodCategory], ...] = (
    (("meat", "poultry", "fish", "seafood"), FoodCategory.PROTEIN),
    (("dairy", "milk", "cheese", "yogurt"), FoodCategory.DAIRY),
    (("fruit",), FoodCategory.FRUITS),
    (("vegetable",), FoodCategory.VEGETABLES),
    (("grain", "bread", "cereal", "pasta", "rice"), FoodCategory.CARBS),
    (("snack",), FoodCategory.SNACKS),
    (("beverage", "drink"), FoodCategory.BEVERAGES),
    (("sauce", "condiment"), FoodCategory.CONDIMENTS),
    (("oil", "fat"), FoodCategory.FATS),
    (("supplement",), FoodCategory.SUPPLEMENTS),
)

_BARCODE = re.compile(r"^\d{8,13}$")
_SERVING_GRAMS = re.compile(r"(\d+(?:\.\d+)?)\s*g", re.IGNORECASE)
KJ_PER_KCAL = 4.184

_logger = logging.getLogger(__name__)


def is_barcode(query: str) -> bool:
    """Return True for 8 to 13 digit strings."""
    return bool(_BARCODE.match(query.strip()))


class FoodGateway(Protocol):
    """Network food source consulted by the search orchestrator."""

    async def search_by_text(self, query: str, limit: int = 10) -> list[FoodRecord]:
        """Return foods matching free text; empty on failure."""

    async def lookup_by_barcode(self, code: str) -> FoodRecord | None:
        """Return the product for a barcode, if found."""

    def should_call_network(self, query: str) -> bool:
        """Return True when the network is likely worth the latency."""


@dataclass
class ExternalFoodGateway(FoodGateway):
    """Gateway over the external nutrition API with caching and retries."""

    client: OpenFoodFactsClient
    cache: Cache
    search_ttl_seconds: int = 3600
    product_ttl_seconds: int = 86400
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3
    brand_keywords: tuple[str, ...] = BRAND_KEYWORDS

    async def search_by_text(self, query: str, limit: int = 10) -> list[FoodRecord]:
        """Search the external API; returns an empty list on failure."""
        cleaned = query.strip()
        if not cleaned:
            return []
        cache_key = f"off:search:{cleaned.lower()}:{limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        try:
            payload = await self._call_with_retry(
                lambda: self.client.search_products(cleaned, page_size=limit),
                action="search",
            )
        except (httpx.HTTPError, ValueError) as exc:
            _logger.warning("External search failed for %r: %s", cleaned, exc)
            return []
        foods: list[FoodRecord] = []
        for product in payload.get("products") or ():
            if not isinstance(product, Mapping):
                continue
            foods.append(transform_product(product))
        self.cache.set(cache_key, foods, ttl_seconds=self.search_ttl_seconds)
        _logger.info("External search: query=%s results=%s", cleaned, len(foods))
        return foods

    async def lookup_by_barcode(self, code: str) -> FoodRecord | None:
        """Look up a product by barcode; returns None if missing or on failure."""
        cleaned = code.strip()
        cache_key = f"off:product:{cleaned}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodRecord):
            return cached

        try:
            payload = await self._call_with_retry(
                lambda: self.client.get_product(cleaned),
                action=f"product:{cleaned}",
            )
        except (httpx.HTTPError, ValueError) as exc:
            _logger.warning("Barcode lookup failed for %s: %s", cleaned, exc)
            return None
        product = payload.get("product")
        if payload.get("status") != 1 or not isinstance(product, Mapping):
            return None
        food = transform_product(product)
        self.cache.set(cache_key, food, ttl_seconds=self.product_ttl_seconds)
        return food

    def should_call_network(self, query: str) -> bool:
        """Return True for barcodes and known brand names."""
        if is_barcode(query):
            return True
        lowered = query.lower()
        return any(brand in lowered for brand in self.brand_keywords)

    async def _call_with_retry(
        self, func: Callable[[], Awaitable[dict[str, object]]], *, action: str
    ) -> dict[str, object]:
        """Call an async function, retrying transient failures."""
        attempt = 0
        while True:
            try:
                return await func()
            except httpx.HTTPError as exc:
                attempt += 1
                status_code = _status_code_from_exception(exc)
                _logger.warning(
                    "External %s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    status_code,
                    exc,
                )
                if attempt > self.retry_attempts or status_code.startswith("4"):
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def transform_product(product: Mapping[str, object]) -> FoodRecord:
    """Map an external product onto a food record (values per 100g)."""
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, Mapping):
        nutriments = {}
    brand = str(product.get("brands") or "").strip()
    name = str(
        product.get("product_name") or product.get("product_name_en") or ""
    ).strip() or "Unknown Product"
    display_name = f"{name} ({brand})" if brand else name

    calories = _nutrient(nutriments, "energy-kcal_100g")
    if calories is None:
        energy_kj = _nutrient(nutriments, "energy_100g")
        calories = energy_kj / KJ_PER_KCAL if energy_kj is not None else 0.0

    code = str(product.get("code") or product.get("_id") or "").strip()
    return FoodRecord(
        id=code or display_name.lower(),
        name=display_name,
        source=FoodSource.API,
        brand=brand or None,
        calories=float(round(calories)),
        protein=_one_decimal(nutriments, "proteins_100g"),
        carbs=_one_decimal(nutriments, "carbohydrates_100g"),
        fat=_one_decimal(nutriments, "fat_100g"),
        fiber=_one_decimal(nutriments, "fiber_100g"),
        sugar=_one_decimal(nutriments, "sugars_100g"),
        sodium=float(round((_nutrient(nutriments, "sodium_100g") or 0.0) * 1000)),
        serving_size=str(product.get("serving_size") or "100g"),
        serving_quantity=parse_serving_quantity(product),
        category=infer_category(product.get("categories")),
        barcode=code or None,
        image_url=_optional_str(
            product.get("image_url") or product.get("image_front_url")
        ),
        nutrition_grade=_optional_str(product.get("nutrition_grades")),
        nova_group=_optional_int(product.get("nova_group")),
    )


def infer_category(raw: object) -> FoodCategory:
    """Infer a food category from an external category string."""
    if not isinstance(raw, str) or not raw:
        return FoodCategory.OTHER
    lowered = raw.lower()
    for keywords, category in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return FoodCategory.OTHER


def parse_serving_quantity(product: Mapping[str, object]) -> float:
    """Return the serving basis in grams, defaulting to 100."""
    explicit = product.get("serving_quantity")
    if explicit not in (None, ""):
        try:
            return float(explicit)
        except (TypeError, ValueError):
            pass
    serving_size = product.get("serving_size")
    if isinstance(serving_size, str):
        match = _SERVING_GRAMS.search(serving_size)
        if match:
            return float(match.group(1))
    return 100.0


def _nutrient(nutriments: Mapping[str, object], key: str) -> float | None:
    value = nutriments.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _one_decimal(nutriments: Mapping[str, object], key: str) -> float:
    return round(_nutrient(nutriments, key) or 0.0, 1)


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: object) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None
