"""Static restaurant menu dataset."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from food_lookup.domain.foods import (
    FoodCategory,
    FoodRecord,
    FoodSource,
    food_from_payload,
)
from food_lookup.services.curated import DATA_DIR
from food_lookup.services.scoring import QueryTerm, normalize_query, rank_foods

RESTAURANTS_PATH = DATA_DIR / "restaurants.json"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Restaurant:
    """A restaurant and its menu items."""

    id: str
    name: str
    menu: tuple[FoodRecord, ...]


def load_restaurants(payload: Mapping[str, object]) -> list[Restaurant]:
    """Parse the bundled restaurant dataset."""
    restaurants: list[Restaurant] = []
    for entry in payload.get("restaurants") or ():
        if not isinstance(entry, Mapping) or not entry.get("name"):
            continue
        restaurant_id = str(entry.get("id") or entry["name"]).lower()
        name = str(entry["name"])
        items: list[FoodRecord] = []
        for item in entry.get("menu") or ():
            if not isinstance(item, Mapping) or not item.get("name"):
                continue
            food = food_from_payload(
                {
                    "category": FoodCategory.RESTAURANT.value,
                    **item,
                    "brand": name,
                },
                FoodSource.RESTAURANT,
                id_prefix=f"{restaurant_id}:",
            )
            items.append(food)
        restaurants.append(Restaurant(id=restaurant_id, name=name, menu=tuple(items)))
    return restaurants


@dataclass
class RestaurantMenuService:
    """Searches the static restaurant menu dataset."""

    restaurants: list[Restaurant] = field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path = RESTAURANTS_PATH) -> "RestaurantMenuService":
        """Load restaurants from a JSON file; a missing file yields no menus."""
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("Restaurant dataset unavailable: %s", exc)
            return cls()
        return cls(restaurants=load_restaurants(payload))

    def list_restaurants(self) -> list[Restaurant]:
        """Return every restaurant."""
        return list(self.restaurants)

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Return a restaurant by id."""
        for restaurant in self.restaurants:
            if restaurant.id == restaurant_id:
                return restaurant
        return None

    def search(
        self, query: str | list[QueryTerm], limit: int = 20
    ) -> list[FoodRecord]:
        """Search menu items by name, restaurant or category."""
        terms = normalize_query(query) if isinstance(query, str) else query
        if not terms:
            return []
        items = [food for restaurant in self.restaurants for food in restaurant.menu]
        return rank_foods(items, terms)[:limit]
