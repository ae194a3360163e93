"""Secondary bundled food database consulted for comprehensive searches."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from food_lookup.domain.foods import FoodRecord, FoodSource, food_from_payload
from food_lookup.services.curated import DATA_DIR
from food_lookup.services.scoring import QueryTerm, normalize_query, rank_foods

LOCAL_FOODS_PATH = DATA_DIR / "local_foods.json"

_logger = logging.getLogger(__name__)


def fix_nutrition(food: FoodRecord) -> FoodRecord | None:
    """Fill in missing calories from macros; drop foods with no nutrition."""
    if food.calories > 0:
        return food
    if food.protein > 0 or food.carbs > 0 or food.fat > 0:
        calories = round(food.protein * 4 + food.carbs * 4 + food.fat * 9)
        return replace(food, calories=float(calories))
    return None


def load_local_foods(payload: Mapping[str, object]) -> list[FoodRecord]:
    """Parse and repair the bundled local food list."""
    foods: list[FoodRecord] = []
    for item in payload.get("foods") or ():
        if not isinstance(item, Mapping):
            continue
        try:
            food = food_from_payload(item, FoodSource.LOCAL, id_prefix="local_")
        except ValueError:
            continue
        fixed = fix_nutrition(food)
        if fixed is not None:
            foods.append(fixed)
    return foods


@dataclass
class LocalFoodDatabase:
    """Broader but less curated local food list."""

    foods: list[FoodRecord] = field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path = LOCAL_FOODS_PATH) -> "LocalFoodDatabase":
        """Load the database from JSON; a missing file yields an empty database."""
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("Local food database unavailable: %s", exc)
            return cls()
        return cls(foods=load_local_foods(payload))

    def search(
        self, query: str | list[QueryTerm], limit: int = 50
    ) -> list[FoodRecord]:
        """Search the database by relevance."""
        terms = normalize_query(query) if isinstance(query, str) else query
        if not terms:
            return []
        return rank_foods(self.foods, terms)[:limit]
