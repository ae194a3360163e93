"""Services for user-contributed foods."""

from dataclasses import dataclass
from typing import Protocol

from food_lookup.domain.foods import FoodCategory, FoodRecord
from food_lookup.services.scoring import QueryTerm, normalize_query, rank_foods


class UserFoodRepository(Protocol):
    """Persistence interface for user-contributed foods."""

    def create_food(self, user_id: str, payload: dict[str, object]) -> FoodRecord:
        """Create a food entry and return it."""

    def search_foods(self, user_id: str, query: str, limit: int) -> list[FoodRecord]:
        """Search a user's foods by name or brand."""

    def list_foods(self, user_id: str, limit: int) -> list[FoodRecord]:
        """Return a user's most recent foods."""

    def delete_food(self, user_id: str, food_id: str) -> None:
        """Delete one of a user's foods."""


@dataclass
class UserFoodService:
    """Application service for user-contributed foods."""

    repository: UserFoodRepository

    def add_food(self, user_id: str, payload: dict[str, object]) -> FoodRecord:
        """Validate, normalize and store a custom food."""
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("Food name is required")
        calories = payload.get("calories")
        if not isinstance(calories, int | float) or calories < 0:
            raise ValueError("Valid calories value is required")

        brand = str(payload.get("brand") or "").strip()
        normalized: dict[str, object] = {
            "name": name,
            "brand": brand or None,
            "calories": round(calories),
            "protein": _one_decimal(payload.get("protein")),
            "carbs": _one_decimal(payload.get("carbs")),
            "fat": _one_decimal(payload.get("fat")),
            "fiber": _one_decimal(payload.get("fiber")),
            "sugar": _one_decimal(payload.get("sugar")),
            "sodium": round(_number(payload.get("sodium"))),
            "serving_size": str(payload.get("serving_size") or "100g"),
            "serving_quantity": _number(payload.get("serving_quantity")) or 100,
            "category": FoodCategory.parse(payload.get("category")).value,
            "barcode": payload.get("barcode") or None,
        }
        return self.repository.create_food(user_id, normalized)

    def search(
        self, user_id: str, query: str | list[QueryTerm], limit: int = 20
    ) -> list[FoodRecord]:
        """Search a user's foods and rank them by relevance."""
        terms = normalize_query(query) if isinstance(query, str) else query
        if not terms:
            return []
        candidates: dict[str, FoodRecord] = {}
        for term in terms:
            if term.is_trivial:
                continue
            for variant in term.variants:
                for food in self.repository.search_foods(user_id, variant, limit):
                    candidates.setdefault(food.id, food)
        return rank_foods(candidates.values(), terms)[:limit]

    def list_foods(self, user_id: str, limit: int = 50) -> list[FoodRecord]:
        """Return a user's foods, newest first."""
        return self.repository.list_foods(user_id, limit)

    def delete_food(self, user_id: str, food_id: str) -> None:
        """Delete a user's food."""
        self.repository.delete_food(user_id, food_id)


def _number(value: object) -> float:
    if isinstance(value, int | float):
        return float(value)
    return 0.0


def _one_decimal(value: object) -> float:
    return round(_number(value), 1)
