"""Supabase implementation for user-contributed foods."""

from dataclasses import dataclass

from supabase import Client

from food_lookup.domain.foods import FoodRecord, FoodSource, food_from_payload
from food_lookup.services.user_foods import UserFoodRepository

_TABLE = "user_foods"
_ID_PREFIX = "user_"


@dataclass
class SupabaseUserFoodRepository(UserFoodRepository):
    """Supabase-backed repository for user-contributed foods."""

    client: Client

    def create_food(self, user_id: str, payload: dict[str, object]) -> FoodRecord:
        """Create a food entry and return it."""
        response = (
            self.client.table(_TABLE)
            .insert({"user_id": user_id, **payload})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create user food")
        return _parse_food(response.data[0])

    def search_foods(self, user_id: str, query: str, limit: int) -> list[FoodRecord]:
        """Search a user's foods by name, then by brand."""
        pattern = f"%{query}%"
        name_response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .ilike("name", pattern)
            .limit(limit)
            .execute()
        )
        foods = [_parse_food(row) for row in name_response.data or []]
        if len(foods) >= limit:
            return foods

        brand_response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .ilike("brand", pattern)
            .limit(limit)
            .execute()
        )
        seen = {food.id for food in foods}
        for row in brand_response.data or []:
            food = _parse_food(row)
            if food.id not in seen:
                foods.append(food)
                seen.add(food.id)
        return foods[:limit]

    def list_foods(self, user_id: str, limit: int) -> list[FoodRecord]:
        """Return a user's most recent foods."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_food(row) for row in response.data or []]

    def delete_food(self, user_id: str, food_id: str) -> None:
        """Delete one of a user's foods."""
        self.client.table(_TABLE).delete().eq("user_id", user_id).eq(
            "id", food_id.removeprefix(_ID_PREFIX)
        ).execute()


def _parse_food(row: dict[str, object]) -> FoodRecord:
    """Parse a user food row into a domain model."""
    return food_from_payload(row, FoodSource.USER, id_prefix=_ID_PREFIX)
