"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from food_lookup.domain.foods import FoodCategory

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    dataset_bucket: str = "food-database"
    dataset_path: str = "food_database/curatedFoods.json"
    dataset_version_path: str = "food_database/version.json"
    cache_dir: str = ".cache/food_lookup"
    update_check_interval_seconds: int = 24 * 60 * 60
    off_base_url: str = "https://world.openfoodfacts.org/api/v2"
    off_user_agent: str = "food-lookup/0.1"
    network_timeout_seconds: float = 8.0
    default_search_limit: int = 50
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_category(raw: str | None) -> FoodCategory | None:
    """Parse a category query parameter; blank or unknown values mean no filter."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    category = FoodCategory.parse(cleaned)
    if category is FoodCategory.OTHER and cleaned.lower() != "other":
        return None
    return category
