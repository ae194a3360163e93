"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, status

from food_lookup.api.admin import router as admin_router
from food_lookup.api.admin import stats_payload
from food_lookup.api.models import UserFoodCreate
from food_lookup.app_logging import configure_logging
from food_lookup.config import parse_category
from food_lookup.containers import AppContainer
from food_lookup.domain.foods import (
    FoodRecord,
    SearchOptions,
    food_to_payload,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)
    default_limit = container.settings.default_search_limit

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await app.state.container.curated_store.initialize()
        except Exception:
            logger.exception("Failed to initialize curated foods")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/foods/search")
    async def search_foods(  # noqa: PLR0913
        request: Request,
        q: str = "",
        include_api: bool = False,
        limit: int | None = Query(default=None, ge=1),
        category: str | None = None,
        min_protein: float | None = None,
        max_calories: float | None = None,
        min_calories: float | None = None,
        user_id: str | None = None,
    ) -> dict[str, object]:
        """Search foods across every tier."""
        state_container: AppContainer = request.app.state.container
        options = SearchOptions(
            include_api=include_api,
            limit=limit or default_limit,
            category=parse_category(category),
            min_protein=min_protein,
            max_calories=max_calories,
            min_calories=min_calories,
            user_id=user_id,
        )
        foods = await state_container.search_service.search(q, options)
        return {"query": q, "foods": _serialize(foods)}

    @app.get("/foods/barcode/{code}")
    async def lookup_barcode(code: str, request: Request) -> dict[str, object]:
        """Look up a packaged product by barcode."""
        state_container: AppContainer = request.app.state.container
        food = await state_container.search_service.lookup_barcode(code)
        if food is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return food_to_payload(food)

    @app.get("/foods/categories")
    async def list_categories(request: Request) -> dict[str, object]:
        """Return the categories present in the curated dataset."""
        state_container: AppContainer = request.app.state.container
        categories = await state_container.search_service.get_categories()
        return {"categories": [category.value for category in categories]}

    @app.get("/foods/categories/{category}")
    async def foods_in_category(
        category: str, request: Request, limit: int = Query(default=50, ge=1)
    ) -> dict[str, object]:
        """Return curated foods in a category."""
        state_container: AppContainer = request.app.state.container
        parsed = parse_category(category)
        if parsed is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        foods = await state_container.search_service.search_by_category(parsed, limit)
        return {"category": parsed.value, "foods": _serialize(foods)}

    @app.get("/foods/popular")
    async def popular_foods(
        request: Request, limit: int = Query(default=20, ge=1)
    ) -> dict[str, object]:
        """Return popular curated foods."""
        state_container: AppContainer = request.app.state.container
        foods = await state_container.search_service.get_popular(limit)
        return {"foods": _serialize(foods)}

    @app.get("/foods/high-protein")
    async def high_protein_foods(
        request: Request,
        min_protein: float = 20,
        limit: int = Query(default=20, ge=1),
    ) -> dict[str, object]:
        """Return curated foods with at least min_protein grams."""
        state_container: AppContainer = request.app.state.container
        foods = await state_container.search_service.get_high_protein(
            min_protein, limit
        )
        return {"foods": _serialize(foods)}

    @app.get("/foods/low-calorie")
    async def low_calorie_foods(
        request: Request,
        max_calories: float = 100,
        limit: int = Query(default=20, ge=1),
    ) -> dict[str, object]:
        """Return curated foods with at most max_calories kcal."""
        state_container: AppContainer = request.app.state.container
        foods = await state_container.search_service.get_low_calorie(
            max_calories, limit
        )
        return {"foods": _serialize(foods)}

    @app.get("/foods/stats")
    async def food_stats(request: Request) -> dict[str, object]:
        """Return curated dataset statistics."""
        state_container: AppContainer = request.app.state.container
        stats = await state_container.search_service.get_stats()
        return stats_payload(stats)

    @app.get("/foods/{food_id}")
    async def get_food(food_id: str, request: Request) -> dict[str, object]:
        """Return a curated food by id."""
        state_container: AppContainer = request.app.state.container
        food = await state_container.search_service.get_food(food_id)
        if food is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return food_to_payload(food)

    @app.get("/restaurants")
    async def list_restaurants(request: Request) -> dict[str, object]:
        """Return the restaurants with bundled menus."""
        state_container: AppContainer = request.app.state.container
        restaurants = state_container.restaurant_service.list_restaurants()
        return {
            "restaurants": [
                {"id": restaurant.id, "name": restaurant.name}
                for restaurant in restaurants
            ]
        }

    @app.get("/restaurants/{restaurant_id}")
    async def get_restaurant(restaurant_id: str, request: Request) -> dict[str, object]:
        """Return a restaurant and its menu."""
        state_container: AppContainer = request.app.state.container
        restaurant = state_container.restaurant_service.get_restaurant(
            restaurant_id.lower()
        )
        if restaurant is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {
            "id": restaurant.id,
            "name": restaurant.name,
            "menu": _serialize(list(restaurant.menu)),
        }

    @app.post("/users/{user_id}/foods", status_code=status.HTTP_201_CREATED)
    async def add_user_food(
        user_id: str, payload: UserFoodCreate, request: Request
    ) -> dict[str, object]:
        """Store a custom food for a user."""
        state_container: AppContainer = request.app.state.container
        try:
            food = await asyncio.to_thread(
                state_container.user_food_service.add_food,
                user_id,
                payload.model_dump(exclude_none=True),
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return food_to_payload(food)

    return app


def _serialize(foods: list[FoodRecord]) -> list[dict[str, object]]:
    return [food_to_payload(food) for food in foods]
