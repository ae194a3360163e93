"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from food_lookup.domain.foods import FoodCategory

if TYPE_CHECKING:
    from food_lookup.containers import AppContainer
    from food_lookup.domain.foods import DatasetStats

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.post("/refresh", dependencies=[Depends(require_admin)])
async def force_refresh(request: Request) -> dict[str, object]:
    """Download the published dataset now, ignoring the update throttle."""
    container: AppContainer = request.app.state.container
    updated = await container.search_service.force_refresh()
    stats = container.curated_store.get_stats()
    return {"updated": updated, "version": stats.version}


@router.post("/cache/clear", dependencies=[Depends(require_admin)])
async def clear_cache(request: Request) -> dict[str, str]:
    """Delete the persisted curated dataset and update timestamps."""
    container: AppContainer = request.app.state.container
    await container.curated_store.clear_cache()
    return {"status": "ok"}


@router.get("/stats", dependencies=[Depends(require_admin)])
async def dataset_stats(request: Request) -> dict[str, object]:
    """Return curated dataset statistics plus refresh state."""
    container: AppContainer = request.app.state.container
    stats = await container.search_service.get_stats()
    return {
        **stats_payload(stats),
        "is_updating": container.curated_store.is_updating,
    }


def stats_payload(stats: DatasetStats) -> dict[str, object]:
    """Serialize dataset statistics."""
    return {
        "version": stats.version,
        "total_count": stats.total_count,
        "per_category_count": stats.per_category_count,
        "categories": [
            category.value
            for category in FoodCategory
            if category.value in stats.per_category_count
        ],
    }
