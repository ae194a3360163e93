"""Pydantic models for request payloads."""

from pydantic import BaseModel


class UserFoodCreate(BaseModel):
    """Custom food submitted by a user."""

    name: str
    calories: float
    brand: str | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None
    serving_size: str | None = None
    serving_quantity: float | None = None
    category: str | None = None
    barcode: str | None = None
