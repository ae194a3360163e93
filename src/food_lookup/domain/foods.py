"""Food domain models."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType


class FoodCategory(StrEnum):
    """Fixed set of food categories."""

    PROTEIN = "Protein"
    DAIRY = "Dairy"
    CARBS = "Carbs"
    FRUITS = "Fruits"
    VEGETABLES = "Vegetables"
    FATS = "Fats"
    SUPPLEMENTS = "Supplements"
    BEVERAGES = "Beverages"
    CONDIMENTS = "Condiments"
    SNACKS = "Snacks"
    FAST_FOOD = "Fast Food"
    RESTAURANT = "Restaurant"
    HOMEMADE = "Homemade"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: object) -> "FoodCategory":
        """Map a raw category label onto the enum, defaulting to Other."""
        if isinstance(raw, FoodCategory):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            return cls.OTHER
        cleaned = raw.strip().lower()
        for category in cls:
            if category.value.lower() == cleaned:
                return category
        return _LEGACY_CATEGORIES.get(cleaned, cls.OTHER)


_LEGACY_CATEGORIES = {
    "proteins": FoodCategory.PROTEIN,
    "meat": FoodCategory.PROTEIN,
    "grains": FoodCategory.CARBS,
    "fruit": FoodCategory.FRUITS,
    "vegetable": FoodCategory.VEGETABLES,
    "snack": FoodCategory.SNACKS,
    "beverage": FoodCategory.BEVERAGES,
    "fastfood": FoodCategory.FAST_FOOD,
    "general": FoodCategory.OTHER,
}


class FoodSource(StrEnum):
    """Origin tier of a food record."""

    CURATED = "curated"
    USER = "user"
    RESTAURANT = "restaurant"
    OVERRIDE = "override"
    API = "api"
    LOCAL = "local"


@dataclass(frozen=True)
class ServingOption:
    """A common portion size for a food."""

    label: str
    grams: float


@dataclass(frozen=True)
class FoodRecord:
    """Nutrition record returned by every search tier.

    Macros are per reference serving: kcal for calories, grams for
    protein/carbs/fat/fiber/sugar and milligrams for sodium.
    """

    id: str
    name: str
    source: FoodSource
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    brand: str | None = None
    serving_size: str = "100g"
    serving_quantity: float = 100.0
    category: FoodCategory = FoodCategory.OTHER
    verified: bool = False
    popularity_score: float | None = None
    aliases: tuple[str, ...] = ()
    barcode: str | None = None
    image_url: str | None = None
    nutrition_grade: str | None = None
    nova_group: int | None = None
    common_servings: tuple[ServingOption, ...] = ()

    @property
    def is_valid(self) -> bool:
        """Return False when the record carries no nutrition at all."""
        return not (
            self.calories == 0
            and self.protein == 0
            and self.carbs == 0
            and self.fat == 0
        )


@dataclass(frozen=True)
class CuratedDataset:
    """Versioned curated dataset with a category index.

    Instances are never mutated; a refresh builds a new dataset and swaps
    the store's reference.
    """

    version: int
    records: tuple[FoodRecord, ...]
    category_index: Mapping[FoodCategory, tuple[FoodRecord, ...]] = field(
        default_factory=dict
    )

    @classmethod
    def build(cls, version: int, records: Iterable[FoodRecord]) -> "CuratedDataset":
        """Create a dataset and derive its category index."""
        ordered = tuple(records)
        index: dict[FoodCategory, list[FoodRecord]] = {}
        for record in ordered:
            index.setdefault(record.category, []).append(record)
        frozen_index = MappingProxyType(
            {category: tuple(items) for category, items in index.items()}
        )
        return cls(version=version, records=ordered, category_index=frozen_index)

    @classmethod
    def empty(cls) -> "CuratedDataset":
        """Return a dataset with no records."""
        return cls.build(0, ())


@dataclass(frozen=True)
class SearchOptions:
    """Options accepted by a food search."""

    include_api: bool = False
    limit: int = 50
    category: FoodCategory | None = None
    min_protein: float | None = None
    max_calories: float | None = None
    min_calories: float | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class DatasetStats:
    """Summary of the loaded curated dataset."""

    version: int
    total_count: int
    per_category_count: dict[str, int]


def food_from_payload(
    payload: Mapping[str, object], source: FoodSource, *, id_prefix: str = ""
) -> FoodRecord:
    """Build a food record from its JSON representation."""
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValueError("Food name is required")
    raw_id = payload.get("id")
    food_id = str(raw_id) if raw_id not in (None, "") else _slug(name)
    return FoodRecord(
        id=f"{id_prefix}{food_id}",
        name=name,
        source=source,
        brand=_optional_str(payload.get("brand")),
        calories=_number(payload.get("calories")),
        protein=_number(payload.get("protein")),
        carbs=_number(payload.get("carbs")),
        fat=_number(payload.get("fat")),
        fiber=_number(payload.get("fiber")),
        sugar=_number(payload.get("sugar")),
        sodium=_number(payload.get("sodium")),
        serving_size=str(payload.get("serving_size") or "100g"),
        serving_quantity=_number(payload.get("serving_quantity"), default=100.0),
        category=FoodCategory.parse(payload.get("category")),
        verified=bool(payload.get("verified", False)),
        popularity_score=_optional_number(payload.get("popularity_score")),
        aliases=tuple(str(alias) for alias in payload.get("aliases") or ()),
        barcode=_optional_str(payload.get("barcode")),
        image_url=_optional_str(payload.get("image_url")),
        nutrition_grade=_optional_str(payload.get("nutrition_grade")),
        nova_group=_optional_int(payload.get("nova_group")),
        common_servings=tuple(
            ServingOption(label=str(item["label"]), grams=_number(item.get("value")))
            for item in payload.get("common_servings") or ()
            if isinstance(item, Mapping) and "label" in item
        ),
    )


def food_to_payload(food: FoodRecord) -> dict[str, object]:
    """Serialize a food record into its JSON representation."""
    return {
        "id": food.id,
        "name": food.name,
        "brand": food.brand,
        "calories": food.calories,
        "protein": food.protein,
        "carbs": food.carbs,
        "fat": food.fat,
        "fiber": food.fiber,
        "sugar": food.sugar,
        "sodium": food.sodium,
        "serving_size": food.serving_size,
        "serving_quantity": food.serving_quantity,
        "category": food.category.value,
        "source": food.source.value,
        "verified": food.verified,
        "popularity_score": food.popularity_score,
        "aliases": list(food.aliases),
        "barcode": food.barcode,
        "image_url": food.image_url,
        "nutrition_grade": food.nutrition_grade,
        "nova_group": food.nova_group,
        "common_servings": [
            {"label": serving.label, "value": serving.grams}
            for serving in food.common_servings
        ],
    }


def _slug(name: str) -> str:
    return "-".join(name.lower().split())


def _number(value: object, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_number(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value: object) -> int | None:
    number = _optional_number(value)
    return int(number) if number is not None else None


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
