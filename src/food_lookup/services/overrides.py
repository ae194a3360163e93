"""Hand-checked entries for foods whose database values are often wrong."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from food_lookup.domain.foods import FoodCategory, FoodRecord, FoodSource, ServingOption

OVERRIDE_SCORE = 10000.0


def _override(key: str, **values: object) -> FoodRecord:
    return FoodRecord(
        id=f"override:{key.replace(' ', '-')}",
        source=FoodSource.OVERRIDE,
        verified=True,
        **values,  # type: ignore[arg-type]
    )


DEFAULT_OVERRIDES: dict[str, FoodRecord] = {
    "egg whites": _override(
        "egg whites",
        name="Egg Whites (liquid)",
        calories=52,
        protein=11,
        carbs=0.7,
        fat=0.2,
        category=FoodCategory.PROTEIN,
        common_servings=(
            ServingOption("1 large egg white (33g)", 33),
            ServingOption("3 egg whites (100g)", 100),
            ServingOption("6 egg whites (200g)", 200),
            ServingOption("1 cup (243g)", 243),
        ),
    ),
    "egg white": _override(
        "egg white",
        name="Egg White (from 1 large egg)",
        calories=17,
        protein=3.6,
        carbs=0.2,
        fat=0.1,
        serving_size="1 egg white (33g)",
        serving_quantity=33,
        category=FoodCategory.PROTEIN,
    ),
    "feta cheese": _override(
        "feta cheese",
        name="Feta Cheese",
        calories=264,
        protein=14.2,
        carbs=4.1,
        fat=21.3,
        category=FoodCategory.DAIRY,
        common_servings=(
            ServingOption("1 oz (28g)", 28),
            ServingOption("1/4 cup crumbled (38g)", 38),
            ServingOption("100g", 100),
        ),
    ),
    "chicken breast": _override(
        "chicken breast",
        name="Chicken Breast (boneless, skinless, cooked)",
        calories=165,
        protein=31,
        carbs=0,
        fat=3.6,
        category=FoodCategory.PROTEIN,
        common_servings=(
            ServingOption("3 oz (85g)", 85),
            ServingOption("4 oz (113g)", 113),
            ServingOption("6 oz (170g)", 170),
            ServingOption("1 breast (174g)", 174),
        ),
    ),
    "chicken breast raw": _override(
        "chicken breast raw",
        name="Chicken Breast (boneless, skinless, raw)",
        calories=120,
        protein=22.5,
        carbs=0,
        fat=2.6,
        category=FoodCategory.PROTEIN,
    ),
}


MEAT_WORDS = ("chicken", "beef", "fish")
LIQUID_WORDS = ("milk", "juice")

PROTEIN_SERVINGS = (
    ServingOption("3 oz (85g)", 85),
    ServingOption("4 oz (113g)", 113),
    ServingOption("6 oz (170g)", 170),
    ServingOption("8 oz (227g)", 227),
    ServingOption("100g", 100),
)
LIQUID_SERVINGS = (
    ServingOption("1 cup (240ml)", 240),
    ServingOption("12 oz (355ml)", 355),
    ServingOption("16 oz (473ml)", 473),
    ServingOption("100ml", 100),
)


def default_servings(food: FoodRecord) -> tuple[ServingOption, ...]:
    """Return generic portion choices for a food without its own."""
    name = food.name.lower()
    if food.category is FoodCategory.PROTEIN or any(
        word in name for word in MEAT_WORDS
    ):
        return PROTEIN_SERVINGS
    if food.category is FoodCategory.BEVERAGES or any(
        word in name for word in LIQUID_WORDS
    ):
        return LIQUID_SERVINGS
    return (
        ServingOption("100g", 100),
        ServingOption("1 serving", food.serving_quantity or 100),
        ServingOption("1 cup (240g)", 240),
        ServingOption("1 oz (28g)", 28),
    )


@dataclass
class OverrideTable:
    """Fixed map from lower-cased keys to trusted records.

    Matching is containment in either direction, so very short queries can
    hit several keys.
    """

    entries: Mapping[str, FoodRecord] = field(
        default_factory=lambda: dict(DEFAULT_OVERRIDES)
    )

    def match(self, query: str) -> list[FoodRecord]:
        """Return every override whose key contains or is contained in the query."""
        lowered = query.lower().strip()
        if not lowered:
            return []
        return [
            food
            for key, food in self.entries.items()
            if lowered in key or key in lowered
        ]

    def get(self, name: str) -> FoodRecord | None:
        """Return the override stored under an exact name."""
        return self.entries.get(name.lower().strip())

    def servings_for(self, food: FoodRecord) -> tuple[ServingOption, ...]:
        """Return portion choices for a food.

        Explicit servings win, then those of an override with the same name,
        then defaults picked by category and name.
        """
        if food.common_servings:
            return food.common_servings
        trusted = self.get(food.name)
        if trusted is not None and trusted.common_servings:
            return trusted.common_servings
        return default_servings(food)
