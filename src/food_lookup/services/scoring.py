"""Relevance scoring and name normalization for food search."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from food_lookup.domain.foods import FoodRecord

STOPWORDS = frozenset({"the", "a", "an", "of", "with", "and"})
MODIFIER_WORDS = frozenset(
    {
        "frozen",
        "fresh",
        "raw",
        "cooked",
        "grilled",
        "baked",
        "fried",
        "steamed",
        "organic",
        "natural",
        "the",
        "a",
        "an",
        "of",
        "with",
    }
)
MIN_TERM_LENGTH = 2
FUZZY_MIN_LENGTH = 4

EXACT_SCORE = 200
PREFIX_SCORE = 150
WORD_SCORE = 100
SUBSTRING_SCORE = 80
ALIAS_SCORE = 60
BRAND_SCORE = 40
FUZZY_SCORE = 30
CATEGORY_SCORE = 5
ALL_TERMS_BONUS = 50
VERIFIED_BONUS = 2
POPULARITY_WEIGHT = 0.01

# Not exhaustive; extend per deployment.
SPELLING_VARIANTS: dict[str, tuple[str, ...]] = {
    "pita": ("pitta",),
    "yogurt": ("yoghurt",),
    "donut": ("doughnut",),
    "fiber": ("fibre",),
    "color": ("colour",),
    "flavored": ("flavoured",),
    "chili": ("chilli",),
    "ketchup": ("catsup",),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_FOREIGN_ANNOTATION = re.compile(
    r"\([^)]*[^A-Za-zÀ-ɏ0-9\s,.'’‘“”®™©&%/+\-:;!?\"][^)]*\)"
)


@dataclass(frozen=True)
class QueryTerm:
    """One query token with its alternate spellings.

    A hit on any variant counts as a hit on the term.
    """

    text: str
    variants: tuple[str, ...]

    @property
    def is_trivial(self) -> bool:
        """Return True for terms ignored by scoring."""
        return len(self.text) < MIN_TERM_LENGTH or self.text in STOPWORDS


def normalize_query(
    raw: str, spelling_variants: Mapping[str, tuple[str, ...]] | None = None
) -> list[QueryTerm]:
    """Split a raw query into terms with plural and spelling variants."""
    if spelling_variants is None:
        spelling_variants = SPELLING_VARIANTS
    table = _bidirectional(spelling_variants)
    terms: list[QueryTerm] = []
    for token in raw.lower().split():
        variants = [token]
        for candidate in _plural_variants(token):
            if candidate and candidate not in variants:
                variants.append(candidate)
        for base in list(variants):
            for spelling in table.get(base, ()):
                if spelling not in variants:
                    variants.append(spelling)
        terms.append(QueryTerm(text=token, variants=tuple(variants)))
    return terms


def _plural_variants(term: str) -> list[str]:
    variants: list[str] = []
    if term.endswith("ies"):
        variants.append(term[:-3] + "y")
    elif term.endswith("es"):
        variants.append(term[:-2])
    elif term.endswith("s") and len(term) > 3:
        variants.append(term[:-1])
    if not term.endswith("s") and len(term) > 2:
        if term.endswith("y"):
            variants.append(term[:-1] + "ies")
        else:
            variants.append(term + "s")
    return variants


def _bidirectional(
    table: Mapping[str, tuple[str, ...]],
) -> dict[str, tuple[str, ...]]:
    expanded: dict[str, list[str]] = {}
    for word, alternates in table.items():
        group = [word, *alternates]
        for member in group:
            others = expanded.setdefault(member, [])
            others.extend(
                other for other in group if other != member and other not in others
            )
    return {word: tuple(others) for word, others in expanded.items()}


def fuzzy_contains(text: str, term: str) -> bool:
    """Return True if some window of text differs from term by at most one char."""
    width = len(term)
    for start in range(len(text) - width + 1):
        differences = 0
        for offset in range(width):
            if text[start + offset] != term[offset]:
                differences += 1
                if differences > 1:
                    break
        if differences <= 1:
            return True
    return False


def _contains_word(name: str, term: str) -> bool:
    return f" {term}" in name or f"{term} " in name or name.endswith(term)


def _variant_score(food: FoodRecord, name: str, variant: str) -> int:
    if name == variant:
        return EXACT_SCORE
    if name.startswith(variant):
        return PREFIX_SCORE
    if _contains_word(name, variant):
        return WORD_SCORE
    if variant in name:
        return SUBSTRING_SCORE
    if any(variant in alias.lower() for alias in food.aliases):
        return ALIAS_SCORE
    if food.brand and variant in food.brand.lower():
        return BRAND_SCORE
    if len(variant) >= FUZZY_MIN_LENGTH and fuzzy_contains(name, variant):
        return FUZZY_SCORE
    return 0


def score_food(food: FoodRecord, terms: Iterable[QueryTerm]) -> float:
    """Score a food against normalized query terms; 0 means no match."""
    name = food.name.lower()
    category = food.category.value.lower()
    score = 0.0
    matched = 0
    considered = 0
    for term in terms:
        if term.is_trivial:
            continue
        considered += 1
        best = max(_variant_score(food, name, variant) for variant in term.variants)
        if best:
            score += best
            matched += 1
        elif matched and any(variant in category for variant in term.variants):
            score += CATEGORY_SCORE

    if matched == 0:
        return 0.0
    if matched == considered:
        score += ALL_TERMS_BONUS
    score += (food.popularity_score or 0) * POPULARITY_WEIGHT
    if food.verified:
        score += VERIFIED_BONUS
    return score


def rank_foods(
    foods: Iterable[FoodRecord],
    terms: list[QueryTerm],
    *,
    drop_unmatched: bool = True,
    pinned: Mapping[str, float] | None = None,
) -> list[FoodRecord]:
    """Sort foods by descending score, keeping input order for ties.

    ``pinned`` maps food ids to a forced score.
    """
    forced = pinned or {}
    scored: list[tuple[float, FoodRecord]] = []
    for food in foods:
        score = forced.get(food.id)
        if score is None:
            score = score_food(food, terms)
        if drop_unmatched and score <= 0:
            continue
        scored.append((score, food))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [food for _, food in scored]


def identity_key(name: str) -> str:
    """Return the deduplication key for a food name."""
    return _NON_ALNUM.sub("", name.lower())


def is_near_duplicate(first: str, second: str) -> bool:
    """Return True if two names denote the same food."""
    return identity_key(first) == identity_key(second)


def dedupe_foods(foods: Iterable[FoodRecord]) -> list[FoodRecord]:
    """Drop later foods whose name duplicates an earlier one."""
    seen: set[str] = set()
    unique: list[FoodRecord] = []
    for food in foods:
        key = identity_key(food.name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(food)
    return unique


def main_terms(terms: Iterable[QueryTerm]) -> list[QueryTerm]:
    """Return the terms left after stripping modifier words."""
    return [
        term
        for term in terms
        if term.text not in MODIFIER_WORDS and len(term.text) >= MIN_TERM_LENGTH
    ]


def name_matches_terms(name: str, terms: Iterable[QueryTerm]) -> bool:
    """Return True if the name contains at least one of the terms."""
    lowered = name.lower()
    for term in terms:
        for variant in term.variants:
            if variant in lowered:
                return True
            if len(variant) >= FUZZY_MIN_LENGTH and fuzzy_contains(lowered, variant):
                return True
    return False


def has_foreign_annotation(name: str) -> bool:
    """Return True if a parenthesized part of the name holds non-Latin text."""
    return bool(_FOREIGN_ANNOTATION.search(name))
