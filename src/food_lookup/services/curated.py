"""Curated food dataset: in-memory index, local cache and remote refresh."""

import asyncio
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol

from food_lookup.domain.foods import (
    CuratedDataset,
    DatasetStats,
    FoodCategory,
    FoodRecord,
    FoodSource,
    SearchOptions,
    food_from_payload,
    food_to_payload,
)
from food_lookup.services.scoring import QueryTerm, normalize_query, rank_foods

CACHE_KEY = "curated_foods_cache"
VERSION_KEY = "curated_foods_version"
LAST_CHECK_KEY = "curated_foods_last_check"

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
BUNDLED_DATASET_PATH = DATA_DIR / "curated_foods.json"

_logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Local persistent key-value store."""

    async def get(self, key: str) -> str | None:
        """Return the stored value for a key, if any."""

    async def set(self, key: str, value: str) -> None:
        """Store a value under a key."""

    async def remove(self, key: str) -> None:
        """Delete a key if present."""


class RemoteDatasetStore(Protocol):
    """Remote object store holding the published dataset."""

    async def fetch_version(self) -> dict[str, object]:
        """Return the small version descriptor."""

    async def fetch_dataset(self) -> dict[str, object]:
        """Return the full dataset payload."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def dataset_from_payload(payload: object) -> CuratedDataset:
    """Build a curated dataset from its published JSON shape."""
    if not isinstance(payload, Mapping):
        raise ValueError("curated dataset payload must be a JSON object")
    records: list[FoodRecord] = []
    for item in payload.get("foods") or ():
        if not isinstance(item, Mapping):
            continue
        try:
            records.append(food_from_payload(item, FoodSource.CURATED))
        except ValueError:
            _logger.warning("Skipping curated food without a name: %s", item)
    version = int(payload.get("version") or 1)
    return CuratedDataset.build(version, records)


def dataset_to_payload(dataset: CuratedDataset) -> dict[str, object]:
    """Serialize a curated dataset into its published JSON shape."""
    return {
        "version": dataset.version,
        "foods": [food_to_payload(record) for record in dataset.records],
    }


@dataclass
class CuratedFoodStore:
    """Owns the curated dataset and keeps it fresh in the background.

    The dataset reference is swapped whole; readers never see a partially
    built index.
    """

    cache_store: CacheStore
    remote_store: RemoteDatasetStore | None
    bundled_path: Path = BUNDLED_DATASET_PATH
    update_check_interval_seconds: int = 24 * 60 * 60
    check_updates_on_init: bool = True
    clock: Callable[[], datetime] = _utcnow
    _dataset: CuratedDataset = field(default_factory=CuratedDataset.empty)
    _loaded: bool = False
    _init_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _refresh_task: "asyncio.Task[bool] | None" = None
    background_task: "asyncio.Task[None] | None" = None

    @property
    def dataset(self) -> CuratedDataset:
        """Return the current dataset snapshot."""
        return self._dataset

    @property
    def is_loaded(self) -> bool:
        """Return True once initialize() has completed."""
        return self._loaded

    @property
    def is_updating(self) -> bool:
        """Return True while a refresh is in flight."""
        return self._refresh_task is not None and not self._refresh_task.done()

    async def initialize(self) -> None:
        """Load the cache or bundled snapshot, then check for updates."""
        async with self._init_lock:
            if self._loaded:
                return
            try:
                dataset = await self._load_from_cache()
            except Exception:
                _logger.exception("Curated cache load failed, using bundled foods")
                dataset = None
            if dataset is None:
                dataset = self._load_bundled()
            self._dataset = dataset
            self._loaded = True
            _logger.info(
                "Curated foods loaded: version=%s foods=%s",
                dataset.version,
                len(dataset.records),
            )
        if self.check_updates_on_init and self.remote_store is not None:
            self.background_task = asyncio.create_task(self.check_in_background())

    async def _load_from_cache(self) -> CuratedDataset | None:
        try:
            raw = await self.cache_store.get(CACHE_KEY)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Curated cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            dataset = dataset_from_payload(json.loads(raw))
        except (ValueError, TypeError) as exc:
            _logger.warning("Curated cache is corrupt, ignoring it: %s", exc)
            return None
        if not dataset.records:
            return None
        return dataset

    def _load_bundled(self) -> CuratedDataset:
        try:
            payload = json.loads(self.bundled_path.read_text(encoding="utf-8"))
            return dataset_from_payload(payload)
        except (OSError, ValueError, TypeError) as exc:
            _logger.warning("Bundled curated foods unavailable: %s", exc)
            return CuratedDataset.empty()

    async def _save_to_cache(self, dataset: CuratedDataset) -> None:
        try:
            await self.cache_store.set(
                CACHE_KEY, json.dumps(dataset_to_payload(dataset))
            )
            await self.cache_store.set(VERSION_KEY, str(dataset.version))
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Curated cache write failed: %s", exc)

    async def check_in_background(self) -> None:
        """Check for and apply an update at most once per interval."""
        if self.is_updating:
            return
        try:
            now = self.clock()
            last_check = await self.cache_store.get(LAST_CHECK_KEY)
            if last_check:
                elapsed = now - datetime.fromisoformat(last_check)
                if elapsed < timedelta(seconds=self.update_check_interval_seconds):
                    return
            await self.cache_store.set(LAST_CHECK_KEY, now.isoformat())
            if await self.check_for_updates():
                await self.refresh()
        except Exception:
            _logger.exception("Background curated update failed")

    async def check_for_updates(self) -> bool:
        """Return True if the remote store publishes a newer version."""
        if self.remote_store is None:
            return False
        try:
            descriptor = await self.remote_store.fetch_version()
            remote_version = int(descriptor.get("version") or 0)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Curated version check failed: %s", exc)
            return False
        return remote_version > self._dataset.version

    async def refresh(self) -> bool:
        """Download and adopt the remote dataset; concurrent calls share one fetch."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._download_and_swap())
        return await asyncio.shield(self._refresh_task)

    async def _download_and_swap(self) -> bool:
        if self.remote_store is None:
            return False
        try:
            payload = await self.remote_store.fetch_dataset()
            dataset = dataset_from_payload(payload)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Curated dataset download failed: %s", exc)
            return False
        if not dataset.records:
            _logger.warning("Rejected remote curated dataset: no foods")
            return False
        if dataset.version <= self._dataset.version:
            _logger.info(
                "Rejected remote curated dataset: version %s is not newer than %s",
                dataset.version,
                self._dataset.version,
            )
            return False
        await self._save_to_cache(dataset)
        self._dataset = dataset
        self._loaded = True
        _logger.info(
            "Curated foods updated: version=%s foods=%s",
            dataset.version,
            len(dataset.records),
        )
        return True

    async def force_refresh(self) -> bool:
        """Refresh immediately, ignoring the update-check throttle."""
        try:
            await self.cache_store.remove(LAST_CHECK_KEY)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Failed to reset curated update check: %s", exc)
        return await self.refresh()

    async def clear_cache(self) -> None:
        """Delete every persisted curated key."""
        for key in (CACHE_KEY, VERSION_KEY, LAST_CHECK_KEY):
            await self.cache_store.remove(key)

    def search(
        self, query: str | list[QueryTerm], options: SearchOptions | None = None
    ) -> list[FoodRecord]:
        """Search the curated dataset."""
        resolved = options or SearchOptions()
        terms = normalize_query(query) if isinstance(query, str) else query
        if not terms:
            return []
        dataset = self._dataset
        candidates: Iterable[FoodRecord] = dataset.records
        if resolved.category is not None:
            candidates = dataset.category_index.get(resolved.category, ())
        filtered = [
            food
            for food in candidates
            if food.is_valid and _passes_macro_filters(food, resolved)
        ]
        return rank_foods(filtered, terms)[: resolved.limit]

    def search_by_category(
        self, category: FoodCategory, limit: int = 50
    ) -> list[FoodRecord]:
        """Return foods in a category, in dataset order."""
        foods = self._dataset.category_index.get(category, ())
        return [food for food in foods if food.is_valid][:limit]

    def get_categories(self) -> list[FoodCategory]:
        """Return the categories present in the dataset."""
        return list(self._dataset.category_index)

    def get_by_id(self, food_id: str) -> FoodRecord | None:
        """Return a curated food by id."""
        for food in self._dataset.records:
            if food.id == food_id:
                return food
        return None

    def get_popular(self, limit: int = 20) -> list[FoodRecord]:
        """Return the most popular foods."""
        foods = [food for food in self._dataset.records if food.is_valid]
        foods.sort(key=lambda food: food.popularity_score or 0, reverse=True)
        return foods[:limit]

    def get_high_protein(
        self, min_protein: float = 20, limit: int = 20
    ) -> list[FoodRecord]:
        """Return foods with at least min_protein grams, richest first."""
        foods = [
            food
            for food in self._dataset.records
            if food.is_valid and food.protein >= min_protein
        ]
        foods.sort(key=lambda food: food.protein, reverse=True)
        return foods[:limit]

    def get_low_calorie(
        self, max_calories: float = 100, limit: int = 20
    ) -> list[FoodRecord]:
        """Return non-zero calorie foods under max_calories, leanest first."""
        foods = [
            food
            for food in self._dataset.records
            if food.is_valid and 0 < food.calories <= max_calories
        ]
        foods.sort(key=lambda food: food.calories)
        return foods[:limit]

    def get_stats(self) -> DatasetStats:
        """Return version and counts for the loaded dataset."""
        dataset = self._dataset
        return DatasetStats(
            version=dataset.version,
            total_count=len(dataset.records),
            per_category_count={
                category.value: len(foods)
                for category, foods in dataset.category_index.items()
            },
        )


def _passes_macro_filters(food: FoodRecord, options: SearchOptions) -> bool:
    if options.min_protein is not None and food.protein < options.min_protein:
        return False
    if options.max_calories is not None and food.calories > options.max_calories:
        return False
    if options.min_calories is not None and food.calories < options.min_calories:
        return False
    return True


def passes_filters(food: FoodRecord, options: SearchOptions) -> bool:
    """Return True if a food satisfies the category and macro options."""
    if options.category is not None and food.category != options.category:
        return False
    return _passes_macro_filters(food, options)
