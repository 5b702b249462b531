from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Protocol, TypeVar

from paperclip_core.net.endpoint import Endpoint
from paperclip_core.schemas import CATEGORY_ALL, Category, ClassifiedAd, SortOption

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY_NAME = "Unknown Category"

T = TypeVar("T")


class Fetcher(Protocol):
    def fetch(self, endpoint: Endpoint, model: type[T] | Any) -> T: ...

    def cancel_all(self) -> None: ...

    def close(self) -> None: ...


class LoadState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Snapshot:
    categories: tuple[Category, ...] = ()
    items: tuple[ClassifiedAd, ...] = ()


def filter_by_category(items: Iterable[ClassifiedAd], category_id: int | None) -> list[ClassifiedAd]:
    if category_id is None or category_id == CATEGORY_ALL.id:
        return list(items)
    return [item for item in items if item.category_id == category_id]


def sorted_by_date_and_urgency(items: Iterable[ClassifiedAd]) -> list[ClassifiedAd]:
    """Urgent items first, newest first within each group."""
    newest_first = sorted(items, key=lambda item: item.creation_date, reverse=True)
    return sorted(newest_first, key=lambda item: not item.is_urgent)


def sort_items(items: Iterable[ClassifiedAd], option: SortOption) -> list[ClassifiedAd]:
    if option is SortOption.DATE_DESCENDING:
        return sorted(items, key=lambda item: item.creation_date, reverse=True)
    if option is SortOption.DATE_ASCENDING:
        return sorted(items, key=lambda item: item.creation_date)
    if option is SortOption.PRICE_ASCENDING:
        return sorted(items, key=lambda item: item.price)
    if option is SortOption.PRICE_DESCENDING:
        return sorted(items, key=lambda item: item.price, reverse=True)
    if option is SortOption.URGENT_FIRST:
        return sorted_by_date_and_urgency(items)
    raise ValueError(f"Unsupported sort option: {option}")


class ClassifiedRepository:
    """In-memory snapshots of categories and listings on top of a fetcher.

    A collection is fetched when its snapshot is empty or on
    ``force_refresh``; otherwise the snapshot is returned as-is. Snapshots
    are replaced wholesale, never merged. Filtering and sorting work on the
    current snapshot.
    """

    def __init__(
        self,
        client: Fetcher,
        *,
        categories_endpoint: Endpoint | None = None,
        listings_endpoint: Endpoint | None = None,
    ) -> None:
        self.client = client
        self.categories_endpoint = categories_endpoint or Endpoint.categories()
        self.listings_endpoint = listings_endpoint or Endpoint.listings()

        self._lock = threading.Lock()
        self._snapshot = Snapshot()
        self._state = LoadState.IDLE
        self._last_error: Exception | None = None
        self._pending = 0
        self._batch_error: Exception | None = None

    @property
    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    @property
    def state(self) -> LoadState:
        with self._lock:
            return self._state

    @property
    def last_error(self) -> Exception | None:
        with self._lock:
            return self._last_error

    def get_categories(self, force_refresh: bool = False) -> list[Category]:
        cached = self.snapshot.categories
        if cached and not force_refresh:
            return list(cached)

        categories = tuple(self._load(self.categories_endpoint, list[Category]))
        self._swap(categories=categories)
        logger.info("repository categories loaded count=%d", len(categories))
        return list(categories)

    def get_items(self, force_refresh: bool = False) -> list[ClassifiedAd]:
        cached = self.snapshot.items
        if cached and not force_refresh:
            return list(cached)

        items = tuple(self._load(self.listings_endpoint, list[ClassifiedAd]))
        self._swap(items=items)
        logger.info("repository listings loaded count=%d", len(items))
        return list(items)

    def get_items_with_category_name(
        self, force_refresh: bool = False
    ) -> list[tuple[ClassifiedAd, str]]:
        items, categories = self._load_both(force_refresh=force_refresh)
        names = {category.id: category.name for category in categories}
        return [(item, names.get(item.category_id, UNKNOWN_CATEGORY_NAME)) for item in items]

    def get_items_filtered(
        self, category_id: int | None = None, force_refresh: bool = False
    ) -> list[ClassifiedAd]:
        return filter_by_category(self.get_items(force_refresh=force_refresh), category_id)

    def get_items_sorted(
        self, option: SortOption, force_refresh: bool = False
    ) -> list[ClassifiedAd]:
        return sort_items(self.get_items(force_refresh=force_refresh), SortOption(option))

    def refresh_data(self) -> Snapshot:
        self._load_both(force_refresh=True)
        return self.snapshot

    def cancel_all(self) -> None:
        self.client.cancel_all()

    def close(self) -> None:
        self.client.close()

    def _load_both(
        self, *, force_refresh: bool
    ) -> tuple[list[ClassifiedAd], list[Category]]:
        current = self.snapshot
        load_items = force_refresh or not current.items
        load_categories = force_refresh or not current.categories
        changes: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="paperclip-repo") as pool:
            items_future = (
                pool.submit(self._load, self.listings_endpoint, list[ClassifiedAd])
                if load_items
                else None
            )
            categories_future = (
                pool.submit(self._load, self.categories_endpoint, list[Category])
                if load_categories
                else None
            )
            if items_future is not None:
                changes["items"] = tuple(items_future.result())
            if categories_future is not None:
                changes["categories"] = tuple(categories_future.result())

        items = changes.get("items", current.items)
        categories = changes.get("categories", current.categories)
        # Both collections are published together or not at all.
        if changes:
            self._swap(**changes)
            logger.info(
                "repository snapshot loaded items=%d categories=%d", len(items), len(categories)
            )
        return list(items), list(categories)

    def _load(self, endpoint: Endpoint, model: Any) -> Sequence[Any]:
        self._begin_load()
        try:
            value = self.client.fetch(endpoint, model)
        except Exception as exc:
            self._finish_load(exc)
            logger.warning("repository load failed url=%s error=%s", endpoint.url, exc)
            raise
        self._finish_load(None)
        return value

    def _begin_load(self) -> None:
        with self._lock:
            self._pending += 1
            if self._pending == 1:
                self._batch_error = None
                self._state = LoadState.LOADING

    def _finish_load(self, error: Exception | None) -> None:
        with self._lock:
            self._pending -= 1
            if error is not None:
                self._batch_error = error
                self._last_error = error
            if self._pending == 0:
                self._state = LoadState.ERROR if self._batch_error else LoadState.LOADED

    def _swap(self, **changes: Any) -> None:
        with self._lock:
            self._snapshot = replace(self._snapshot, **changes)
