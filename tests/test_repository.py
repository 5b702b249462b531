from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from paperclip_core.errors import ServerError
from paperclip_core.net import CATEGORIES_URL, Endpoint
from paperclip_core.repository import (
    UNKNOWN_CATEGORY_NAME,
    ClassifiedRepository,
    LoadState,
    filter_by_category,
    sort_items,
    sorted_by_date_and_urgency,
)
from paperclip_core.schemas import CATEGORY_ALL, Category, ClassifiedAd, ImageUrls, SortOption

BASE_DATE = datetime(2019, 11, 1, 12, 0, 0, tzinfo=timezone.utc)


def _ad(ad_id: int, *, category_id: int = 1, day: int = 1, price: float = 10.0, urgent: bool = False) -> ClassifiedAd:
    return ClassifiedAd(
        id=ad_id,
        category_id=category_id,
        title=f"Annonce {ad_id}",
        description="Description",
        price=price,
        images_url=ImageUrls(),
        creation_date=BASE_DATE + timedelta(days=day),
        is_urgent=urgent,
    )


CATEGORIES = [Category(id=1, name="Véhicule"), Category(id=2, name="Mode")]
ITEMS = [
    _ad(10, category_id=1, day=3, price=30.0),
    _ad(11, category_id=2, day=1, price=5.0, urgent=True),
    _ad(12, category_id=1, day=2, price=20.0),
    _ad(13, category_id=99, day=4, price=15.0),
]


class QueueFetcher:
    def __init__(
        self,
        categories: list[Category] | None = None,
        items: list[ClassifiedAd] | None = None,
    ) -> None:
        self.categories = list(categories if categories is not None else CATEGORIES)
        self.items = list(items if items is not None else ITEMS)
        self.urls: list[str] = []
        self.errors: dict[str, Exception] = {}
        self.barrier: threading.Barrier | None = None
        self.states: list[LoadState] = []
        self.repo: ClassifiedRepository | None = None
        self.cancel_calls = 0
        self.close_calls = 0

    def fetch(self, endpoint: Endpoint, model: object) -> list[object]:
        _ = model
        self.urls.append(endpoint.url)
        if self.repo is not None:
            self.states.append(self.repo.state)
        if self.barrier is not None:
            self.barrier.wait()
        if endpoint.url in self.errors:
            raise self.errors[endpoint.url]
        if endpoint.url == CATEGORIES_URL:
            return list(self.categories)
        return list(self.items)

    def cancel_all(self) -> None:
        self.cancel_calls += 1

    def close(self) -> None:
        self.close_calls += 1


def test_snapshot_is_reused_until_force_refresh() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)
    assert repo.state is LoadState.IDLE

    assert repo.get_items() == ITEMS
    assert repo.get_items() == ITEMS
    assert len(fetcher.urls) == 1

    fetcher.items = ITEMS[:1]
    assert repo.get_items(force_refresh=True) == ITEMS[:1]
    assert repo.snapshot.items == tuple(ITEMS[:1])
    assert len(fetcher.urls) == 2
    assert repo.state is LoadState.LOADED


def test_empty_snapshot_is_refetched() -> None:
    fetcher = QueueFetcher(categories=[])
    repo = ClassifiedRepository(fetcher)

    assert repo.get_categories() == []
    assert repo.get_categories() == []
    assert len(fetcher.urls) == 2


def test_failed_refresh_keeps_previous_snapshot() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)
    repo.get_categories()

    error = ServerError(503)
    fetcher.errors[CATEGORIES_URL] = error
    with pytest.raises(ServerError):
        repo.get_categories(force_refresh=True)

    assert repo.snapshot.categories == tuple(CATEGORIES)
    assert repo.state is LoadState.ERROR
    assert repo.last_error is error

    del fetcher.errors[CATEGORIES_URL]
    repo.get_categories(force_refresh=True)
    assert repo.state is LoadState.LOADED


def test_state_is_loading_during_fetch_and_filtering_does_not_reload() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)
    fetcher.repo = repo

    repo.get_items()
    assert fetcher.states == [LoadState.LOADING]

    repo.get_items_filtered(2)
    repo.get_items_sorted(SortOption.PRICE_ASCENDING)
    assert len(fetcher.urls) == 1
    assert repo.state is LoadState.LOADED


def test_items_with_category_name_fetches_both_concurrently() -> None:
    fetcher = QueueFetcher()
    fetcher.barrier = threading.Barrier(2, timeout=2)
    repo = ClassifiedRepository(fetcher)

    pairs = repo.get_items_with_category_name()

    assert [(item.id, name) for item, name in pairs] == [
        (10, "Véhicule"),
        (11, "Mode"),
        (12, "Véhicule"),
        (13, UNKNOWN_CATEGORY_NAME),
    ]
    assert sorted(fetcher.urls) == sorted([CATEGORIES_URL, repo.listings_endpoint.url])


def test_unknown_category_is_named_not_dropped() -> None:
    repo = ClassifiedRepository(QueueFetcher(items=[_ad(1, category_id=42)]))

    pairs = repo.get_items_with_category_name()

    assert len(pairs) == 1
    assert pairs[0][1] == "Unknown Category"


def test_items_with_category_name_propagates_errors() -> None:
    fetcher = QueueFetcher()
    fetcher.errors[CATEGORIES_URL] = ServerError(500)
    repo = ClassifiedRepository(fetcher)

    with pytest.raises(ServerError):
        repo.get_items_with_category_name()
    assert repo.state is LoadState.ERROR


def test_refresh_data_replaces_both_collections() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)
    repo.get_items_with_category_name()

    fetcher.categories = CATEGORIES[:1]
    fetcher.items = ITEMS[:2]
    snapshot = repo.refresh_data()

    assert snapshot.categories == tuple(CATEGORIES[:1])
    assert snapshot.items == tuple(ITEMS[:2])
    assert len(fetcher.urls) == 4


def test_filtering_by_category() -> None:
    repo = ClassifiedRepository(QueueFetcher())

    assert repo.get_items_filtered(None) == ITEMS
    assert repo.get_items_filtered(CATEGORY_ALL.id) == ITEMS
    assert [item.id for item in repo.get_items_filtered(1)] == [10, 12]
    assert repo.get_items_filtered(12345) == []


def test_sorted_by_date_and_urgency_orders_urgent_first() -> None:
    urgent_day3 = _ad(1, day=3, urgent=True)
    regular_day10 = _ad(2, day=10)
    urgent_day1 = _ad(3, day=1, urgent=True)
    regular_day7 = _ad(4, day=7)

    ordered = sorted_by_date_and_urgency([urgent_day3, regular_day10, urgent_day1, regular_day7])

    assert ordered == [urgent_day3, urgent_day1, regular_day10, regular_day7]


@pytest.mark.parametrize(
    ("option", "expected_ids"),
    [
        (SortOption.DATE_DESCENDING, [13, 10, 12, 11]),
        (SortOption.DATE_ASCENDING, [11, 12, 10, 13]),
        (SortOption.PRICE_ASCENDING, [11, 13, 12, 10]),
        (SortOption.PRICE_DESCENDING, [10, 12, 13, 11]),
        (SortOption.URGENT_FIRST, [11, 13, 10, 12]),
    ],
)
def test_sort_options(option: SortOption, expected_ids: list[int]) -> None:
    repo = ClassifiedRepository(QueueFetcher())

    assert [item.id for item in repo.get_items_sorted(option)] == expected_ids


def test_sort_is_stable_for_equal_keys() -> None:
    first = _ad(1, day=1, price=10.0)
    second = _ad(2, day=2, price=10.0)

    assert sort_items([first, second], SortOption.PRICE_ASCENDING) == [first, second]
    assert sort_items([second, first], SortOption.PRICE_DESCENDING) == [second, first]


def test_filter_helper_preserves_order() -> None:
    items = [_ad(1, category_id=2), _ad(2, category_id=1), _ad(3, category_id=2)]

    assert [item.id for item in filter_by_category(items, 2)] == [1, 3]


def test_cancel_all_delegates_to_client() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)

    repo.cancel_all()
    repo.cancel_all()

    assert fetcher.cancel_calls == 2


def test_close_delegates_to_client() -> None:
    fetcher = QueueFetcher()
    repo = ClassifiedRepository(fetcher)

    repo.close()

    assert fetcher.close_calls == 1


class GenerationFetcher:
    """Serves one category and one listing tagged with the current generation."""

    def __init__(self) -> None:
        self.generation = 0

    def fetch(self, endpoint: Endpoint, model: object) -> list[object]:
        _ = model
        generation = self.generation
        if endpoint.url == CATEGORIES_URL:
            return [Category(id=generation, name=f"gen-{generation}")]
        # Listings land later than categories, widening the window for a torn read.
        time.sleep(0.002)
        return [_ad(generation, category_id=generation)]

    def cancel_all(self) -> None:
        pass

    def close(self) -> None:
        pass


def test_refresh_publishes_categories_and_items_together() -> None:
    fetcher = GenerationFetcher()
    repo = ClassifiedRepository(fetcher)
    stop = threading.Event()
    torn: list[tuple[tuple[int, ...], tuple[int, ...]]] = []
    observed: set[int] = set()

    def _reader() -> None:
        while not stop.is_set():
            snapshot = repo.snapshot
            category_ids = tuple(category.id for category in snapshot.categories)
            item_categories = tuple(item.category_id for item in snapshot.items)
            if category_ids != item_categories:
                torn.append((category_ids, item_categories))
            observed.update(category_ids)

    reader = threading.Thread(target=_reader)
    reader.start()
    try:
        for generation in range(1, 31):
            fetcher.generation = generation
            repo.refresh_data()
    finally:
        stop.set()
        reader.join(timeout=5)

    assert torn == []
    assert repo.snapshot.categories[0].id == 30
    assert repo.snapshot.items[0].category_id == 30
    assert observed
