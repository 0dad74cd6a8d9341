"""
Tests for `repositories/memory_store.py` and the query types in `repositories/buyer_store.py`.

Covers:
- All-or-nothing inserts (duplicate ids reject the whole batch)
- Compare-and-swap on updated_at
- Exact-match filters ANDed; search across name, email and phone
- Sorting with None placement and id tie-break; pagination
- Query parameter validation (sort field, page, page size)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from domain.buyer import City, Status
from domain.errors import StorageError, ValidationError
from domain.validation import validate_create
from repositories.buyer_store import BuyerFilters, BuyerPage, BuyerQuery, BuyerSort, PageRequest
from repositories.memory_store import InMemoryBuyerStore

BASE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _buyer(n: int, **overrides: Any):
    values = {
        "full_name": f"Buyer {n}",
        "phone": f"98765432{n:02d}",
        "city": "Chandigarh",
        "property_type": "Plot",
        "purpose": "Buy",
        "timeline": "Exploring",
        "source": "Website",
        **overrides,
    }
    return validate_create(values).to_record(
        buyer_id=UUID(int=n),
        owner_id="user-1",
        updated_at=BASE + timedelta(minutes=n),
    )


def _query(store: InMemoryBuyerStore, **kwargs: Any) -> BuyerPage:
    return store.query_buyers(BuyerQuery(**kwargs))


def test_insert_is_all_or_nothing() -> None:
    store = InMemoryBuyerStore()
    store.insert_buyers([_buyer(1)])

    with pytest.raises(StorageError):
        store.insert_buyers([_buyer(2), _buyer(1)])

    assert store.get_buyer(UUID(int=2)) is None
    assert _query(store).total_count == 1


def test_compare_and_swap_requires_matching_token() -> None:
    store = InMemoryBuyerStore()
    original = _buyer(1)
    store.insert_buyers([original])
    changed = _buyer(1, status="Visited")

    assert store.compare_and_swap(changed, expected_updated_at=BASE) is False
    assert store.get_buyer(original.id) == original

    assert store.compare_and_swap(changed, expected_updated_at=original.updated_at) is True
    assert store.get_buyer(original.id).status is Status.VISITED

    assert store.compare_and_swap(_buyer(99), expected_updated_at=BASE) is False


def test_filters_are_anded_and_search_is_case_insensitive() -> None:
    store = InMemoryBuyerStore()
    store.insert_buyers(
        [
            _buyer(1, city="Mohali", full_name="Asha Verma"),
            _buyer(2, city="Mohali", status="Contacted", email="asha@example.com"),
            _buyer(3, city="Zirakpur"),
        ]
    )

    mohali = _query(store, filters=BuyerFilters(city=City.MOHALI))
    new_in_mohali = _query(store, filters=BuyerFilters(city=City.MOHALI, status=Status.NEW))
    search = _query(store, filters=BuyerFilters(search="  ASHA "))
    by_phone = _query(store, filters=BuyerFilters(search="9876543203"))

    assert mohali.total_count == 2
    assert [r.id for r in new_in_mohali.records] == [UUID(int=1)]
    assert {r.id for r in search.records} == {UUID(int=1), UUID(int=2)}
    assert [r.id for r in by_phone.records] == [UUID(int=3)]


def test_default_sort_is_updated_at_desc_with_pagination() -> None:
    store = InMemoryBuyerStore()
    store.insert_buyers([_buyer(n) for n in range(1, 26)])

    first = _query(store)
    third = _query(store, page=PageRequest(page=3))

    assert first.total_count == 25
    assert first.total_pages == 3
    assert [r.id.int for r in first.records] == list(range(25, 15, -1))
    assert [r.id.int for r in third.records] == list(range(5, 0, -1))
    assert _query(store, page=PageRequest(page=4)).records == []


def test_sort_none_placement_and_id_tie_break() -> None:
    store = InMemoryBuyerStore()
    store.insert_buyers(
        [
            _buyer(3, budget_min=100),
            _buyer(1),
            _buyer(2, budget_min=100),
            _buyer(4, budget_min=50),
        ]
    )

    asc = _query(store, sort=BuyerSort(field="budget_min", descending=False))
    desc = _query(store, sort=BuyerSort(field="budget_min", descending=True))

    assert [r.id.int for r in asc.records] == [4, 2, 3, 1]
    assert [r.id.int for r in desc.records] == [1, 2, 3, 4]


def test_query_parameter_validation() -> None:
    with pytest.raises(ValidationError):
        BuyerSort(field="notes")

    with pytest.raises(ValidationError) as exc_info:
        PageRequest(page=0, page_size=500)
    assert exc_info.value.fields() == {"page", "page_size"}

    assert BuyerFilters(search="   ").search is None
    assert PageRequest(page=2, page_size=10).offset == 10
