"""
Tests for `services/buyer_service.py`.

Covers contract rules:
- Creating a buyer writes the record and exactly one creation history entry.
- An update with changes writes one history entry holding only the changed fields.
- Stale updated_at tokens are rejected with ConcurrencyConflict; nothing is written.
- Losing the compare-and-swap race is also a ConcurrencyConflict.
- A no-op update writes nothing and keeps updated_at.
- Validation failures leave the stored record and history untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

import pytest

from domain.buyer import Bhk, PropertyType, Status
from domain.errors import ConcurrencyConflict, NotFound, StorageError, ValidationError
from domain.history import FieldChange, HistoryAction
from repositories.buyer_store import BuyerFilters, BuyerSort, PageRequest
from repositories.memory_store import InMemoryBuyerStore
from services.buyer_service import BuyerService


def test_create_writes_record_and_creation_entry(
    buyer_service: BuyerService, valid_candidate: Dict[str, Any]
) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")

    assert buyer_service.get(buyer.id) == buyer
    assert buyer.owner_id == "user-1"
    assert buyer.status is Status.NEW

    entries, total = buyer_service.history.list_history(buyer.id)
    assert total == 1
    assert entries[0].action is HistoryAction.CREATED
    assert entries[0].changed_by == "user-1"
    assert entries[0].changed_at == buyer.updated_at


def test_create_invalid_candidate_writes_nothing(
    buyer_service: BuyerService, store: InMemoryBuyerStore, valid_candidate: Dict[str, Any]
) -> None:
    candidate = dict(valid_candidate)
    del candidate["bhk"]

    with pytest.raises(ValidationError):
        buyer_service.create(candidate, "user-1")

    assert buyer_service.list().total_count == 0


def test_update_status_records_diff(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    """Verify a status change bumps updated_at and records one entry newest first."""

    buyer = buyer_service.create(valid_candidate, "user-1")

    updated = buyer_service.update(buyer.id, {"status": "Contacted"}, buyer.updated_at, "user-1")

    assert updated.status is Status.CONTACTED
    assert updated.updated_at > buyer.updated_at
    assert buyer_service.get(buyer.id) == updated

    entries, total = buyer_service.history.list_history(buyer.id)
    assert total == 2
    assert entries[0].action is HistoryAction.UPDATED
    assert entries[0].diff == {"status": FieldChange(old=Status.NEW, new=Status.CONTACTED)}
    assert entries[0].changed_at == updated.updated_at
    assert entries[1].action is HistoryAction.CREATED


def test_update_with_stale_token_conflicts(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")
    first = buyer_service.update(buyer.id, {"notes": "first"}, buyer.updated_at, "user-1")

    with pytest.raises(ConcurrencyConflict) as exc_info:
        buyer_service.update(buyer.id, {"notes": "second"}, buyer.updated_at, "user-2")

    assert exc_info.value.actual_updated_at == first.updated_at
    assert buyer_service.get(buyer.id).notes == "first"
    assert buyer_service.history.list_history(buyer.id)[1] == 2


def test_same_update_submitted_twice(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")
    payload = {"status": "Contacted", "notes": "called back"}
    first = buyer_service.update(buyer.id, payload, buyer.updated_at, "user-1")

    # resent with the original token: stale
    with pytest.raises(ConcurrencyConflict):
        buyer_service.update(buyer.id, payload, buyer.updated_at, "user-1")

    # resent with the fresh token: nothing changes
    again = buyer_service.update(buyer.id, payload, first.updated_at, "user-1")

    assert again == first
    assert again.updated_at == first.updated_at
    assert buyer_service.get(buyer.id) == first
    assert buyer_service.history.list_history(buyer.id)[1] == 2


def test_update_lost_compare_and_swap_conflicts(
    buyer_service: BuyerService,
    store: InMemoryBuyerStore,
    valid_candidate: Dict[str, Any],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Verify a writer that commits between read and write wins; the loser gets a conflict."""

    buyer = buyer_service.create(valid_candidate, "user-1")
    monkeypatch.setattr(store, "compare_and_swap", lambda record, expected_updated_at: False)

    with pytest.raises(ConcurrencyConflict):
        buyer_service.update(buyer.id, {"status": "Visited"}, buyer.updated_at, "user-1")

    assert buyer_service.history.list_history(buyer.id)[1] == 1


def test_update_noop_writes_nothing(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")

    result = buyer_service.update(buyer.id, {"full_name": "John Doe", "city": "Chandigarh"}, buyer.updated_at, "u")

    assert result == buyer
    assert buyer_service.get(buyer.id).updated_at == buyer.updated_at
    assert buyer_service.history.list_history(buyer.id)[1] == 1


def test_update_to_plot_clears_bhk_without_reporting_it(
    buyer_service: BuyerService, valid_candidate: Dict[str, Any]
) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")

    updated = buyer_service.update(buyer.id, {"property_type": "Plot"}, buyer.updated_at, "user-1")

    assert updated.property_type is PropertyType.PLOT
    assert updated.bhk is None
    entries, _ = buyer_service.history.list_history(buyer.id)
    assert entries[0].diff == {"property_type": FieldChange(old=PropertyType.APARTMENT, new=PropertyType.PLOT)}


def test_update_validation_failure_leaves_record(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    buyer = buyer_service.create({**valid_candidate, "budget_min": 500}, "user-1")

    with pytest.raises(ValidationError) as exc_info:
        buyer_service.update(buyer.id, {"budget_max": 100, "status": "Visited"}, buyer.updated_at, "user-1")

    assert exc_info.value.fields() == {"budget_max"}
    assert buyer_service.get(buyer.id) == buyer
    assert buyer_service.history.list_history(buyer.id)[1] == 1


def test_update_history_failure_is_reported(
    buyer_service: BuyerService,
    store: InMemoryBuyerStore,
    valid_candidate: Dict[str, Any],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Verify a failed history write surfaces as StorageError after the record write."""

    buyer = buyer_service.create(valid_candidate, "user-1")

    def fail(entries):
        raise StorageError("history table unavailable")

    monkeypatch.setattr(store, "append_history", fail)

    with pytest.raises(StorageError):
        buyer_service.update(buyer.id, {"bhk": "Three"}, buyer.updated_at, "user-1")

    assert buyer_service.get(buyer.id).bhk is Bhk.THREE


def test_get_and_update_unknown_buyer(buyer_service: BuyerService) -> None:
    missing = uuid4()

    with pytest.raises(NotFound):
        buyer_service.get(missing)

    with pytest.raises(NotFound):
        buyer_service.update(missing, {"status": "Visited"}, datetime(2025, 1, 2, tzinfo=timezone.utc), "u")


def test_get_with_history_limits_to_recent(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    buyer = buyer_service.create(valid_candidate, "user-1")
    current = buyer
    for i in range(6):
        current = buyer_service.update(buyer.id, {"notes": f"note {i}"}, current.updated_at, "user-1")

    detail = buyer_service.get_with_history(buyer.id)

    assert detail.buyer == current
    assert detail.history_total == 7
    assert len(detail.history) == 5
    assert detail.history[0].diff["notes"].new == "note 5"


def test_list_and_iterate(buyer_service: BuyerService, valid_candidate: Dict[str, Any]) -> None:
    for name in ("Alice Smith", "Bob Jones", "Carol White"):
        buyer_service.create({**valid_candidate, "full_name": name}, "user-1")

    page = buyer_service.list(
        BuyerFilters(search="o"),
        BuyerSort(field="full_name", descending=False),
        PageRequest(page=1, page_size=1),
    )
    everything = list(buyer_service.iter_buyers())

    assert page.total_count == 2
    assert page.total_pages == 2
    assert [b.full_name for b in page.records] == ["Bob Jones"]
    assert [b.full_name for b in everything] == ["Carol White", "Bob Jones", "Alice Smith"]
