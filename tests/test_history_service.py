"""
Tests for `services/history_service.py` and `domain/history.py`.

Covers contract rules:
- An updated entry always carries a non-empty diff; empty diffs are refused.
- Creation writes a sentinel entry with no field diff.
- Entries are returned newest first; ties keep insertion order.
- Out-of-range paging falls back to page 1 and the default limit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest

from domain.buyer import Status
from domain.history import FieldChange, HistoryAction, HistoryEntry
from services.history_service import DEFAULT_HISTORY_LIMIT, HistoryRecorder

BUYER_ID = UUID("00000000-0000-0000-0000-0000000000aa")
FIXED = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def test_history_entry_invariants() -> None:
    """Verify updated entries need a diff and creation entries must not have one."""

    with pytest.raises(ValueError):
        HistoryEntry(uuid4(), BUYER_ID, "u", FIXED, HistoryAction.UPDATED, {})

    with pytest.raises(ValueError):
        HistoryEntry(
            uuid4(), BUYER_ID, "u", FIXED, HistoryAction.CREATED, {"status": FieldChange("New", "Visited")}
        )

    with pytest.raises(ValueError):
        HistoryEntry(uuid4(), BUYER_ID, "u", datetime(2025, 3, 1), HistoryAction.CREATED, {})


def test_record_refuses_empty_diff(history: HistoryRecorder) -> None:
    with pytest.raises(ValueError):
        history.record(BUYER_ID, "user-1", {})

    assert history.list_history(BUYER_ID) == ([], 0)


def test_record_creation_writes_sentinel(history: HistoryRecorder) -> None:
    entry = history.record_creation(BUYER_ID, "user-1")

    entries, total = history.list_history(BUYER_ID)
    assert total == 1
    assert entries == [entry]
    assert entry.is_creation
    assert entry.diff == {}
    assert entry.changed_by == "user-1"


def test_list_history_newest_first(history: HistoryRecorder) -> None:
    history.record_creation(BUYER_ID, "user-1")
    history.record(BUYER_ID, "user-1", {"status": FieldChange(Status.NEW, Status.CONTACTED)})
    history.record(BUYER_ID, "user-2", {"status": FieldChange(Status.CONTACTED, Status.VISITED)})

    entries, total = history.list_history(BUYER_ID)

    assert total == 3
    assert [e.action for e in entries] == [HistoryAction.UPDATED, HistoryAction.UPDATED, HistoryAction.CREATED]
    assert entries[0].diff["status"].new is Status.VISITED
    assert entries[0].changed_at > entries[1].changed_at > entries[2].changed_at


def test_list_history_equal_timestamps_keep_insertion_order(history: HistoryRecorder) -> None:
    first = history.record(BUYER_ID, "u", {"notes": FieldChange(None, "a")}, changed_at=FIXED)
    second = history.record(BUYER_ID, "u", {"notes": FieldChange("a", "b")}, changed_at=FIXED)

    entries, _ = history.list_history(BUYER_ID)

    assert [e.id for e in entries] == [first.id, second.id]


def test_list_history_pagination_and_fallbacks(history: HistoryRecorder) -> None:
    for i in range(7):
        history.record(BUYER_ID, "u", {"notes": FieldChange(str(i), str(i + 1))})

    page_one, total = history.list_history(BUYER_ID)
    page_two, _ = history.list_history(BUYER_ID, page=2)
    fallback, _ = history.list_history(BUYER_ID, page=0, limit=-3)

    assert total == 7
    assert len(page_one) == DEFAULT_HISTORY_LIMIT
    assert len(page_two) == 2
    assert fallback == page_one


def test_history_is_scoped_per_buyer(history: HistoryRecorder) -> None:
    other = uuid4()
    history.record_creation(BUYER_ID, "u")
    history.record_creations([other, uuid4()], "u")

    assert history.list_history(BUYER_ID)[1] == 1
    assert history.list_history(other)[1] == 1
