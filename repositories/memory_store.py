"""
In-memory buyer store.

Implements the BuyerStore contract for tests, scripts and local development
(`BUYER_STORE=memory`). Mirrors the Supabase store's semantics:
- inserts are all-or-nothing
- updates are compare-and-swap on updated_at
- sorting puts None last when ascending and first when descending (PostgreSQL
  default), with id ascending as the tie-break
"""

from __future__ import annotations

import threading
from datetime import datetime
from itertools import count
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from domain.buyer import BuyerRecord
from domain.errors import StorageError
from domain.history import HistoryEntry
from repositories.buyer_store import BuyerFilters, BuyerPage, BuyerQuery, BuyerSort


def matches_filters(record: BuyerRecord, filters: BuyerFilters) -> bool:
    """Exact-match filters ANDed together; search is an OR over name, email and phone."""

    if filters.status is not None and record.status != filters.status:
        return False
    if filters.city is not None and record.city != filters.city:
        return False
    if filters.property_type is not None and record.property_type != filters.property_type:
        return False
    if filters.timeline is not None and record.timeline != filters.timeline:
        return False
    if filters.search:
        term = filters.search.casefold()
        haystacks = (record.full_name, record.email or "", record.phone)
        if not any(term in text.casefold() for text in haystacks):
            return False
    return True


def sort_records(records: List[BuyerRecord], sort: BuyerSort) -> List[BuyerRecord]:
    # Two stable passes: id ascending first, then the requested field.
    ordered = sorted(records, key=lambda r: r.id)

    def key(record: BuyerRecord):
        value = getattr(record, sort.field)
        return (value is None, value)

    return sorted(ordered, key=key, reverse=sort.descending)


class InMemoryBuyerStore:
    def __init__(self) -> None:
        self._buyers: Dict[UUID, BuyerRecord] = {}
        self._history: List[Tuple[int, HistoryEntry]] = []
        self._sequence = count(1)
        self._lock = threading.Lock()

    def get_buyer(self, buyer_id: UUID) -> Optional[BuyerRecord]:
        with self._lock:
            return self._buyers.get(buyer_id)

    def insert_buyers(self, records: Sequence[BuyerRecord]) -> None:
        with self._lock:
            seen = set()
            for record in records:
                if record.id in self._buyers or record.id in seen:
                    raise StorageError(f"Failed to insert buyers: duplicate id {record.id}")
                seen.add(record.id)
            for record in records:
                self._buyers[record.id] = record

    def compare_and_swap(self, record: BuyerRecord, expected_updated_at: datetime) -> bool:
        with self._lock:
            stored = self._buyers.get(record.id)
            if stored is None or stored.updated_at != expected_updated_at:
                return False
            self._buyers[record.id] = record
            return True

    def query_buyers(self, query: BuyerQuery) -> BuyerPage:
        with self._lock:
            snapshot = list(self._buyers.values())

        matching = [r for r in snapshot if matches_filters(r, query.filters)]
        ordered = sort_records(matching, query.sort)
        start = query.page.offset
        return BuyerPage(
            records=ordered[start:start + query.page.page_size],
            total_count=len(ordered),
            page=query.page,
        )

    def append_history(self, entries: Sequence[HistoryEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._history.append((next(self._sequence), entry))

    def list_history(self, buyer_id: UUID, *, limit: int, offset: int = 0) -> Tuple[List[HistoryEntry], int]:
        with self._lock:
            rows = [(seq, entry) for seq, entry in self._history if entry.buyer_id == buyer_id]

        # newest first; equal timestamps keep insertion order (stable sort over seq order)
        rows.sort(key=lambda row: row[0])
        rows.sort(key=lambda row: row[1].changed_at, reverse=True)
        entries = [entry for _, entry in rows]
        return entries[offset:offset + limit], len(entries)


__all__ = ["InMemoryBuyerStore", "matches_filters", "sort_records"]
