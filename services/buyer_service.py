"""
Buyer service: create, read, update and list buyer leads.

Handles:
- Validation (create mode for new buyers, update mode over the merged snapshot)
- Optimistic concurrency: updated_at is the compare-and-swap token
- Diffing submitted fields against the pre-update snapshot
- History: one creation sentinel per buyer, one entry per non-empty update

Authorization (owner-or-admin) is decided by the caller before `update`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.buyer import BuyerRecord
from domain.diff import compute_diff
from domain.errors import ConcurrencyConflict, NotFound, StorageError
from domain.history import HistoryEntry
from domain.time import MonotonicClock
from domain.validation import validate_create, validate_update
from repositories.buyer_store import (
    MAX_PAGE_SIZE,
    BuyerFilters,
    BuyerPage,
    BuyerQuery,
    BuyerSort,
    BuyerStore,
    PageRequest,
)
from services.history_service import DEFAULT_HISTORY_LIMIT, HistoryRecorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuyerWithHistory:
    """A buyer plus its most recent history entries (newest first)."""

    buyer: BuyerRecord
    history: List[HistoryEntry]
    history_total: int


class BuyerService:
    def __init__(
        self,
        store: BuyerStore,
        history: Optional[HistoryRecorder] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._clock = clock or MonotonicClock()
        self._history = history or HistoryRecorder(store, self._clock)

    @property
    def history(self) -> HistoryRecorder:
        return self._history

    def create(self, candidate: Mapping[str, Any], actor_id: str) -> BuyerRecord:
        """
        Validate and insert a new buyer owned by `actor_id`.

        Raises:
            ValidationError: candidate is invalid; nothing is written.
            StorageError: the store rejected the write.
        """
        draft = validate_create(candidate)
        record = draft.to_record(buyer_id=uuid4(), owner_id=actor_id, updated_at=self._clock())

        self._store.insert_buyers([record])
        self._history.record_creation(record.id, actor_id, changed_at=record.updated_at)

        logger.info("Buyer created", extra={"buyer_id": str(record.id), "actor_id": actor_id})
        return record

    def get(self, buyer_id: UUID) -> BuyerRecord:
        record = self._store.get_buyer(buyer_id)
        if record is None:
            raise NotFound(buyer_id)
        return record

    def get_with_history(self, buyer_id: UUID, history_limit: int = DEFAULT_HISTORY_LIMIT) -> BuyerWithHistory:
        record = self.get(buyer_id)
        entries, total = self._history.list_history(buyer_id, limit=history_limit)
        return BuyerWithHistory(buyer=record, history=entries, history_total=total)

    def update(
        self,
        buyer_id: UUID,
        candidate: Mapping[str, Any],
        expected_updated_at: datetime,
        actor_id: str,
    ) -> BuyerRecord:
        """
        Apply a partial update guarded by the caller's updated_at token.

        Process:
        1. Fetch the current snapshot (NotFound if missing)
        2. Reject stale tokens (ConcurrencyConflict)
        3. Validate the submitted fields and the merged record (ValidationError)
        4. Diff the submitted fields against the snapshot
        5. Empty diff: nothing is written, the stored record is returned
        6. Compare-and-swap the merged record with a fresh updated_at
        7. Append one history entry

        Raises:
            NotFound, ConcurrencyConflict, ValidationError, StorageError
        """
        current = self.get(buyer_id)
        if current.updated_at != expected_updated_at:
            logger.warning(
                "Stale buyer update rejected",
                extra={
                    "buyer_id": str(buyer_id),
                    "actor_id": actor_id,
                    "expected_updated_at": expected_updated_at.isoformat(),
                    "actual_updated_at": current.updated_at.isoformat(),
                },
            )
            raise ConcurrencyConflict(buyer_id, expected_updated_at, current.updated_at)

        patch = validate_update(current, candidate)
        diff = compute_diff(current, patch.changes, patch.field_names)
        if not diff:
            return current

        updated = patch.apply(current, updated_at=self._clock())
        if not self._store.compare_and_swap(updated, expected_updated_at=current.updated_at):
            # Another writer committed between our read and our write.
            logger.warning(
                "Buyer update lost compare-and-swap",
                extra={"buyer_id": str(buyer_id), "actor_id": actor_id},
            )
            raise ConcurrencyConflict(buyer_id, expected_updated_at)

        try:
            self._history.record(buyer_id, actor_id, diff, changed_at=updated.updated_at)
        except StorageError:
            logger.error(
                "Buyer updated but history write failed",
                extra={"buyer_id": str(buyer_id), "actor_id": actor_id, "fields": sorted(diff)},
            )
            raise

        logger.info(
            "Buyer updated",
            extra={"buyer_id": str(buyer_id), "actor_id": actor_id, "fields": sorted(diff)},
        )
        return updated

    def list(
        self,
        filters: Optional[BuyerFilters] = None,
        sort: Optional[BuyerSort] = None,
        page: Optional[PageRequest] = None,
    ) -> BuyerPage:
        query = BuyerQuery(
            filters=filters or BuyerFilters(),
            sort=sort or BuyerSort(),
            page=page or PageRequest(),
        )
        return self._store.query_buyers(query)

    def iter_buyers(
        self,
        filters: Optional[BuyerFilters] = None,
        sort: Optional[BuyerSort] = None,
    ) -> Iterator[BuyerRecord]:
        """Walk every matching buyer page by page (used by CSV export)."""

        page_number = 1
        while True:
            result = self.list(filters, sort, PageRequest(page=page_number, page_size=MAX_PAGE_SIZE))
            yield from result.records
            if page_number >= result.total_pages:
                return
            page_number += 1


__all__ = ["BuyerService", "BuyerWithHistory"]
