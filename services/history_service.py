"""
History recorder for buyer changes.

Append-only: entries are written once and never edited or removed. The recorder
is called after the triggering record write has completed; if the process dies in
between, the history entry is lost but the buyer record is intact.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from domain.history import FieldChange, HistoryAction, HistoryEntry
from domain.time import MonotonicClock
from repositories.buyer_store import BuyerStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT: int = 5


class HistoryRecorder:
    def __init__(self, store: BuyerStore, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._clock = clock or MonotonicClock()

    def record(
        self,
        buyer_id: UUID,
        actor_id: str,
        diff: Mapping[str, FieldChange],
        *,
        changed_at: Optional[datetime] = None,
    ) -> HistoryEntry:
        """
        Append one `updated` entry for a non-empty diff.

        Raises:
            ValueError: if diff is empty (callers must short-circuit instead).
            StorageError: if the store write fails.
        """
        if not diff:
            raise ValueError("Refusing to record an empty diff")

        entry = HistoryEntry(
            id=uuid4(),
            buyer_id=buyer_id,
            changed_by=actor_id,
            changed_at=changed_at or self._clock(),
            action=HistoryAction.UPDATED,
            diff=dict(diff),
        )
        self._store.append_history([entry])
        logger.info(
            "Recorded buyer change",
            extra={"buyer_id": str(buyer_id), "actor_id": actor_id, "fields": sorted(diff)},
        )
        return entry

    def record_creation(
        self,
        buyer_id: UUID,
        actor_id: str,
        *,
        changed_at: Optional[datetime] = None,
    ) -> HistoryEntry:
        return self.record_creations([buyer_id], actor_id, changed_at=changed_at)[0]

    def record_creations(
        self,
        buyer_ids: Sequence[UUID],
        actor_id: str,
        *,
        changed_at: Optional[datetime] = None,
    ) -> List[HistoryEntry]:
        """Write one creation sentinel per buyer in a single store call."""

        entries = [
            HistoryEntry(
                id=uuid4(),
                buyer_id=buyer_id,
                changed_by=actor_id,
                changed_at=changed_at or self._clock(),
                action=HistoryAction.CREATED,
                diff={},
            )
            for buyer_id in buyer_ids
        ]
        self._store.append_history(entries)
        return entries

    def list_history(
        self,
        buyer_id: UUID,
        *,
        page: int = 1,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Tuple[List[HistoryEntry], int]:
        """Return (entries newest first, total) for one page of a buyer's history."""

        if page < 1:
            page = 1
        if limit < 1:
            limit = DEFAULT_HISTORY_LIMIT
        return self._store.list_history(buyer_id, limit=limit, offset=(page - 1) * limit)


__all__ = ["DEFAULT_HISTORY_LIMIT", "HistoryRecorder"]
