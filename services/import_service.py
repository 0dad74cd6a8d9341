"""
Bulk import pipeline for buyer leads.

Handles:
- Batch size cap (200 rows), enforced before any row is looked at
- Per-row validation in create mode, collecting every row's errors
- All-or-nothing strategy: one failing row means nothing is inserted
- A single atomic store insert for the whole batch, then one creation
  history entry per row
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence
from uuid import uuid4

from domain.buyer import BuyerDraft, BuyerRecord
from domain.errors import BatchLimitExceeded, ValidationError
from domain.time import MonotonicClock
from domain.validation import validate_create
from repositories.buyer_store import BuyerStore
from services.history_service import HistoryRecorder

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS: int = 200


@dataclass(frozen=True, slots=True)
class RowError:
    """A validation failure for one row (1-based row number)."""

    row: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass(frozen=True, slots=True)
class ImportResult:
    """
    Outcome of an import.

    success: True if every row validated (and, unless dry_run, was inserted)
    inserted_count: rows written (0 on any error, or on dry runs)
    validated_count: rows that passed validation
    errors: every row error found (empty if success=True)
    """

    inserted_count: int
    validated_count: int
    errors: List[RowError] = field(default_factory=list)
    buyers: List[BuyerRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class ImportService:
    def __init__(
        self,
        store: BuyerStore,
        history: Optional[HistoryRecorder] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_rows: int = MAX_IMPORT_ROWS,
    ) -> None:
        self._store = store
        self._clock = clock or MonotonicClock()
        self._history = history or HistoryRecorder(store, self._clock)
        self._max_rows = max_rows

    def import_batch(
        self,
        rows: Sequence[Mapping[str, Any]],
        actor_id: str,
        *,
        dry_run: bool = False,
    ) -> ImportResult:
        """
        Validate every row, then insert all of them or none.

        Raises:
            BatchLimitExceeded: more than `max_rows` rows; nothing processed.
            StorageError: the atomic insert failed; nothing inserted.
        """
        if len(rows) > self._max_rows:
            raise BatchLimitExceeded(len(rows), self._max_rows)

        drafts: List[BuyerDraft] = []
        errors: List[RowError] = []
        for index, row in enumerate(rows, start=1):
            try:
                drafts.append(validate_create(row))
            except ValidationError as exc:
                errors.extend(RowError(row=index, field=e.field, message=e.message) for e in exc.errors)

        if errors:
            logger.info(
                "Buyer import rejected",
                extra={
                    "actor_id": actor_id,
                    "row_count": len(rows),
                    "failed_rows": len({e.row for e in errors}),
                },
            )
            return ImportResult(inserted_count=0, validated_count=len(drafts), errors=errors)

        if dry_run:
            return ImportResult(inserted_count=0, validated_count=len(drafts))

        updated_at = self._clock()
        records = [
            draft.to_record(buyer_id=uuid4(), owner_id=actor_id, updated_at=updated_at)
            for draft in drafts
        ]
        self._store.insert_buyers(records)
        self._history.record_creations([r.id for r in records], actor_id, changed_at=updated_at)

        logger.info("Buyers imported", extra={"actor_id": actor_id, "inserted_count": len(records)})
        return ImportResult(inserted_count=len(records), validated_count=len(records), buyers=records)


__all__ = ["ImportResult", "ImportService", "MAX_IMPORT_ROWS", "RowError"]
