"""
Domain: Buyer change history.

Rules implemented here:
- A HistoryEntry is immutable once created; no code path edits or removes it.
- An `updated` entry always carries a non-empty diff.
- A `created` entry is the sentinel written once per new buyer; its diff is empty.
- Entries are listed newest first (changed_at descending).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from domain.time import require_utc_timestamp


class HistoryAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class FieldChange:
    """Old/new value pair for a single field."""

    old: Any
    new: Any


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    id: UUID
    buyer_id: UUID
    changed_by: str
    changed_at: datetime
    action: HistoryAction
    diff: Mapping[str, FieldChange]

    def __post_init__(self) -> None:
        require_utc_timestamp("changed_at", self.changed_at)
        if self.action is HistoryAction.UPDATED and not self.diff:
            raise ValueError("An updated HistoryEntry requires a non-empty diff")
        if self.action is HistoryAction.CREATED and self.diff:
            raise ValueError("A created HistoryEntry carries no field diff")

    @property
    def is_creation(self) -> bool:
        return self.action is HistoryAction.CREATED


__all__ = ["FieldChange", "HistoryAction", "HistoryEntry"]
