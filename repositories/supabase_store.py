"""
Supabase buyer store (persistence).

This module provides *only* persistence operations for BuyerRecord and
HistoryEntry. No business rules (validation, diffing, authorization) belong here.

Tables (keep aligned with your database schema):
- buyers: id uuid pk, owner_id text, updated_at_utc timestamptz, full_name,
  phone, email, city, property_type, bhk, purpose, budget_min int,
  budget_max int, timeline, source, status, notes, tags text[]
- buyer_history: id uuid pk, seq bigint identity, buyer_id uuid fk,
  changed_by text, changed_at_utc timestamptz, action text, diff jsonb
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

import httpx
from postgrest.exceptions import APIError

from domain.buyer import Bhk, BuyerRecord, City, PropertyType, Purpose, Source, Status, Timeline
from domain.diff import diff_from_json, diff_to_json
from domain.errors import StorageError
from domain.history import HistoryAction, HistoryEntry
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.buyer_store import BuyerPage, BuyerQuery
from repositories.client import get_supabase

logger = logging.getLogger(__name__)

_BUYERS_TABLE: str = "buyers"
_HISTORY_TABLE: str = "buyer_history"

# Domain field -> column, where they differ.
_SORT_COLUMNS: Mapping[str, str] = {"updated_at": "updated_at_utc"}

# Characters with meaning inside a PostgREST or=() expression.
_SEARCH_RESERVED = str.maketrans({",": " ", "(": " ", ")": " ", "%": " ", "*": " "})


def _execute(query: Any, action: str) -> Any:
    """Execute a PostgREST query, surfacing any failure as StorageError."""

    try:
        response = query.execute()
    except (APIError, httpx.HTTPError) as exc:
        logger.error("Supabase request failed", extra={"action": action, "error": str(exc)})
        raise StorageError(f"Failed to {action}: {exc}") from exc

    error = getattr(response, "error", None)
    if error:
        logger.error("Supabase returned an error", extra={"action": action, "error": str(error)})
        raise StorageError(f"Failed to {action}: {error}")
    return response


def _buyer_to_row(buyer: BuyerRecord) -> dict[str, Any]:
    """Convert a domain BuyerRecord to a Supabase row payload."""

    return {
        # Identity and concurrency token
        "id": str(buyer.id),
        "owner_id": buyer.owner_id,
        "updated_at_utc": to_iso_utc(buyer.updated_at, name="updated_at"),

        # Contact information
        "full_name": buyer.full_name,
        "phone": buyer.phone,
        "email": buyer.email,

        # Requirement
        "city": buyer.city.value,
        "property_type": buyer.property_type.value,
        "bhk": buyer.bhk.value if buyer.bhk is not None else None,
        "purpose": buyer.purpose.value,
        "budget_min": buyer.budget_min,
        "budget_max": buyer.budget_max,
        "timeline": buyer.timeline.value,

        # Pipeline
        "source": buyer.source.value,
        "status": buyer.status.value,
        "notes": buyer.notes,
        "tags": sorted(buyer.tags),
    }


def _row_to_buyer(row: Mapping[str, Any]) -> BuyerRecord:
    """Convert a Supabase row into a domain BuyerRecord."""

    # Empty strings and NULLs both mean "absent"
    def get_optional(key: str) -> Optional[Any]:
        value = row.get(key)
        return value if value not in (None, "") else None

    bhk = get_optional("bhk")
    return BuyerRecord(
        id=UUID(str(row["id"])),
        owner_id=str(row["owner_id"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
        full_name=str(row["full_name"]),
        phone=str(row["phone"]),
        email=get_optional("email"),
        city=City(row["city"]),
        property_type=PropertyType(row["property_type"]),
        bhk=Bhk(bhk) if bhk is not None else None,
        purpose=Purpose(row["purpose"]),
        budget_min=get_optional("budget_min"),
        budget_max=get_optional("budget_max"),
        timeline=Timeline(row["timeline"]),
        source=Source(row["source"]),
        status=Status(row["status"]),
        notes=get_optional("notes"),
        tags=frozenset(row.get("tags") or ()),
    )


def _history_to_row(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "id": str(entry.id),
        "buyer_id": str(entry.buyer_id),
        "changed_by": entry.changed_by,
        "changed_at_utc": to_iso_utc(entry.changed_at, name="changed_at"),
        "action": entry.action.value,
        "diff": diff_to_json(entry.diff),
    }


def _row_to_history(row: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        id=UUID(str(row["id"])),
        buyer_id=UUID(str(row["buyer_id"])),
        changed_by=str(row["changed_by"]),
        changed_at=parse_utc_datetime(row["changed_at_utc"]),
        action=HistoryAction(row["action"]),
        diff=diff_from_json(row.get("diff") or {}),
    )


def _search_expression(term: str) -> str:
    cleaned = " ".join(term.translate(_SEARCH_RESERVED).split())
    pattern = f"%{cleaned}%"
    return f"full_name.ilike.{pattern},email.ilike.{pattern},phone.ilike.{pattern}"


class SupabaseBuyerStore:
    """BuyerStore backed by Supabase tables `buyers` and `buyer_history`."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get_buyer(self, buyer_id: UUID) -> Optional[BuyerRecord]:
        response = _execute(
            self.client.table(_BUYERS_TABLE).select("*").eq("id", str(buyer_id)).limit(1),
            "fetch buyer",
        )
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_buyer(rows[0])

    def insert_buyers(self, records: Sequence[BuyerRecord]) -> None:
        """
        Insert buyers in a single request.

        PostgREST executes a multi-row insert as one statement, so either every
        row is written or none is.
        """
        if not records:
            return

        payloads = [_buyer_to_row(record) for record in records]
        _execute(self.client.table(_BUYERS_TABLE).insert(payloads), f"insert {len(records)} buyers")

    def compare_and_swap(self, record: BuyerRecord, expected_updated_at: datetime) -> bool:
        payload = _buyer_to_row(record)
        payload.pop("id")
        query = (
            self.client.table(_BUYERS_TABLE)
            .update(payload)
            .eq("id", str(record.id))
            .eq("updated_at_utc", to_iso_utc(expected_updated_at, name="expected_updated_at"))
        )
        response = _execute(query, "update buyer")

        # No returned rows: either the buyer is gone or updated_at moved on.
        updated_rows = getattr(response, "data", None) or []
        return bool(updated_rows)

    def query_buyers(self, query: BuyerQuery) -> BuyerPage:
        filters = query.filters
        builder = self.client.table(_BUYERS_TABLE).select("*", count="exact")

        if filters.status is not None:
            builder = builder.eq("status", filters.status.value)
        if filters.city is not None:
            builder = builder.eq("city", filters.city.value)
        if filters.property_type is not None:
            builder = builder.eq("property_type", filters.property_type.value)
        if filters.timeline is not None:
            builder = builder.eq("timeline", filters.timeline.value)
        if filters.search:
            builder = builder.or_(_search_expression(filters.search))

        column = _SORT_COLUMNS.get(query.sort.field, query.sort.field)
        builder = builder.order(column, desc=query.sort.descending).order("id")

        start = query.page.offset
        builder = builder.range(start, start + query.page.page_size - 1)

        response = _execute(builder, "list buyers")
        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None) or 0
        return BuyerPage(records=[_row_to_buyer(row) for row in rows], total_count=total, page=query.page)

    def append_history(self, entries: Sequence[HistoryEntry]) -> None:
        if not entries:
            return
        payloads = [_history_to_row(entry) for entry in entries]
        _execute(self.client.table(_HISTORY_TABLE).insert(payloads), "append buyer history")

    def list_history(self, buyer_id: UUID, *, limit: int, offset: int = 0) -> Tuple[List[HistoryEntry], int]:
        builder = (
            self.client.table(_HISTORY_TABLE)
            .select("*", count="exact")
            .eq("buyer_id", str(buyer_id))
            .order("changed_at_utc", desc=True)
            .order("seq")
            .range(offset, offset + limit - 1)
        )
        response = _execute(builder, "list buyer history")
        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None) or 0
        return [_row_to_history(row) for row in rows], total


__all__ = ["SupabaseBuyerStore"]
