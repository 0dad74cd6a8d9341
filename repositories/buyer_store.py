"""
Buyer store contract (persistence).

The core treats the durable store as a collaborator that offers:
- point lookup by id
- conditional update (compare-and-swap on updated_at)
- multi-row atomic insert
- filtered, sorted, paginated scan
- append-only history storage

No business rules (validation, diffing, authorization) belong here.
Implementations raise `domain.errors.StorageError` for any backend failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from domain.buyer import BuyerRecord, City, PropertyType, Status, Timeline
from domain.errors import FieldError, RuleKind, ValidationError
from domain.history import HistoryEntry

DEFAULT_PAGE_SIZE: int = 10
MAX_PAGE_SIZE: int = 100

SORTABLE_FIELDS: FrozenSet[str] = frozenset(
    {
        "full_name",
        "phone",
        "email",
        "city",
        "property_type",
        "purpose",
        "timeline",
        "source",
        "status",
        "budget_min",
        "budget_max",
        "updated_at",
    }
)


@dataclass(frozen=True, slots=True)
class BuyerFilters:
    """
    Exact-match filters, ANDed together, plus an optional search term.

    `search` is a case-insensitive substring matched against full_name, email
    or phone (any of them).
    """

    status: Optional[Status] = None
    city: Optional[City] = None
    property_type: Optional[PropertyType] = None
    timeline: Optional[Timeline] = None
    search: Optional[str] = None

    def __post_init__(self) -> None:
        if self.search is not None:
            term = self.search.strip()
            object.__setattr__(self, "search", term or None)


@dataclass(frozen=True, slots=True)
class BuyerSort:
    """Single-field sort; ties are always broken by id ascending."""

    field: str = "updated_at"
    descending: bool = True

    def __post_init__(self) -> None:
        if self.field not in SORTABLE_FIELDS:
            allowed = ", ".join(sorted(SORTABLE_FIELDS))
            raise ValidationError(
                [FieldError("sort", f"Cannot sort by '{self.field}'. Allowed: {allowed}", RuleKind.ENUM)]
            )


@dataclass(frozen=True, slots=True)
class PageRequest:
    """Offset pagination: page numbers start at 1."""

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        errors = []
        if self.page < 1:
            errors.append(FieldError("page", "Page must be 1 or greater", RuleKind.RANGE))
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            errors.append(
                FieldError("page_size", f"Page size must be between 1 and {MAX_PAGE_SIZE}", RuleKind.RANGE)
            )
        if errors:
            raise ValidationError(errors)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class BuyerQuery:
    filters: BuyerFilters = field(default_factory=BuyerFilters)
    sort: BuyerSort = field(default_factory=BuyerSort)
    page: PageRequest = field(default_factory=PageRequest)


@dataclass(frozen=True, slots=True)
class BuyerPage:
    records: List[BuyerRecord]
    total_count: int
    page: PageRequest

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return -(-self.total_count // self.page.page_size)


class BuyerStore(Protocol):
    """Transactional record store used by the buyer services."""

    def get_buyer(self, buyer_id: UUID) -> Optional[BuyerRecord]:
        """Return the stored record or None."""
        ...

    def insert_buyers(self, records: Sequence[BuyerRecord]) -> None:
        """Insert every record or none of them."""
        ...

    def compare_and_swap(self, record: BuyerRecord, expected_updated_at: datetime) -> bool:
        """
        Replace the stored record only if its updated_at equals expected_updated_at.

        Returns False when the guard fails (stale token or missing record).
        """
        ...

    def query_buyers(self, query: BuyerQuery) -> BuyerPage:
        ...

    def append_history(self, entries: Sequence[HistoryEntry]) -> None:
        ...

    def list_history(self, buyer_id: UUID, *, limit: int, offset: int = 0) -> Tuple[List[HistoryEntry], int]:
        """Return (entries newest first, total count) for a buyer."""
        ...


__all__ = [
    "BuyerFilters",
    "BuyerPage",
    "BuyerQuery",
    "BuyerSort",
    "BuyerStore",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "PageRequest",
    "SORTABLE_FIELDS",
]
