"""
Domain: Buyer lead entity.

Rules implemented here:
- A BuyerRecord is uniquely identified by id (UUID), assigned at creation and immutable.
- Enumerated fields (city, property_type, bhk, purpose, timeline, source, status) are
  closed sets; values outside them never reach this entity.
- updated_at is a UTC timestamp and doubles as the optimistic-concurrency token.
- tags have set semantics.

This module contains only pure domain entities/value objects: no I/O, no database,
no frameworks. Field-level validation lives in `domain.validation`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional
from uuid import UUID

from domain.time import require_utc_timestamp


class City(str, Enum):
    CHANDIGARH = "Chandigarh"
    MOHALI = "Mohali"
    ZIRAKPUR = "Zirakpur"
    PANCHKULA = "Panchkula"
    OTHER = "Other"


class PropertyType(str, Enum):
    APARTMENT = "Apartment"
    VILLA = "Villa"
    PLOT = "Plot"
    OFFICE = "Office"
    RETAIL = "Retail"

    @property
    def is_residential(self) -> bool:
        return self in RESIDENTIAL_PROPERTY_TYPES


class Bhk(str, Enum):
    STUDIO = "Studio"
    ONE = "One"
    TWO = "Two"
    THREE = "Three"
    FOUR = "Four"


class Purpose(str, Enum):
    BUY = "Buy"
    RENT = "Rent"


class Timeline(str, Enum):
    M0_3M = "M0_3m"
    M3_6M = "M3_6m"
    MORE_THAN_6M = "MoreThan6m"
    EXPLORING = "Exploring"


class Source(str, Enum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    WALK_IN = "Walk_in"
    CALL = "Call"
    OTHER = "Other"


class Status(str, Enum):
    NEW = "New"
    QUALIFIED = "Qualified"
    CONTACTED = "Contacted"
    VISITED = "Visited"
    NEGOTIATION = "Negotiation"
    CONVERTED = "Converted"
    DROPPED = "Dropped"


# Property types for which a BHK value is mandatory.
RESIDENTIAL_PROPERTY_TYPES: FrozenSet[PropertyType] = frozenset(
    {PropertyType.APARTMENT, PropertyType.VILLA}
)

ENUM_FIELDS: Mapping[str, type[Enum]] = {
    "city": City,
    "property_type": PropertyType,
    "bhk": Bhk,
    "purpose": Purpose,
    "timeline": Timeline,
    "source": Source,
    "status": Status,
}


@dataclass(frozen=True, slots=True)
class BuyerDraft:
    """
    Validated, typed candidate for a new buyer.

    Produced only by `domain.validation.validate_create`; carries every editable
    field but no identity, owner or concurrency token.
    """

    full_name: str
    phone: str
    city: City
    property_type: PropertyType
    purpose: Purpose
    timeline: Timeline
    source: Source
    status: Status = Status.NEW
    bhk: Optional[Bhk] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None

    def to_record(self, *, buyer_id: UUID, owner_id: str, updated_at: datetime) -> "BuyerRecord":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return BuyerRecord(id=buyer_id, owner_id=owner_id, updated_at=updated_at, **values)


# Fields a patch may touch. Identity, ownership and the concurrency token are excluded.
EDITABLE_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(BuyerDraft))

REQUIRED_FIELDS: tuple[str, ...] = (
    "full_name",
    "phone",
    "city",
    "property_type",
    "purpose",
    "timeline",
    "source",
)


@dataclass(frozen=True, slots=True)
class BuyerRecord:
    """
    Persisted buyer lead.

    Immutability:
    - This entity is frozen; updates produce a new instance via `BuyerPatch.apply`.
    """

    id: UUID
    owner_id: str
    updated_at: datetime
    full_name: str
    phone: str
    city: City
    property_type: PropertyType
    purpose: Purpose
    timeline: Timeline
    source: Source
    status: Status = Status.NEW
    bhk: Optional[Bhk] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("updated_at", self.updated_at)

    def editable_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


@dataclass(frozen=True, slots=True)
class BuyerPatch:
    """
    Explicit typed partial update.

    `changes` holds already-validated values for the fields the caller supplied.
    `normalized` holds fields the validator had to adjust on the effective record
    without the caller asking (e.g. bhk cleared when property_type becomes Plot);
    they are persisted but never reported as changed.
    """

    changes: Mapping[str, Any]
    normalized: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = (set(self.changes) | set(self.normalized)) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"BuyerPatch contains non-editable fields: {sorted(unknown)}")

    @property
    def field_names(self) -> FrozenSet[str]:
        return frozenset(self.changes)

    def apply(self, record: BuyerRecord, *, updated_at: datetime) -> BuyerRecord:
        values = {**self.normalized, **self.changes}
        return replace(record, updated_at=updated_at, **values)


def to_json_value(value: Any) -> Any:
    """Render a field value as plain JSON (enum values, sorted tag lists, ISO timestamps)."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


__all__ = [
    "Bhk",
    "BuyerDraft",
    "BuyerPatch",
    "BuyerRecord",
    "City",
    "EDITABLE_FIELDS",
    "ENUM_FIELDS",
    "PropertyType",
    "Purpose",
    "REQUIRED_FIELDS",
    "RESIDENTIAL_PROPERTY_TYPES",
    "Source",
    "Status",
    "Timeline",
    "to_json_value",
]
