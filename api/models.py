"""
API Request and Response Models.

Pydantic models for shaping API requests and serializing responses.

Request models are deliberately loose about field types: business rules
(enums, ranges, cross-field checks) are enforced by `domain.validation` so that
every failure comes back as a per-field error in one response. Unknown fields are
kept and reported by the validator rather than dropped.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================================================
# Buyer Models
# ============================================================================

class BuyerFieldsRequest(BaseModel):
    """Editable buyer fields. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    full_name: Optional[str] = None
    phone: Optional[Union[str, int]] = None
    email: Optional[str] = None
    city: Optional[str] = None
    property_type: Optional[str] = None
    bhk: Optional[str] = None
    purpose: Optional[str] = None
    budget_min: Optional[Union[int, str]] = None
    budget_max: Optional[Union[int, str]] = None
    timeline: Optional[str] = None
    source: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None

    def candidate(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by field name."""
        return self.model_dump(exclude_unset=True)


class BuyerCreateRequest(BuyerFieldsRequest):
    """Request to create a buyer."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "full_name": "John Doe",
                "phone": "9876543210",
                "city": "Chandigarh",
                "property_type": "Apartment",
                "bhk": "Two",
                "purpose": "Buy",
                "timeline": "M0_3m",
                "source": "Website",
                "status": "New",
            }
        }
    )


class BuyerUpdateRequest(BuyerFieldsRequest):
    """Partial update guarded by the updated_at value the client last saw."""

    expected_updated_at: datetime = Field(
        ...,
        description="updated_at of the buyer as last fetched; stale values are rejected with 409",
    )

    def candidate(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"expected_updated_at"})


class BuyerResponse(BaseModel):
    """Single buyer in API response."""

    id: UUID
    owner_id: str
    updated_at: datetime
    full_name: str
    phone: str
    email: Optional[str] = None
    city: str
    property_type: str
    bhk: Optional[str] = None
    purpose: str
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    timeline: str
    source: str
    status: str
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class HistoryEntryResponse(BaseModel):
    id: UUID
    buyer_id: UUID
    changed_by: str
    changed_at: datetime
    action: str
    diff: Dict[str, Dict[str, Any]]


class BuyerDetailResponse(BaseModel):
    """Buyer plus its most recent history entries (newest first)."""

    buyer: BuyerResponse
    history: List[HistoryEntryResponse]
    history_total: int


class BuyerListResponse(BaseModel):
    """Response for buyer listing."""

    items: List[BuyerResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    filters_applied: dict

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "items": [],
                "total_count": 42,
                "page": 1,
                "page_size": 10,
                "total_pages": 5,
                "filters_applied": {"status": "New", "city": "Mohali"},
            }
        }
    )


class HistoryListResponse(BaseModel):
    buyer_id: UUID
    page: int
    limit: int
    total: int
    histories: List[HistoryEntryResponse]


# ============================================================================
# Import Models
# ============================================================================

class ImportRequest(BaseModel):
    """Request to import a batch of buyers (at most 200 rows)."""

    buyers: List[Dict[str, Any]]


class RowErrorResponse(BaseModel):
    row: int
    field: Optional[str] = None
    message: str


class ImportResponse(BaseModel):
    success: bool
    inserted_count: int
    errors: List[RowErrorResponse]
    message: Optional[str] = None


# ============================================================================
# Error Models
# ============================================================================

class FieldErrorResponse(BaseModel):
    field: str
    message: str
    rule: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    status_code: int
    errors: List[FieldErrorResponse] = Field(default_factory=list)
