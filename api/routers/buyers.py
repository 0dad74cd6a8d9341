"""
Buyers API Endpoints.

Endpoints for creating, editing, listing, importing and exporting buyer leads,
and for reading a buyer's change history.

Domain errors (validation, conflicts, not found, storage, batch limit, rate
limit) propagate to the exception handlers registered in `api.main`.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Type
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.concurrency import run_in_threadpool

from api.dependencies import get_buyer_service, get_import_service, rate_limited
from api.models import (
    BuyerCreateRequest,
    BuyerDetailResponse,
    BuyerListResponse,
    BuyerResponse,
    BuyerUpdateRequest,
    HistoryEntryResponse,
    HistoryListResponse,
    ImportRequest,
    ImportResponse,
    RowErrorResponse,
)
from domain.actor import Actor
from domain.buyer import BuyerRecord, City, PropertyType, Status, Timeline, to_json_value
from domain.diff import diff_to_json
from domain.history import HistoryEntry
from domain.time import parse_utc_datetime
from repositories.buyer_store import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, BuyerFilters, BuyerSort, PageRequest
from services.buyer_service import BuyerService
from services.csv_service import export_buyers_csv, parse_buyers_csv, to_field_names
from services.history_service import DEFAULT_HISTORY_LIMIT
from services.import_service import ImportResult, ImportService

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_buyer_response(buyer: BuyerRecord) -> BuyerResponse:
    return BuyerResponse(
        id=buyer.id,
        owner_id=buyer.owner_id,
        updated_at=buyer.updated_at,
        full_name=buyer.full_name,
        phone=buyer.phone,
        email=buyer.email,
        city=buyer.city.value,
        property_type=buyer.property_type.value,
        bhk=to_json_value(buyer.bhk),
        purpose=buyer.purpose.value,
        budget_min=buyer.budget_min,
        budget_max=buyer.budget_max,
        timeline=buyer.timeline.value,
        source=buyer.source.value,
        status=buyer.status.value,
        notes=buyer.notes,
        tags=sorted(buyer.tags),
    )


def _to_history_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        buyer_id=entry.buyer_id,
        changed_by=entry.changed_by,
        changed_at=entry.changed_at,
        action=entry.action.value,
        diff=diff_to_json(entry.diff),
    )


def _parse_enum(enum_type: Type[Enum], name: str, value: Optional[str]) -> Optional[Enum]:
    if value is None or value == "":
        return None
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name}. Must be one of: {allowed}; got '{value}'",
        )


def _build_filters(
    status: Optional[str],
    city: Optional[str],
    property_type: Optional[str],
    timeline: Optional[str],
    search: Optional[str],
) -> BuyerFilters:
    return BuyerFilters(
        status=_parse_enum(Status, "status", status),
        city=_parse_enum(City, "city", city),
        property_type=_parse_enum(PropertyType, "property_type", property_type),
        timeline=_parse_enum(Timeline, "timeline", timeline),
        search=search,
    )


def _filters_applied(filters: BuyerFilters) -> Dict[str, Any]:
    applied: Dict[str, Any] = {}
    for name in ("status", "city", "property_type", "timeline", "search"):
        value = getattr(filters, name)
        if value is not None:
            applied[name] = to_json_value(value)
    return applied


def _to_import_response(result: ImportResult) -> ImportResponse:
    if result.success:
        message = f"{result.inserted_count} buyers inserted"
    else:
        failed_rows = len({e.row for e in result.errors})
        message = f"Import rejected: {failed_rows} of {result.validated_count + failed_rows} rows failed validation"
    return ImportResponse(
        success=result.success,
        inserted_count=result.inserted_count,
        errors=[RowErrorResponse(row=e.row, field=e.field, message=e.message) for e in result.errors],
        message=message,
    )


def _import_response(result: ImportResult, response: Response) -> ImportResponse:
    if not result.success:
        response.status_code = 400
    return _to_import_response(result)


@router.post(
    "/buyers",
    response_model=BuyerResponse,
    status_code=201,
    summary="Create Buyer",
    description="Create a buyer lead owned by the calling user.",
)
def create_buyer(
    request: BuyerCreateRequest,
    actor: Actor = Depends(rate_limited("create_update")),
    service: BuyerService = Depends(get_buyer_service),
):
    """
    Create a buyer lead.

    `status` defaults to `New`. `bhk` is required for Apartment and Villa and is
    dropped for Plot, Office and Retail.

    **Example request:**
    ```json
    {
      "full_name": "John Doe",
      "phone": "9876543210",
      "city": "Chandigarh",
      "property_type": "Apartment",
      "bhk": "Two",
      "purpose": "Buy",
      "timeline": "M0_3m",
      "source": "Website"
    }
    ```
    """
    buyer = service.create(request.candidate(), actor.actor_id)
    return _to_buyer_response(buyer)


@router.get(
    "/buyers",
    response_model=BuyerListResponse,
    summary="List Buyers",
    description="Filter, search, sort and paginate buyer leads.",
)
def list_buyers(
    status: Optional[str] = Query(None, description="Filter by status (e.g., 'New')"),
    city: Optional[str] = Query(None, description="Filter by city (e.g., 'Mohali')"),
    property_type: Optional[str] = Query(None, description="Filter by property type"),
    timeline: Optional[str] = Query(None, description="Filter by timeline (e.g., 'M0_3m')"),
    search: Optional[str] = Query(None, description="Case-insensitive match on name, email or phone"),
    sort: str = Query("updated_at", description="Field to sort by"),
    order: str = Query("desc", pattern="^(asc|desc)$", description="Sort direction"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(rate_limited("general")),
    service: BuyerService = Depends(get_buyer_service),
):
    """
    **Example usage:**
    - First page, newest first: `GET /api/v1/buyers`
    - Filter: `GET /api/v1/buyers?status=New&city=Mohali`
    - Search and sort: `GET /api/v1/buyers?search=doe&sort=full_name&order=asc&page=2`
    """
    filters = _build_filters(status, city, property_type, timeline, search)
    result = service.list(
        filters=filters,
        sort=BuyerSort(field=sort, descending=order == "desc"),
        page=PageRequest(page=page, page_size=page_size),
    )
    return BuyerListResponse(
        items=[_to_buyer_response(b) for b in result.records],
        total_count=result.total_count,
        page=result.page.page,
        page_size=result.page.page_size,
        total_pages=result.total_pages,
        filters_applied=_filters_applied(filters),
    )


@router.get(
    "/buyers/export",
    summary="Export Buyers CSV",
    description="Download every buyer matching the filters as CSV, most recently updated first.",
    response_class=Response,
)
def export_buyers(
    status: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None),
    timeline: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    actor: Actor = Depends(rate_limited("general")),
    service: BuyerService = Depends(get_buyer_service),
):
    filters = _build_filters(status, city, property_type, timeline, search)
    csv_content = export_buyers_csv(service.iter_buyers(filters, BuyerSort(field="updated_at", descending=True)))
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=buyers.csv"},
    )


@router.post(
    "/buyers/import",
    response_model=ImportResponse,
    summary="Import Buyers",
    description="Validate and insert up to 200 buyers; all-or-nothing.",
)
def import_buyers(
    request: ImportRequest,
    response: Response,
    actor: Actor = Depends(rate_limited("import")),
    service: ImportService = Depends(get_import_service),
):
    """
    Import a batch of buyers.

    **All-or-Nothing Strategy:**
    Every row is validated first. If any row fails, nothing is inserted and the
    response lists every row error (rows are numbered from 1). Keys may be
    camelCase (fullName) or snake_case (full_name), as in the CSV import.
    """
    rows = [to_field_names(row) for row in request.buyers]
    result = service.import_batch(rows, actor.actor_id)
    return _import_response(result, response)


@router.post(
    "/buyers/import/csv",
    response_model=ImportResponse,
    summary="Import Buyers CSV",
    description="Same as /buyers/import, with a raw text/csv request body.",
)
async def import_buyers_csv(
    request: Request,
    response: Response,
    actor: Actor = Depends(rate_limited("import")),
    service: ImportService = Depends(get_import_service),
):
    body = await request.body()
    try:
        rows = parse_buyers_csv(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid CSV: {str(e)}")

    result = await run_in_threadpool(service.import_batch, rows, actor.actor_id)
    return _import_response(result, response)


@router.get(
    "/buyers/{buyer_id}",
    response_model=BuyerDetailResponse,
    summary="Get Buyer",
    description="Fetch a buyer with its 5 most recent history entries.",
)
def get_buyer(
    buyer_id: UUID,
    actor: Actor = Depends(rate_limited("general")),
    service: BuyerService = Depends(get_buyer_service),
):
    detail = service.get_with_history(buyer_id)
    return BuyerDetailResponse(
        buyer=_to_buyer_response(detail.buyer),
        history=[_to_history_response(e) for e in detail.history],
        history_total=detail.history_total,
    )


@router.patch(
    "/buyers/{buyer_id}",
    response_model=BuyerResponse,
    summary="Update Buyer",
    description="Partially update a buyer. Only the owner or an admin may edit.",
)
def update_buyer(
    buyer_id: UUID,
    request: BuyerUpdateRequest,
    actor: Actor = Depends(rate_limited("create_update")),
    service: BuyerService = Depends(get_buyer_service),
):
    """
    Partially update a buyer.

    **Concurrency:**
    `expected_updated_at` must be the `updated_at` value the client last saw.
    If someone else saved the buyer in the meantime the request fails with 409
    and the client should re-fetch before retrying.
    """
    current = service.get(buyer_id)
    if not actor.can_modify(current):
        logger.warning(
            "Buyer update forbidden",
            extra={"buyer_id": str(buyer_id), "actor_id": actor.actor_id, "owner_id": current.owner_id},
        )
        raise HTTPException(status_code=403, detail="Forbidden")

    buyer = service.update(
        buyer_id,
        request.candidate(),
        expected_updated_at=parse_utc_datetime(request.expected_updated_at),
        actor_id=actor.actor_id,
    )
    return _to_buyer_response(buyer)


@router.get(
    "/buyers/{buyer_id}/history",
    response_model=HistoryListResponse,
    summary="Buyer History",
    description="Paginated change history for a buyer, newest first.",
)
def get_buyer_history(
    buyer_id: UUID,
    page: int = Query(1),
    limit: int = Query(DEFAULT_HISTORY_LIMIT),
    actor: Actor = Depends(rate_limited("general")),
    service: BuyerService = Depends(get_buyer_service),
):
    # quick existence check
    service.get(buyer_id)

    if page < 1:
        page = 1
    if limit < 1:
        limit = DEFAULT_HISTORY_LIMIT
    entries, total = service.history.list_history(buyer_id, page=page, limit=limit)
    return HistoryListResponse(
        buyer_id=buyer_id,
        page=page,
        limit=limit,
        total=total,
        histories=[_to_history_response(e) for e in entries],
    )
