# lab_inventory/api/v1/endpoints/inventory.py
from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lab_inventory.core.database import get_db
from lab_inventory.core.errors import ValidationError
from lab_inventory.models.inventory import InventoryItem, ItemKind
from lab_inventory.schemas.inventory import (
    BatchCreate,
    BatchResponse,
    ConsumeRequest,
    ExpiringBatchResponse,
    FulfillmentReportResponse,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
    StockLevelResponse,
)
from lab_inventory.services import (
    alert_service,
    allocation_service,
    batch_service,
    item_service,
    stock_service,
)
from lab_inventory.services.stock_service import StockLevel

router = APIRouter()

_ACTIVE_FILTER = {"true": True, "false": False, "all": None}


def _parse_kind(value: str) -> ItemKind:
    try:
        return ItemKind(value.strip().upper())
    except ValueError:
        raise ValidationError(
            "Unknown item kind.", field="type", value=value
        ) from None


def _item_response(item: InventoryItem, level: StockLevel | None) -> ItemResponse:
    response = ItemResponse.model_validate(item)
    if level is None:
        return response
    return response.model_copy(
        update={"stock": float(level.stock), "next_expiry": level.next_expiry}
    )


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@router.get("/items", response_model=list[ItemResponse])
def list_items(
    search: Optional[str] = Query(
        None, description="Case-insensitive substring of the item name"
    ),
    type: Optional[str] = Query(
        None, description="Filter by kind (EQUIPMENT or REAGENT, any case)"
    ),
    active: Literal["true", "false", "all"] = Query(
        "true", description="'true' (default), 'false' or 'all'"
    ),
    db: Session = Depends(get_db),
) -> list[ItemResponse]:
    """
    List catalog items with their current stock and next expiry.
    """
    kind = _parse_kind(type) if type else None
    items = item_service.list_items(
        db, search=search, kind=kind, active=_ACTIVE_FILTER[active]
    )
    levels = stock_service.stock_levels(db, [item.id for item in items])
    return [_item_response(item, levels.get(item.id)) for item in items]


@router.post(
    "/items",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_item(
    payload: ItemCreate,
    db: Session = Depends(get_db),
) -> ItemResponse:
    item = item_service.create_item(db, payload)
    return _item_response(item, None)


@router.get("/items/{item_id}", response_model=ItemResponse)
def get_item(
    item_id: UUID,
    db: Session = Depends(get_db),
) -> ItemResponse:
    item = item_service.get_item(db, item_id)
    return _item_response(item, stock_service.stock_of(db, item_id))


@router.put("/items/{item_id}", response_model=ItemResponse)
def update_item(
    item_id: UUID,
    payload: ItemUpdate,
    db: Session = Depends(get_db),
) -> ItemResponse:
    """
    Partial update: only fields present in the body are changed.
    """
    item = item_service.update_item(db, item_id, payload)
    return _item_response(item, stock_service.stock_of(db, item_id))


@router.delete("/items/{item_id}", response_model=ItemResponse)
def deactivate_item(
    item_id: UUID,
    db: Session = Depends(get_db),
) -> ItemResponse:
    """
    Soft delete. The item and its batches are kept for audit.
    """
    item = item_service.deactivate_item(db, item_id)
    return _item_response(item, stock_service.stock_of(db, item_id))


@router.get("/items/{item_id}/stock", response_model=StockLevelResponse)
def get_item_stock(
    item_id: UUID,
    db: Session = Depends(get_db),
) -> StockLevelResponse:
    return StockLevelResponse.model_validate(stock_service.stock_of(db, item_id))


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


@router.get("/items/{item_id}/batches", response_model=list[BatchResponse])
def list_batches(
    item_id: UUID,
    db: Session = Depends(get_db),
) -> list[BatchResponse]:
    """
    All batches of the item in allocation order (soonest expiry first).
    """
    batches = batch_service.list_batches(db, item_id)
    return [BatchResponse.model_validate(b) for b in batches]


@router.post(
    "/items/{item_id}/batches",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_batch(
    item_id: UUID,
    payload: BatchCreate,
    db: Session = Depends(get_db),
) -> BatchResponse:
    batch = batch_service.add_batch(db, item_id, payload)
    return BatchResponse.model_validate(batch)


# ---------------------------------------------------------------------------
# Consumption & alerts
# ---------------------------------------------------------------------------


@router.post("/consume", response_model=FulfillmentReportResponse)
def consume(
    payload: ConsumeRequest,
    db: Session = Depends(get_db),
) -> FulfillmentReportResponse:
    """
    Draw stock from the item's batches (FEFO, preferred batch first).

    A shortfall is not an error: check `partial` and `used`.
    """
    report = allocation_service.consume(
        db,
        payload.item_id,
        payload.quantity,
        preferred_batch_id=payload.batch_id,
    )
    return FulfillmentReportResponse.model_validate(report)


@router.get("/low-stock", response_model=list[ItemResponse])
def low_stock(
    threshold: Optional[float] = Query(
        None, description="Override every item's min_stock with this value"
    ),
    db: Session = Depends(get_db),
) -> list[ItemResponse]:
    entries = alert_service.low_stock(db, threshold=threshold)
    return [_item_response(entry.item, entry.level) for entry in entries]


@router.get("/expiring-soon", response_model=list[ExpiringBatchResponse])
def expiring_soon(
    days: Optional[int] = Query(
        None, description="Window in days from today (default 30)"
    ),
    db: Session = Depends(get_db),
) -> list[ExpiringBatchResponse]:
    batches = alert_service.expiring_soon(db, days=days)
    return [ExpiringBatchResponse.model_validate(b) for b in batches]
