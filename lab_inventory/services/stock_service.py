# lab_inventory/services/stock_service.py
"""
Stock aggregation over the batch ledger.

Stock is never cached on the item: every read folds over the batches, so
it always reflects the latest committed consumption.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from lab_inventory.core.errors import NotFoundError
from lab_inventory.models.inventory import InventoryBatch, InventoryItem


@dataclass(frozen=True)
class StockLevel:
    item_id: UUID
    stock: Decimal
    next_expiry: date | None


def _aggregate(db: Session, item_ids: list[UUID]) -> dict[UUID, StockLevel]:
    open_expiry = case(
        (
            and_(
                InventoryBatch.remaining_quantity > 0,
                InventoryBatch.expiry_date.is_not(None),
            ),
            InventoryBatch.expiry_date,
        ),
        else_=None,
    )

    rows = (
        db.query(
            InventoryBatch.item_id,
            func.coalesce(func.sum(InventoryBatch.remaining_quantity), 0),
            func.min(open_expiry),
        )
        .filter(InventoryBatch.item_id.in_(item_ids))
        .group_by(InventoryBatch.item_id)
        .all()
    )

    levels = {
        item_id: StockLevel(item_id=item_id, stock=Decimal("0"), next_expiry=None)
        for item_id in item_ids
    }
    for item_id, stock, next_expiry in rows:
        levels[item_id] = StockLevel(
            item_id=item_id,
            stock=Decimal(stock or 0),
            next_expiry=next_expiry,
        )
    return levels


def stock_levels(db: Session, item_ids: Iterable[UUID]) -> dict[UUID, StockLevel]:
    """
    Stock and next expiry for many items in one query.

    Items without batches map to stock 0 and no expiry.
    """
    ids = list(dict.fromkeys(item_ids))
    if not ids:
        return {}
    return _aggregate(db, ids)


def stock_of(db: Session, item_id: UUID) -> StockLevel:
    if db.get(InventoryItem, item_id) is None:
        raise NotFoundError("Inventory item not found.", field="item_id", id=item_id)
    return _aggregate(db, [item_id])[item_id]
