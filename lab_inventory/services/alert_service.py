# lab_inventory/services/alert_service.py
"""
Alerting queries: low stock and expiring batches.

Usage:
    from lab_inventory.services.alert_service import expiring_soon, low_stock

    for entry in low_stock(db):
        print(entry.item.name, entry.level.stock)
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session, contains_eager

from lab_inventory.core.config import get_settings
from lab_inventory.core.errors import ValidationError
from lab_inventory.models.inventory import InventoryBatch, InventoryItem
from lab_inventory.services.stock_service import StockLevel, stock_levels
from lab_inventory.utils.datetime_utils import utc_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemStock:
    item: InventoryItem
    level: StockLevel


def _coerce_threshold(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Threshold must be a number.", field="threshold", value=value)
    try:
        threshold = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(
            "Threshold must be a number.", field="threshold", value=value
        ) from None
    if not threshold.is_finite() or threshold < 0:
        raise ValidationError(
            "Threshold must be a non-negative number.", field="threshold", value=value
        )
    return threshold


def low_stock(db: Session, threshold: Any = None) -> list[ItemStock]:
    """
    Active items whose stock is at or below `threshold`, or at or below
    their own min_stock when no threshold is given. Most critical first.

    Args:
        threshold: Optional override applied to every item.

    Returns:
        List of ItemStock ordered by stock ascending, then name.
    """
    limit = _coerce_threshold(threshold) if threshold is not None else None

    items = (
        db.query(InventoryItem)
        .filter(InventoryItem.is_active.is_(True))
        .order_by(InventoryItem.name.asc())
        .all()
    )
    levels = stock_levels(db, [item.id for item in items])

    flagged: list[ItemStock] = []
    for item in items:
        level = levels[item.id]
        floor = limit if limit is not None else (item.min_stock or Decimal("0"))
        if level.stock <= floor:
            flagged.append(ItemStock(item=item, level=level))
            logger.warning(
                "Low stock item_id=%s name=%s stock=%s threshold=%s",
                item.id,
                item.name,
                level.stock,
                floor,
            )

    flagged.sort(key=lambda entry: (entry.level.stock, entry.item.name.lower()))
    return flagged


def expiring_soon(
    db: Session,
    days: Any = None,
    *,
    today: date | None = None,
) -> list[InventoryBatch]:
    """
    Batches with stock left whose expiry falls on or before today + days.

    Lots already past expiry are included (they are the most urgent).
    Batches of inactive items are left out.
    """
    if days is None:
        days = get_settings().expiring_soon_default_days
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationError(
            "Days must be a non-negative integer.", field="days", value=days
        )

    cutoff = (today or utc_today()) + timedelta(days=days)

    return (
        db.query(InventoryBatch)
        .join(InventoryBatch.item)
        .options(contains_eager(InventoryBatch.item))
        .filter(
            InventoryItem.is_active.is_(True),
            InventoryBatch.remaining_quantity > 0,
            InventoryBatch.expiry_date.is_not(None),
            InventoryBatch.expiry_date <= cutoff,
        )
        .order_by(
            InventoryBatch.expiry_date.asc(),
            InventoryBatch.received_date.asc(),
            InventoryBatch.id.asc(),
        )
        .all()
    )
