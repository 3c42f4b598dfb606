# lab_inventory/services/batch_service.py
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from lab_inventory.core.errors import NotFoundError
from lab_inventory.models.inventory import InventoryBatch, InventoryItem
from lab_inventory.schemas.inventory import BatchCreate
from lab_inventory.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def allocation_order(query: Query) -> Query:
    """
    Canonical ledger order: First-Expire-First-Out, then First-In-First-Out.

    Batches without an expiry date sort after all dated ones; ties go to
    the oldest receipt, then to the id so the order is total.
    """
    return query.order_by(
        InventoryBatch.expiry_date.is_(None).asc(),
        InventoryBatch.expiry_date.asc(),
        InventoryBatch.received_date.asc(),
        InventoryBatch.id.asc(),
    )


def get_active_item(db: Session, item_id: UUID) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if item is None or not item.is_active:
        raise NotFoundError(
            "Inventory item not found or inactive.",
            field="item_id",
            id=item_id,
        )
    return item


def add_batch(db: Session, item_id: UUID, payload: BatchCreate) -> InventoryBatch:
    item = get_active_item(db, item_id)

    received = as_utc(payload.received_date) if payload.received_date else utc_now()

    batch = InventoryBatch(
        item_id=item.id,
        batch_no=payload.batch_no,
        lot_no=payload.lot_no,
        quantity=payload.quantity,
        remaining_quantity=payload.quantity,
        expiry_date=payload.expiry_date,
        received_date=received,
        supplier_name=payload.supplier_name,
        unit_cost=payload.unit_cost,
        notes=payload.notes,
    )

    try:
        db.add(batch)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to add batch item_id=%s", item_id)
        raise

    db.refresh(batch)
    logger.info(
        "Batch received item_id=%s batch_id=%s qty=%s expiry=%s",
        item_id,
        batch.id,
        batch.quantity,
        batch.expiry_date,
    )
    return batch


def list_batches(db: Session, item_id: UUID) -> list[InventoryBatch]:
    """
    All batches of an item, exhausted ones included, in allocation order.
    """
    if db.get(InventoryItem, item_id) is None:
        raise NotFoundError("Inventory item not found.", field="item_id", id=item_id)

    query = db.query(InventoryBatch).filter(InventoryBatch.item_id == item_id)
    return allocation_order(query).all()
