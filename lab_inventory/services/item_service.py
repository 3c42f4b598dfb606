# lab_inventory/services/item_service.py
import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lab_inventory.core.errors import ConflictError, NotFoundError
from lab_inventory.models.inventory import InventoryItem, ItemKind
from lab_inventory.schemas.inventory import ItemCreate, ItemUpdate

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an explicit null in an update payload
_REQUIRED_FIELDS = ("name", "kind", "min_stock", "is_active")


def _name_taken(name: str, **data) -> ConflictError:
    return ConflictError(
        "An active inventory item with the same name already exists.",
        field="name",
        name=name,
        **data,
    )


def get_item(db: Session, item_id: UUID) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found.", id=item_id)
    return item


def _ensure_name_available(
    db: Session, name: str, *, exclude_id: UUID | None = None
) -> None:
    """
    Names are unique among active items, compared case-insensitively.
    """
    query = db.query(InventoryItem.id).filter(
        func.lower(InventoryItem.name) == name.strip().lower(),
        InventoryItem.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)

    existing = query.first()
    if existing is not None:
        raise _name_taken(name, id=existing.id)


def create_item(db: Session, payload: ItemCreate) -> InventoryItem:
    if payload.is_active:
        _ensure_name_available(db, payload.name)

    item = InventoryItem(
        name=payload.name,
        kind=payload.kind,
        category=payload.category,
        unit=payload.unit,
        description=payload.description,
        min_stock=payload.min_stock,
        is_active=payload.is_active,
    )

    try:
        db.add(item)
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same name
        db.rollback()
        raise _name_taken(payload.name) from None
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create inventory item name=%s", payload.name)
        raise

    db.refresh(item)
    logger.info("Inventory item created id=%s name=%s", item.id, item.name)
    return item


def update_item(db: Session, item_id: UUID, payload: ItemUpdate) -> InventoryItem:
    """
    Apply a partial update. Only fields present in the payload are touched.
    """
    item = get_item(db, item_id)
    changes = payload.model_dump(exclude_unset=True)

    for field in _REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            del changes[field]

    effective_name = changes.get("name", item.name)
    effective_active = changes.get("is_active", item.is_active)
    renamed = effective_name.strip().lower() != item.name.strip().lower()
    reactivated = effective_active and not item.is_active
    if effective_active and (renamed or reactivated):
        _ensure_name_available(db, effective_name, exclude_id=item.id)

    for field, value in changes.items():
        setattr(item, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _name_taken(effective_name) from None
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update inventory item id=%s", item_id)
        raise

    db.refresh(item)
    return item


def deactivate_item(db: Session, item_id: UUID) -> InventoryItem:
    """
    Soft delete: the item and its batches stay for audit, but it no longer
    takes part in allocation or alerts.
    """
    item = get_item(db, item_id)
    if not item.is_active:
        return item

    item.is_active = False
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(item)
    logger.info("Inventory item deactivated id=%s", item.id)
    return item


def list_items(
    db: Session,
    *,
    search: str | None = None,
    kind: ItemKind | None = None,
    active: bool | None = True,
) -> list[InventoryItem]:
    """
    Catalog listing with optional filters.

    active=True returns active items only, False inactive only, None all.
    """
    query = db.query(InventoryItem)

    if active is not None:
        query = query.filter(InventoryItem.is_active.is_(active))
    if kind is not None:
        query = query.filter(InventoryItem.kind == kind)
    if search and search.strip():
        query = query.filter(InventoryItem.name.ilike(f"%{search.strip()}%"))

    return query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()
