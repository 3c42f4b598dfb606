# lab_inventory/models/inventory.py
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Uuid,
    func,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_inventory.models.base import Base
from lab_inventory.utils.datetime_utils import utc_now

# Quantities allow fractional units (ml, g) with three decimals.
QUANTITY = Numeric(14, 3)


class ItemKind(str, PyEnum):
    EQUIPMENT = "EQUIPMENT"
    REAGENT = "REAGENT"


ITEM_KIND_ENUM = Enum(
    ItemKind,
    name="inventory_item_kind_enum",
)


class InventoryItem(Base):
    """
    An allocatable lab item (reagent or equipment consumable).

    Items are never hard-deleted while batches reference them; they are
    deactivated instead, which removes them from allocation and alerts.
    """

    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    kind: Mapped[ItemKind] = mapped_column(ITEM_KIND_ENUM, nullable=False, index=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        doc="e.g., ml, pcs, kits",
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    min_stock: Mapped[Decimal] = mapped_column(
        QUANTITY,
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
        doc="Low-stock threshold",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )

    batches: Mapped[list["InventoryBatch"]] = relationship(
        "InventoryBatch",
        back_populates="item",
        passive_deletes="all",
    )

    __table_args__ = (
        CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock"),
    )


# Active item names are unique regardless of case.
Index(
    "uq_inventory_items_active_name",
    func.lower(InventoryItem.__table__.c.name),
    unique=True,
    postgresql_where=InventoryItem.__table__.c.is_active,
    sqlite_where=InventoryItem.__table__.c.is_active,
)


class InventoryBatch(Base):
    """
    A lot of stock received for one item.

    quantity is what arrived and never changes; remaining_quantity is
    drawn down by the allocation engine only. Exhausted batches stay in
    the ledger for traceability.
    """

    __tablename__ = "inventory_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    batch_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_no: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)

    expiry_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        index=True,
        doc="Last day the lot can be used; NULL means it does not expire",
    )
    received_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    supplier_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    item: Mapped["InventoryItem"] = relationship("InventoryItem", back_populates="batches")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_batches_quantity"),
        CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_inventory_batches_remaining",
        ),
    )
