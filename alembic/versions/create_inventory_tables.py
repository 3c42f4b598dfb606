"""create_inventory_tables

Revision ID: create_inventory_tables
Revises:
Create Date: 2026-10-19 09:12:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "create_inventory_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("EQUIPMENT", "REAGENT", name="inventory_item_kind_enum"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=50), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column(
            "min_stock",
            sa.Numeric(14, 3),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_inventory_items_name"), "inventory_items", ["name"]
    )
    op.create_index(
        op.f("ix_inventory_items_kind"), "inventory_items", ["kind"]
    )
    op.create_index(
        op.f("ix_inventory_items_is_active"), "inventory_items", ["is_active"]
    )
    op.create_index(
        "uq_inventory_items_active_name",
        "inventory_items",
        [sa.text("lower(name)")],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )

    op.create_table(
        "inventory_batches",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("batch_no", sa.String(length=100), nullable=True),
        sa.Column("lot_no", sa.String(length=100), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("remaining_quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_batches_quantity"),
        sa.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_inventory_batches_remaining",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["inventory_items.id"], ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_inventory_batches_item_id"), "inventory_batches", ["item_id"]
    )
    op.create_index(
        op.f("ix_inventory_batches_expiry_date"),
        "inventory_batches",
        ["expiry_date"],
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_inventory_batches_expiry_date"), table_name="inventory_batches")
    op.drop_index(op.f("ix_inventory_batches_item_id"), table_name="inventory_batches")
    op.drop_table("inventory_batches")

    op.drop_index("uq_inventory_items_active_name", table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_is_active"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_kind"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_name"), table_name="inventory_items")
    op.drop_table("inventory_items")
    sa.Enum(name="inventory_item_kind_enum").drop(op.get_bind(), checkfirst=True)
