# lab_inventory/schemas/inventory.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

from lab_inventory.models.inventory import ItemKind

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=255),
]

OptStr50 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=50),
    ]
    | None
)

OptStr100 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=100),
    ]
    | None
)

OptStr255 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=255),
    ]
    | None
)

OptStr500 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=500),
    ]
    | None
)


def _empty_str_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _normalize_kind(v: Any) -> Any:
    # The lab UI sends "Reagent" / "Equipment"
    if isinstance(v, str):
        return v.strip().upper()
    return v


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class ItemBase(BaseModel):
    """
    Shared fields for create/response.

    - Optional strings accept None and are limited in length when present.
    - Empty strings from UI are normalized to None.
    """

    name: NameStr
    kind: ItemKind

    category: OptStr100 = None
    unit: OptStr50 = None
    description: OptStr500 = None

    min_stock: Decimal = Field(
        default=Decimal("0"), ge=0, max_digits=14, decimal_places=3
    )
    is_active: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("category", "unit", "description", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        return _empty_str_to_none(v)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        return _normalize_kind(v)


class ItemCreate(ItemBase):
    """Used when creating a new inventory item."""


class ItemUpdate(BaseModel):
    """
    Used when updating an item (PUT with partial payload).
    All fields optional; only fields present in the payload are applied.
    """

    name: NameStr | None = None
    kind: ItemKind | None = None

    category: OptStr100 = None
    unit: OptStr50 = None
    description: OptStr500 = None

    min_stock: Decimal | None = Field(
        default=None, ge=0, max_digits=14, decimal_places=3
    )
    is_active: bool | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("category", "unit", "description", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        return _empty_str_to_none(v)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        return _normalize_kind(v)


class ItemResponse(BaseModel):
    id: UUID
    name: str
    kind: ItemKind
    category: str | None = None
    unit: str | None = None
    description: str | None = None
    min_stock: float
    is_active: bool
    created_at: datetime
    updated_at: datetime

    # Filled from the stock aggregator
    stock: float = 0
    next_expiry: date | None = None

    model_config = ConfigDict(from_attributes=True)


class StockLevelResponse(BaseModel):
    item_id: UUID
    stock: float
    next_expiry: date | None = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class BatchCreate(BaseModel):
    batch_no: OptStr100 = None
    lot_no: OptStr100 = None

    # Same precision as the Numeric(14, 3) columns
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3)
    expiry_date: date | None = None
    received_date: datetime | None = None

    supplier_name: OptStr255 = None
    unit_cost: Decimal | None = Field(
        default=None, ge=0, max_digits=14, decimal_places=2
    )
    notes: OptStr500 = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(
        "batch_no",
        "lot_no",
        "supplier_name",
        "notes",
        mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        return _empty_str_to_none(v)

    @field_validator("expiry_date", "received_date", mode="before")
    @classmethod
    def empty_date_to_none(cls, v: Any) -> Any:
        return _empty_str_to_none(v)


class BatchResponse(BaseModel):
    id: UUID
    item_id: UUID
    batch_no: str | None = None
    lot_no: str | None = None
    quantity: float
    remaining_quantity: float
    expiry_date: date | None = None
    received_date: datetime
    supplier_name: str | None = None
    unit_cost: float | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BatchItemSummary(BaseModel):
    id: UUID
    name: str
    kind: ItemKind
    unit: str | None = None
    min_stock: float

    model_config = ConfigDict(from_attributes=True)


class ExpiringBatchResponse(BatchResponse):
    item: BatchItemSummary


# ---------------------------------------------------------------------------
# Consumption
# ---------------------------------------------------------------------------


class ConsumeRequest(BaseModel):
    """
    Body of POST /consume.

    Quantity is validated by the allocation engine itself so that every
    entry point reports the same error.
    """

    item_id: UUID = Field(validation_alias=AliasChoices("item_id", "itemId"))
    quantity: Any
    batch_id: UUID | None = Field(
        default=None,
        validation_alias=AliasChoices("batch_id", "batchId"),
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("batch_id", mode="before")
    @classmethod
    def empty_batch_to_none(cls, v: Any) -> Any:
        return _empty_str_to_none(v)


class FulfillmentLineResponse(BaseModel):
    batch_id: UUID
    quantity_taken: float

    model_config = ConfigDict(from_attributes=True)


class FulfillmentReportResponse(BaseModel):
    item_id: UUID
    requested: float
    used: float
    partial: bool
    details: list[FulfillmentLineResponse]

    model_config = ConfigDict(from_attributes=True)
