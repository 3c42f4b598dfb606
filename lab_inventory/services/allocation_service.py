# lab_inventory/services/allocation_service.py
"""
Allocation engine: draws a requested quantity down from an item's batches.

Batches are consumed First-Expire-First-Out (undated stock last, oldest
receipt first on ties). A caller may name a preferred batch, which is
drawn from first; anything it cannot cover follows the normal order.

Running short is not an error. consume() takes everything available and
reports the shortfall through `used` / `partial`, leaving the decision
about partial fulfillment to the caller.

Concurrency:
    - One in-process lock per item serializes read-plan-write for that
      item; other items proceed in parallel.
    - The item row is read with SELECT ... FOR UPDATE (PostgreSQL), which
      extends the serialization to other processes.
    - Each decrement is a compare-and-swap on remaining_quantity. If any
      swap misses, the transaction is rolled back and the whole sequence
      is retried; all decrements of a call commit together or not at all.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Protocol
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from lab_inventory.core.config import get_settings
from lab_inventory.core.errors import ConflictError, NotFoundError, ValidationError
from lab_inventory.core.locks import item_locks
from lab_inventory.models.inventory import InventoryBatch, InventoryItem
from lab_inventory.services.batch_service import allocation_order

logger = logging.getLogger(__name__)

# Matches the scale of the quantity columns.
QUANTITY_STEP = Decimal("0.001")


class AllocatableBatch(Protocol):
    id: UUID
    remaining_quantity: Decimal


@dataclass(frozen=True)
class FulfillmentLine:
    batch_id: UUID
    quantity_taken: Decimal


@dataclass
class FulfillmentReport:
    item_id: UUID
    requested: Decimal
    used: Decimal
    details: list[FulfillmentLine] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.used < self.requested


class StaleBatchError(Exception):
    """A batch changed between planning and writing; the plan is void."""

    def __init__(self, batch_id: UUID):
        super().__init__(f"Batch {batch_id} was modified concurrently")
        self.batch_id = batch_id


def coerce_quantity(value: Any, *, field_name: str = "quantity") -> Decimal:
    """
    Turn caller input into a positive Decimal at column precision.

    Raises:
        ValidationError: non-numeric, non-finite, boolean, or not > 0
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(
            "Quantity must be a positive number.", field=field_name, value=value
        )

    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(
            "Quantity must be a positive number.", field=field_name, value=value
        ) from None

    if not quantity.is_finite():
        raise ValidationError(
            "Quantity must be a positive number.", field=field_name, value=value
        )

    # Keep every integer digit: quantize fails once the result is wider
    # than the context precision.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, quantity.adjusted() + 4)
        quantity = quantity.quantize(QUANTITY_STEP)

    if quantity <= 0:
        raise ValidationError(
            "Quantity must be a positive number.", field=field_name, value=value
        )
    return quantity


def plan_allocation(
    candidates: Iterable[AllocatableBatch],
    quantity: Decimal,
    preferred_batch_id: UUID | None = None,
) -> list[FulfillmentLine]:
    """
    Decide how much to take from each batch, without touching storage.

    `candidates` must already be in allocation order. The preferred batch,
    when present among them, moves to the front. Batches with nothing
    remaining and zero-quantity lines are skipped.
    """
    ordered = list(candidates)
    if preferred_batch_id is not None:
        ordered = [b for b in ordered if b.id == preferred_batch_id] + [
            b for b in ordered if b.id != preferred_batch_id
        ]

    outstanding = quantity
    lines: list[FulfillmentLine] = []
    for batch in ordered:
        if outstanding <= 0:
            break
        available = batch.remaining_quantity
        if available <= 0:
            continue
        take = min(available, outstanding)
        lines.append(FulfillmentLine(batch_id=batch.id, quantity_taken=take))
        outstanding -= take
    return lines


def _as_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(
            "Malformed identifier.", field=field_name, value=value
        ) from None


def _allocate_once(
    db: Session,
    item_id: UUID,
    requested: Decimal,
    preferred_batch_id: UUID | None,
) -> list[FulfillmentLine]:
    item = (
        db.query(InventoryItem)
        .filter(InventoryItem.id == item_id)
        .with_for_update()
        .first()
    )
    if item is None or not item.is_active:
        raise NotFoundError(
            "Inventory item not found or inactive.", field="item_id", id=item_id
        )

    if preferred_batch_id is not None:
        owner_id = (
            db.query(InventoryBatch.item_id)
            .filter(InventoryBatch.id == preferred_batch_id)
            .scalar()
        )
        if owner_id != item_id:
            raise NotFoundError(
                "Batch not found for this item.",
                field="batch_id",
                id=preferred_batch_id,
            )

    query = (
        db.query(InventoryBatch)
        .filter(
            InventoryBatch.item_id == item_id,
            InventoryBatch.remaining_quantity > 0,
        )
        .populate_existing()
    )
    candidates = allocation_order(query).all()
    seen = {b.id: b.remaining_quantity for b in candidates}

    lines = plan_allocation(candidates, requested, preferred_batch_id)

    for line in lines:
        before = seen[line.batch_id]
        result = db.execute(
            update(InventoryBatch)
            .where(
                InventoryBatch.id == line.batch_id,
                InventoryBatch.remaining_quantity == before,
            )
            .values(remaining_quantity=before - line.quantity_taken)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleBatchError(line.batch_id)

    return lines


def consume(
    db: Session,
    item_id: UUID,
    quantity: Any,
    preferred_batch_id: UUID | None = None,
    *,
    max_attempts: int | None = None,
) -> FulfillmentReport:
    """
    Consume `quantity` of an item from its batches.

    Raises:
        ValidationError: quantity is not a positive number
        NotFoundError: item unknown/inactive, or preferred batch not of this item
        ConflictError: every attempt lost a race (code CONCURRENT_MODIFICATION)

    On any raised error the ledger is left exactly as it was.
    """
    requested = coerce_quantity(quantity)
    item_id = _as_uuid(item_id, "item_id")
    if preferred_batch_id is not None:
        preferred_batch_id = _as_uuid(preferred_batch_id, "batch_id")

    attempts = max_attempts or get_settings().consume_max_attempts

    with item_locks.hold(item_id):
        for attempt in range(1, attempts + 1):
            try:
                lines = _allocate_once(db, item_id, requested, preferred_batch_id)
                db.commit()
            except StaleBatchError as exc:
                db.rollback()
                logger.warning(
                    "Concurrent batch update item_id=%s batch_id=%s attempt=%s/%s",
                    item_id,
                    exc.batch_id,
                    attempt,
                    attempts,
                )
                continue
            except Exception:
                db.rollback()
                raise

            used = sum((line.quantity_taken for line in lines), Decimal("0"))
            report = FulfillmentReport(
                item_id=item_id,
                requested=requested,
                used=used,
                details=lines,
            )
            if report.partial:
                logger.warning(
                    "Partial consumption item_id=%s requested=%s used=%s",
                    item_id,
                    requested,
                    used,
                )
            else:
                logger.info(
                    "Consumed item_id=%s qty=%s batches=%s",
                    item_id,
                    used,
                    len(lines),
                )
            return report

    raise ConflictError(
        "Stock changed concurrently; consumption was not applied.",
        code="CONCURRENT_MODIFICATION",
        id=item_id,
        attempts=attempts,
    )
