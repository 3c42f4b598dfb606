"""
Exceptions for the inventory services.

Every failure surfaced to callers is an InventoryError carrying a
structured code plus enough context (field, id) to identify the offending
input. Stock shortfall is deliberately absent: consume() reports it in
the fulfillment report instead of raising.

Usage:
    try:
        consume(db, item_id, quantity)
    except NotFoundError as e:
        print(e.code, e.data.get("id"))
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


class InventoryError(Exception):
    """
    Base error for inventory operations.

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context (field, id, requested values)
        status_code: HTTP status used when rendered by the API
    """

    default_code = "INVENTORY_ERROR"
    status_code = 400

    def __init__(self, message: str, *, code: str | None = None, **data: Any):
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.data = data

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            "code": self.code,
            "message": self.message,
            "data": {k: _plain(v) for k, v in self.data.items()},
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(InventoryError):
    """Malformed or out-of-range input (quantity <= 0, negative threshold...)."""

    default_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(InventoryError):
    """Unknown or inactive item/batch reference."""

    default_code = "NOT_FOUND"
    status_code = 404


class ConflictError(InventoryError):
    """Duplicate active item name, or a consume that kept losing races."""

    default_code = "CONFLICT"
    status_code = 409


def _plain(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
