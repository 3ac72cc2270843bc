from decimal import Decimal, InvalidOperation
from typing import Any

from cartsync.core.exceptions import CartValidationError

QUANTITY_ERROR = "Quantity must be at least 1"


def require_quantity(quantity: Any) -> int:
    """Return `quantity` as an int, raising CartValidationError when below 1."""
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise CartValidationError(QUANTITY_ERROR, field="quantity")
    if value < 1:
        raise CartValidationError(QUANTITY_ERROR, field="quantity")
    return value


def to_decimal(value: Any, default: str = "0") -> Decimal:
    # floats go through str() so 10.1 stays 10.1 instead of its binary expansion
    if value is None or value == "":
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)
