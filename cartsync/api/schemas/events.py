"""
Realtime `cart_update` payloads.

The backend sends one loose object per cart mutation with a string
`update_type`. Each kind gets its own model carrying only the fields its fold
needs; envelope fields the folds do not use (product name, previous quantity,
timestamps...) are accepted and dropped.
"""
from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from cartsync.core.exceptions import InvalidCartEvent
from cartsync.utils.validators import to_decimal

Amount = Annotated[Decimal, BeforeValidator(to_decimal)]


class _CartEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    cart_uid: Optional[str] = None


class ItemAdded(_CartEvent):
    update_type: Literal["item_added"] = "item_added"
    item_uid: Optional[str] = None
    new_quantity: Optional[int] = None
    item_count: Optional[int] = None
    cart_total: Optional[Amount] = None


class ItemRemoved(_CartEvent):
    update_type: Literal["item_removed"] = "item_removed"
    item_uid: str
    item_count: int
    cart_total: Amount


class QuantityChanged(_CartEvent):
    update_type: Literal["quantity_changed"] = "quantity_changed"
    item_uid: str
    new_quantity: int
    item_count: int
    cart_total: Amount


class MovedToSaved(_CartEvent):
    update_type: Literal["moved_to_saved"] = "moved_to_saved"
    item_uid: str
    item_count: int
    cart_total: Amount


class PriceChanged(_CartEvent):
    update_type: Literal["price_changed"] = "price_changed"
    item_uid: Optional[str] = None


class ItemUnavailable(_CartEvent):
    update_type: Literal["item_unavailable"] = "item_unavailable"
    item_uid: Optional[str] = None


CartUpdateEvent = Annotated[
    Union[ItemAdded, ItemRemoved, QuantityChanged, MovedToSaved, PriceChanged, ItemUnavailable],
    Field(discriminator="update_type"),
]

_adapter = TypeAdapter(CartUpdateEvent)


def parse_cart_update(payload: Dict[str, Any]) -> CartUpdateEvent:
    """Parse a raw socket payload. Raises InvalidCartEvent for unknown or malformed events."""
    if isinstance(payload, BaseModel):
        return payload
    if not isinstance(payload, dict):
        raise InvalidCartEvent(f"cart_update payload must be an object, got {type(payload).__name__}")
    try:
        return _adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidCartEvent(
            f"Invalid cart_update ({payload.get('update_type')!r}): {e.error_count()} error(s)"
        ) from e
