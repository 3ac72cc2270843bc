from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from cartsync.models.cart import Cart, CartSummary


class UpdateKind(str, Enum):
    """How a remote operation reaches the local state."""
    AUTHORITATIVE = "authoritative"  # response replaces the whole cart
    OPTIMISTIC = "optimistic"        # mutate on response, later events reconcile
    DEFERRED = "deferred"            # no local change; wait for the cart_update push


FETCH_CART = "fetch_cart"
ADD_TO_CART = "add_to_cart"
UPDATE_CART_ITEM = "update_cart_item"
REMOVE_CART_ITEM = "remove_cart_item"

OPERATION_KINDS: Dict[str, UpdateKind] = {
    FETCH_CART: UpdateKind.AUTHORITATIVE,
    ADD_TO_CART: UpdateKind.DEFERRED,
    UPDATE_CART_ITEM: UpdateKind.DEFERRED,
    REMOVE_CART_ITEM: UpdateKind.OPTIMISTIC,
}


@dataclass(frozen=True)
class RequestStarted:
    operation: str
    item_uid: Optional[str] = None


@dataclass(frozen=True)
class RequestFailed:
    operation: str
    message: str
    item_uid: Optional[str] = None


@dataclass(frozen=True)
class FetchSucceeded:
    cart: Cart


@dataclass(frozen=True)
class DeferredSucceeded:
    operation: str


@dataclass(frozen=True)
class RemoveSucceeded:
    item_uid: str
    summary: Optional[CartSummary] = None


@dataclass(frozen=True)
class ValidationFailed:
    message: str
    item_uid: Optional[str] = None


@dataclass(frozen=True)
class CartUpdateReceived:
    event: Any  # one of cartsync.api.schemas.events.CartUpdateEvent


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class ClearError:
    pass


Action = Union[
    RequestStarted, RequestFailed, FetchSucceeded, DeferredSucceeded, RemoveSucceeded,
    ValidationFailed, CartUpdateReceived, ClearCart, ClearError,
]
