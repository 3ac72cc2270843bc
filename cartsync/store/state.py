from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from cartsync.models.cart import Cart, CartItem, CartSummary


@dataclass(frozen=True)
class CartState:
    """
    Snapshot of the cart as the UI sees it. Never mutated in place: the
    reducer builds a new CartState (and new CartItem objects) for every change.
    """
    cart_uid: Optional[str] = None
    items: Tuple[CartItem, ...] = ()
    summary: CartSummary = field(default_factory=CartSummary)
    is_loading: bool = False
    error: Optional[str] = None
    # inline errors keyed by item uid (quantity fields)
    quantity_errors: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls, currency: str = "USD") -> "CartState":
        return cls(summary=CartSummary(currency=currency))

    @property
    def status(self) -> str:
        if self.is_loading:
            return "loading"
        if self.error:
            return "error"
        return "idle"

    @property
    def is_persisted(self) -> bool:
        return self.cart_uid is not None

    def active_items(self) -> Tuple[CartItem, ...]:
        return tuple(it for it in self.items if not it.is_saved_for_later)

    def saved_items(self) -> Tuple[CartItem, ...]:
        return tuple(it for it in self.items if it.is_saved_for_later)

    def find(self, item_uid: str) -> Optional[CartItem]:
        for it in self.items:
            if it.uid == item_uid:
                return it
        return None

    def to_cart(self) -> Cart:
        return Cart(cart_uid=self.cart_uid, items=list(self.items), summary=self.summary)
