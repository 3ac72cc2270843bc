# cartsync/models/cart.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Dict, Any, Optional

from cartsync.utils.validators import to_decimal


def _pick(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    # backend rows are snake_case, guest storage rows are camelCase
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "y", "t")
    return bool(v)


@dataclass
class CartItem:
    uid: str
    product_uid: str
    quantity: int = 1
    price_snapshot: Decimal = Decimal("0")
    variant_uid: Optional[str] = None
    is_saved_for_later: bool = False
    # display copies, never authoritative
    product_name: Optional[str] = None
    variant_info: Optional[str] = None
    primary_image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartItem":
        if d is None:
            raise ValueError("Cannot construct CartItem from None")
        try:
            quantity = int(float(_pick(d, "quantity", default=1)))
        except (TypeError, ValueError):
            quantity = 1
        return cls(
            uid=str(_pick(d, "uid", "item_uid", default="")),
            product_uid=str(_pick(d, "productUid", "product_uid", default="")),
            quantity=quantity,
            price_snapshot=to_decimal(_pick(d, "priceSnapshot", "price_snapshot")),
            variant_uid=_pick(d, "variantUid", "variant_uid"),
            is_saved_for_later=_as_bool(_pick(d, "isSavedForLater", "is_saved_for_later", default=False)),
            product_name=_pick(d, "productName", "product_name"),
            variant_info=_pick(d, "variantInfo", "variant_info"),
            primary_image_url=_pick(d, "primaryImageUrl", "primary_image_url"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "productUid": self.product_uid,
            "productName": self.product_name,
            "variantUid": self.variant_uid,
            "variantInfo": self.variant_info,
            "quantity": int(self.quantity),
            "priceSnapshot": str(self.price_snapshot),
            "isSavedForLater": bool(self.is_saved_for_later),
            "primaryImageUrl": self.primary_image_url,
        }

    def line_total(self) -> Decimal:
        return self.price_snapshot * int(self.quantity)


@dataclass
class CartSummary:
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    shipping_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    currency: str = "USD"
    item_count: int = 0

    @classmethod
    def from_payload(cls, d: Optional[Dict[str, Any]], currency: str = "USD") -> "CartSummary":
        """
        Build a summary from any of the shapes the backend sends: a full summary
        object (camel or snake case) or the flat {subtotal, item_count} pair found
        on the cart row and in `cart_summary`. A missing total is recomputed.
        """
        if not d:
            return cls(currency=currency)
        try:
            item_count = int(float(_pick(d, "itemCount", "item_count", default=0)))
        except (TypeError, ValueError):
            item_count = 0
        summary = cls(
            subtotal=to_decimal(_pick(d, "subtotal")),
            tax_amount=to_decimal(_pick(d, "taxAmount", "tax_amount")),
            shipping_amount=to_decimal(_pick(d, "shippingAmount", "shipping_amount")),
            discount_amount=to_decimal(_pick(d, "discountAmount", "discount_amount")),
            currency=str(_pick(d, "currency", default=currency)),
            item_count=item_count,
        )
        total = _pick(d, "totalAmount", "total_amount")
        if total is None:
            return summary.recompute_total()
        return replace(summary, total_amount=to_decimal(total))

    def computed_total(self) -> Decimal:
        return self.subtotal + self.shipping_amount + self.tax_amount - self.discount_amount

    def recompute_total(self) -> "CartSummary":
        return replace(self, total_amount=self.computed_total())

    def is_consistent(self) -> bool:
        return self.total_amount == self.computed_total()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": str(self.subtotal),
            "taxAmount": str(self.tax_amount),
            "shippingAmount": str(self.shipping_amount),
            "discountAmount": str(self.discount_amount),
            "totalAmount": str(self.total_amount),
            "currency": self.currency,
            "itemCount": int(self.item_count),
        }


@dataclass
class Cart:
    """
    Client-side view of one cart. `cart_uid` is None for a guest cart that
    only lives in local storage. Saved-for-later items stay in `items`; the
    active/saved split is derived from the flag.
    """
    cart_uid: Optional[str] = None
    items: List[CartItem] = field(default_factory=list)
    summary: CartSummary = field(default_factory=CartSummary)

    @classmethod
    def from_dict(cls, d: Dict[str, Any], currency: str = "USD") -> "Cart":
        if d is None:
            raise ValueError("Cannot construct Cart from None")
        items = [it if isinstance(it, CartItem) else CartItem.from_dict(it) for it in (d.get("items") or [])]
        summary_raw = d.get("summary")
        if summary_raw is None and "subtotal" in d:
            summary_raw = d
        return cls(
            cart_uid=_pick(d, "uid", "cart_uid", "cartUid"),
            items=items,
            summary=CartSummary.from_payload(summary_raw, currency=currency),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cartUid": self.cart_uid,
            "items": [it.to_dict() for it in self.items],
            "summary": self.summary.to_dict(),
        }

    @property
    def is_guest(self) -> bool:
        return self.cart_uid is None

    def active_items(self) -> List[CartItem]:
        return [it for it in self.items if not it.is_saved_for_later]

    def saved_items(self) -> List[CartItem]:
        return [it for it in self.items if it.is_saved_for_later]

    def find(self, item_uid: str) -> Optional[CartItem]:
        for it in self.items:
            if it.uid == item_uid:
                return it
        return None
