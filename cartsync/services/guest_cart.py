"""
Guest cart kept in local storage while no session is authenticated.

Every mutation reads the whole snapshot, changes it and writes it back under
the storage lock. Summaries are recomputed locally: subtotal and item count
over the active items, with tax, shipping and discount left at zero.

Persisted shape (version 2):
    {"version": 2, "items": [CartItem...], "savedItems": [CartItem...]}
Version 1 is the same object without the "version" key; it is read as is and
rewritten as version 2 on the next mutation.
"""
from __future__ import annotations
import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional, Tuple

from cartsync.config import settings
from cartsync.core.exceptions import StorageSchemaError
from cartsync.models.cart import Cart, CartItem, CartSummary
from cartsync.storage import FileBackedStorage
from cartsync.utils.validators import require_quantity, to_decimal

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

Snapshot = Tuple[List[CartItem], List[CartItem]]


def _new_uid() -> str:
    return f"guest-{uuid.uuid4().hex[:8]}"


def _index_of(items: List[CartItem], item_uid: str) -> Optional[int]:
    for idx, it in enumerate(items):
        if it.uid == item_uid:
            return idx
    return None


class GuestCart:
    def __init__(self, storage: Optional[FileBackedStorage] = None, key: Optional[str] = None,
                 currency: Optional[str] = None):
        self.storage = storage or FileBackedStorage()
        self.key = key or settings.GUEST_CART_KEY
        self.currency = currency or settings.DEFAULT_CURRENCY

    # --- persistence ---

    def _decode(self, raw: Any) -> Snapshot:
        if raw is None:
            return [], []
        if not isinstance(raw, dict):
            logger.warning("Ignoring guest cart under %r: expected an object, got %s", self.key, type(raw).__name__)
            return [], []
        version = raw.get("version", 1)
        try:
            version = int(version)
        except (TypeError, ValueError):
            raise StorageSchemaError(f"Guest cart has an unreadable schema version: {version!r}")
        if version > SCHEMA_VERSION:
            raise StorageSchemaError(
                f"Guest cart schema version {version} is newer than supported version {SCHEMA_VERSION}"
            )
        items = [CartItem.from_dict(d) for d in raw.get("items") or [] if isinstance(d, dict)]
        saved = [CartItem.from_dict(d) for d in raw.get("savedItems") or [] if isinstance(d, dict)]
        # the bucket decides; version 1 rows may lack the flag
        for it in items:
            it.is_saved_for_later = False
        for it in saved:
            it.is_saved_for_later = True
        return items, saved

    def _read(self) -> Snapshot:
        try:
            raw = self.storage.get_item(self.key)
        except ValueError as e:
            logger.warning("Discarding unreadable guest cart under %r: %s", self.key, e)
            return [], []
        return self._decode(raw)

    def _write(self, items: List[CartItem], saved: List[CartItem]) -> None:
        self.storage.set_item(self.key, {
            "version": SCHEMA_VERSION,
            "items": [it.to_dict() for it in items],
            "savedItems": [it.to_dict() for it in saved],
        })

    def _mutate(self, fn: Callable[[List[CartItem], List[CartItem]], Any]) -> Any:
        with self.storage.lock(self.key):
            items, saved = self._read()
            result = fn(items, saved)
            self._write(items, saved)
        return result

    # --- reads ---

    def load(self) -> Cart:
        items, saved = self._read()
        return Cart(cart_uid=None, items=items + saved, summary=self._summarize(items))

    def active_items(self) -> List[CartItem]:
        return self._read()[0]

    def saved_items(self) -> List[CartItem]:
        return self._read()[1]

    def summary(self) -> CartSummary:
        return self._summarize(self._read()[0])

    def is_empty(self) -> bool:
        items, saved = self._read()
        return not items and not saved

    def _summarize(self, items: Iterable[CartItem]) -> CartSummary:
        subtotal = Decimal("0")
        count = 0
        for it in items:
            subtotal += it.line_total()
            count += int(it.quantity)
        return CartSummary(subtotal=subtotal, item_count=count, currency=self.currency).recompute_total()

    # --- mutations ---

    def add(self, product_uid: str, price_snapshot: Any, quantity: int = 1, variant_uid: Optional[str] = None,
            product_name: Optional[str] = None, variant_info: Optional[str] = None,
            primary_image_url: Optional[str] = None) -> CartItem:
        """
        Append a new line. Adding the same product twice gives two lines; lines
        are not merged by product here.
        """
        item = CartItem(
            uid=_new_uid(),
            product_uid=str(product_uid),
            quantity=require_quantity(quantity),
            price_snapshot=to_decimal(price_snapshot),
            variant_uid=variant_uid,
            product_name=product_name,
            variant_info=variant_info,
            primary_image_url=primary_image_url,
        )

        def _append(items, saved):
            items.append(item)
            return item
        return self._mutate(_append)

    def update_quantity(self, item_uid: str, quantity: int) -> Optional[CartItem]:
        """Set the quantity of a line. Returns the updated line, or None when the uid is unknown."""
        quantity = require_quantity(quantity)

        def _update(items, saved):
            for bucket in (items, saved):
                idx = _index_of(bucket, item_uid)
                if idx is not None:
                    bucket[idx].quantity = quantity
                    return bucket[idx]
            return None
        return self._mutate(_update)

    def remove(self, item_uid: str) -> bool:
        def _remove(items, saved):
            for bucket in (items, saved):
                idx = _index_of(bucket, item_uid)
                if idx is not None:
                    bucket.pop(idx)
                    return True
            return False
        return self._mutate(_remove)

    def remove_many(self, item_uids: Iterable[str]) -> int:
        uids = set(item_uids)

        def _remove(items, saved):
            before = len(items) + len(saved)
            items[:] = [it for it in items if it.uid not in uids]
            saved[:] = [it for it in saved if it.uid not in uids]
            return before - len(items) - len(saved)
        return self._mutate(_remove)

    def move_to_saved(self, item_uid: str) -> bool:
        def _move(items, saved):
            idx = _index_of(items, item_uid)
            if idx is None:
                return False
            item = items.pop(idx)
            item.is_saved_for_later = True
            saved.append(item)
            return True
        return self._mutate(_move)

    def move_to_cart(self, item_uid: str) -> bool:
        def _move(items, saved):
            idx = _index_of(saved, item_uid)
            if idx is None:
                return False
            item = saved.pop(idx)
            item.is_saved_for_later = False
            items.append(item)
            return True
        return self._mutate(_move)

    def clear(self) -> None:
        self.storage.remove_item(self.key)
