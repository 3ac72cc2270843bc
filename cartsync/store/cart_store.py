from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from cartsync.api.schemas.cart import CartItemMutationResponse, RemoveItemResponse
from cartsync.api.schemas.events import parse_cart_update
from cartsync.config import settings
from cartsync.core.exceptions import CartError, CartValidationError
from cartsync.models.cart import Cart, CartSummary
from cartsync.services.remote_cart import RemoteCartClient
from cartsync.store import actions as A
from cartsync.store.reducer import FollowUp, step
from cartsync.store.state import CartState
from cartsync.utils.validators import require_quantity

logger = logging.getLogger(__name__)

Listener = Callable[[CartState], None]


class CartStore:
    """
    Holds the cart slice and is its only writer: every change goes through
    dispatch(), which runs the reducer and notifies subscribers.

    Remote operations never raise. Failures end up in `state.error` (and in
    `state.quantity_errors` for item-level problems) and the call returns None.

    Overlapping calls are not sequenced: `is_loading` is one flag cleared by
    whichever call finishes first, and deferred updates land in the order the
    server pushes their events.
    """

    def __init__(self, remote: RemoteCartClient, currency: Optional[str] = None,
                 state: Optional[CartState] = None):
        self.remote = remote
        self.currency = currency or settings.DEFAULT_CURRENCY
        self._state = state or CartState.empty(currency=self.currency)
        self._listeners: List[Listener] = []

    @property
    def state(self) -> CartState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def dispatch(self, action: A.Action) -> CartState:
        self._apply(action)
        return self._state

    def _apply(self, action: A.Action) -> FollowUp:
        self._state, follow_up = step(self._state, action)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                # a broken subscriber must not stop the others from seeing the new state
                logger.exception("Cart subscriber %r failed", listener)
        return follow_up

    # --- authoritative ---

    async def fetch_cart(self) -> Optional[Cart]:
        if not self.remote.is_authenticated:
            cart = Cart(summary=CartSummary(currency=self.currency))
            self.dispatch(A.FetchSucceeded(cart))
            return cart

        self.dispatch(A.RequestStarted(A.FETCH_CART))
        try:
            response = await self.remote.fetch_cart()
        except CartError as e:
            logger.warning("fetch_cart failed: %s", e.message)
            self.dispatch(A.RequestFailed(A.FETCH_CART, e.message))
            return None
        cart = Cart.from_dict(response.cart.model_dump(), currency=self.currency)
        self.dispatch(A.FetchSucceeded(cart))
        return cart

    # --- deferred ---

    async def add_to_cart(self, product_uid: str, variant_uid: Optional[str] = None,
                          quantity: int = 1) -> Optional[CartItemMutationResponse]:
        try:
            quantity = require_quantity(quantity)
        except CartValidationError as e:
            self.dispatch(A.ValidationFailed(e.message))
            return None

        self.dispatch(A.RequestStarted(A.ADD_TO_CART))
        try:
            response = await self.remote.add_item(product_uid, variant_uid=variant_uid, quantity=quantity)
        except CartError as e:
            self.dispatch(A.RequestFailed(A.ADD_TO_CART, e.message))
            return None
        # the new line arrives with the cart_update push, not from this response
        self.dispatch(A.DeferredSucceeded(A.ADD_TO_CART))
        return response

    async def update_cart_item(self, item_uid: str, quantity: Optional[int] = None,
                               is_saved_for_later: Optional[bool] = None) -> Optional[CartItemMutationResponse]:
        if quantity is not None:
            try:
                quantity = require_quantity(quantity)
            except CartValidationError as e:
                self.dispatch(A.ValidationFailed(e.message, item_uid=item_uid))
                return None

        self.dispatch(A.RequestStarted(A.UPDATE_CART_ITEM, item_uid=item_uid))
        try:
            response = await self.remote.update_item(item_uid, quantity=quantity,
                                                     is_saved_for_later=is_saved_for_later)
        except CartError as e:
            self.dispatch(A.RequestFailed(A.UPDATE_CART_ITEM, e.message, item_uid=item_uid))
            return None
        self.dispatch(A.DeferredSucceeded(A.UPDATE_CART_ITEM))
        return response

    # --- optimistic ---

    async def remove_cart_item(self, item_uid: str) -> Optional[RemoveItemResponse]:
        self.dispatch(A.RequestStarted(A.REMOVE_CART_ITEM, item_uid=item_uid))
        try:
            response = await self.remote.remove_item(item_uid)
        except CartError as e:
            self.dispatch(A.RequestFailed(A.REMOVE_CART_ITEM, e.message))
            return None
        summary = None
        if response.cart_summary is not None:
            summary = CartSummary.from_payload(response.cart_summary.model_dump(),
                                               currency=self._state.summary.currency)
        self.dispatch(A.RemoveSucceeded(item_uid, summary))
        return response

    # --- realtime ---

    def handle_cart_update(self, payload: Union[Dict[str, Any], Any]) -> FollowUp:
        """
        Fold one cart_update event into the state and return the follow-up the
        caller must run. Raises InvalidCartEvent for payloads that do not parse.
        """
        event = parse_cart_update(payload)
        return self._apply(A.CartUpdateReceived(event))

    # --- local ---

    def clear_cart(self) -> CartState:
        return self.dispatch(A.ClearCart())

    def clear_error(self) -> CartState:
        return self.dispatch(A.ClearError())
