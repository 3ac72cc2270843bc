"""
Pure fold for the cart slice.

`reduce_cart(state, action)` is the only function that produces a new
CartState. Realtime events go through `fold_cart_update`, which dispatches on
the event type to exactly one fold function per kind and also reports the
follow-up the orchestrating layer has to run (a refresh after a price change,
a notice after an item became unavailable).
"""
from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from cartsync.api.schemas.events import (
    ItemAdded,
    ItemRemoved,
    ItemUnavailable,
    MovedToSaved,
    PriceChanged,
    QuantityChanged,
)
from cartsync.models.cart import CartSummary
from cartsync.store.actions import (
    Action,
    CartUpdateReceived,
    ClearCart,
    ClearError,
    DeferredSucceeded,
    FetchSucceeded,
    RemoveSucceeded,
    RequestFailed,
    RequestStarted,
    ValidationFailed,
)
from cartsync.store.state import CartState


class FollowUp(str, Enum):
    NONE = "none"
    REFRESH = "refresh"                        # state is stale until fetch_cart() runs
    NOTIFY_UNAVAILABLE = "notify_unavailable"  # surface to the user, no state change


def _adopt_server_totals(summary: CartSummary, item_count: int, cart_total: Decimal) -> CartSummary:
    # cart_total from the socket is the server subtotal; other components stay local
    return replace(summary, item_count=int(item_count), subtotal=cart_total).recompute_total()


def _with_item(state: CartState, item_uid: str, **changes) -> CartState:
    # unknown uid leaves the list as is
    items = tuple(replace(it, **changes) if it.uid == item_uid else it for it in state.items)
    return replace(state, items=items)


# --- one fold per realtime event kind ---

def _fold_item_added(state: CartState, event: ItemAdded) -> Tuple[CartState, FollowUp]:
    # no-op: the line is not spliced in locally; it shows up on the next fetch_cart()
    return state, FollowUp.NONE


def _fold_item_removed(state: CartState, event: ItemRemoved) -> Tuple[CartState, FollowUp]:
    items = tuple(it for it in state.items if it.uid != event.item_uid)
    summary = _adopt_server_totals(state.summary, event.item_count, event.cart_total)
    return replace(state, items=items, summary=summary), FollowUp.NONE


def _fold_quantity_changed(state: CartState, event: QuantityChanged) -> Tuple[CartState, FollowUp]:
    state = _with_item(state, event.item_uid, quantity=int(event.new_quantity))
    summary = _adopt_server_totals(state.summary, event.item_count, event.cart_total)
    return replace(state, summary=summary), FollowUp.NONE


def _fold_moved_to_saved(state: CartState, event: MovedToSaved) -> Tuple[CartState, FollowUp]:
    state = _with_item(state, event.item_uid, is_saved_for_later=True)
    summary = _adopt_server_totals(state.summary, event.item_count, event.cart_total)
    return replace(state, summary=summary), FollowUp.NONE


def _fold_price_changed(state: CartState, event: PriceChanged) -> Tuple[CartState, FollowUp]:
    return state, FollowUp.REFRESH


def _fold_item_unavailable(state: CartState, event: ItemUnavailable) -> Tuple[CartState, FollowUp]:
    return state, FollowUp.NOTIFY_UNAVAILABLE


_EVENT_FOLDS: Dict[type, Callable[[CartState, object], Tuple[CartState, FollowUp]]] = {
    ItemAdded: _fold_item_added,
    ItemRemoved: _fold_item_removed,
    QuantityChanged: _fold_quantity_changed,
    MovedToSaved: _fold_moved_to_saved,
    PriceChanged: _fold_price_changed,
    ItemUnavailable: _fold_item_unavailable,
}


def fold_cart_update(state: CartState, event) -> Tuple[CartState, FollowUp]:
    fold = _EVENT_FOLDS.get(type(event))
    if fold is None:
        raise TypeError(f"No fold registered for {type(event).__name__}")
    return fold(state, event)


# --- whole-slice reducer ---

def _without_quantity_error(state: CartState, item_uid: Optional[str]) -> Dict[str, str]:
    errors = dict(state.quantity_errors)
    if item_uid is not None:
        errors.pop(item_uid, None)
    return errors


def reduce_cart(state: CartState, action: Action) -> CartState:
    if isinstance(action, RequestStarted):
        return replace(state, is_loading=True, error=None,
                       quantity_errors=_without_quantity_error(state, action.item_uid))

    if isinstance(action, RequestFailed):
        errors = dict(state.quantity_errors)
        if action.item_uid is not None:
            errors[action.item_uid] = action.message
        return replace(state, is_loading=False, error=action.message, quantity_errors=errors)

    if isinstance(action, FetchSucceeded):
        cart = action.cart
        return replace(state, cart_uid=cart.cart_uid, items=tuple(cart.items), summary=cart.summary,
                       is_loading=False)

    if isinstance(action, DeferredSucceeded):
        return replace(state, is_loading=False)

    if isinstance(action, RemoveSucceeded):
        items = tuple(it for it in state.items if it.uid != action.item_uid)
        summary = action.summary if action.summary is not None else state.summary
        return replace(state, items=items, summary=summary, is_loading=False,
                       quantity_errors=_without_quantity_error(state, action.item_uid))

    if isinstance(action, ValidationFailed):
        if action.item_uid is None:
            return replace(state, error=action.message)
        errors = dict(state.quantity_errors)
        errors[action.item_uid] = action.message
        return replace(state, quantity_errors=errors)

    if isinstance(action, CartUpdateReceived):
        return fold_cart_update(state, action.event)[0]

    if isinstance(action, ClearCart):
        return replace(CartState.empty(currency=state.summary.currency), error=state.error)

    if isinstance(action, ClearError):
        return replace(state, error=None, quantity_errors={})

    raise TypeError(f"Unknown cart action: {type(action).__name__}")


def step(state: CartState, action: Action) -> Tuple[CartState, FollowUp]:
    """reduce_cart() plus the follow-up, folding a realtime event only once."""
    if isinstance(action, CartUpdateReceived):
        return fold_cart_update(state, action.event)
    return reduce_cart(state, action), FollowUp.NONE
