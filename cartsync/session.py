# cartsync/session.py
"""
Session orchestration: decides whether the cart lives on the server (a token
is set) or in guest storage, starts and stops the realtime listener, runs the
follow-ups the store reports, and carries the guest cart over on login.

Usage:
    session = CartSession()
    await session.add_item("prod-1", price_snapshot="12.50", quantity=2)   # guest
    report = await session.login(token)                                     # merges guest lines
    await session.update_quantity(item_uid, 3)
    await session.logout()
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from socketio.exceptions import ConnectionError as SocketConnectionError

from cartsync.auth import TokenIdentity, identity_from_token, is_expired
from cartsync.core.exceptions import CartError, CartValidationError
from cartsync.models.cart import Cart, CartItem, CartSummary
from cartsync.services.guest_cart import GuestCart
from cartsync.services.realtime import RealtimeListener, SocketIOChannel
from cartsync.services.remote_cart import RemoteCartClient
from cartsync.store.cart_store import CartStore
from cartsync.store.reducer import FollowUp

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[str, Optional[str]], Any]
Notice = Callable[[Any], None]


def _socketio_channel(token: str, user_uid: Optional[str]) -> SocketIOChannel:
    return SocketIOChannel(token, user_uid=user_uid)


@dataclass
class MergeReport:
    merged: List[str] = field(default_factory=list)       # guest uids now on the server
    failed: Dict[str, str] = field(default_factory=dict)  # guest uid (or storage key) -> error message
    # saved guest lines the server folded into an existing active line
    kept_active: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class CartSession:
    def __init__(self, remote: Optional[RemoteCartClient] = None, store: Optional[CartStore] = None,
                 guest: Optional[GuestCart] = None, channel_factory: Optional[ChannelFactory] = None,
                 on_notice: Optional[Notice] = None):
        self.remote = remote or RemoteCartClient()
        self.store = store or CartStore(self.remote)
        self.guest = guest or GuestCart()
        self.channel_factory = channel_factory or _socketio_channel
        self.on_notice = on_notice
        self.listener: Optional[RealtimeListener] = None
        self.identity: Optional[TokenIdentity] = None
        # guest-mode errors; authenticated errors live in store.state
        self.guest_error: Optional[str] = None
        self.guest_quantity_errors: Dict[str, str] = {}

    @property
    def is_authenticated(self) -> bool:
        return self.remote.is_authenticated

    # --- lifecycle ---

    async def login(self, token: str) -> MergeReport:
        self.remote.set_token(token)
        self.identity = identity_from_token(token)
        if is_expired(self.identity):
            logger.warning("Logging in with an expired token for %s", self.identity.user_uid)

        await self._start_listener(token)
        report = await self.merge_guest_cart()
        await self.store.fetch_cart()
        return report

    async def logout(self) -> None:
        await self._stop_listener()
        self.remote.set_token(None)
        self.identity = None
        self.store.clear_cart()

    async def resync(self) -> Optional[Cart]:
        """Full refresh; the only way to catch up after the socket was down."""
        if not self.is_authenticated:
            return self.current_cart()
        return await self.store.fetch_cart()

    async def close(self) -> None:
        await self._stop_listener()
        await self.remote.aclose()

    async def _start_listener(self, token: str) -> None:
        await self._stop_listener()
        user_uid = self.identity.user_uid if self.identity else None
        listener = RealtimeListener(self.store, self.channel_factory(token, user_uid),
                                    on_follow_up=self._handle_follow_up)
        try:
            await listener.start()
        except (SocketConnectionError, OSError) as e:
            # REST keeps working without pushes; deferred updates show up on the next fetch
            logger.warning("Realtime channel unavailable, continuing without it: %s", e)
            return
        self.listener = listener

    async def _stop_listener(self) -> None:
        if self.listener is not None:
            await self.listener.stop()
            self.listener = None

    async def _handle_follow_up(self, follow_up: FollowUp, event: Any) -> None:
        if follow_up is FollowUp.REFRESH:
            logger.info("Price changed for %s, refreshing cart", getattr(event, "item_uid", None))
            await self.store.fetch_cart()
        elif follow_up is FollowUp.NOTIFY_UNAVAILABLE:
            logger.warning("Cart item %s is no longer available", getattr(event, "item_uid", None))
            if self.on_notice is not None:
                self.on_notice(event)

    # --- guest -> server ---

    async def merge_guest_cart(self) -> MergeReport:
        """
        Re-add every guest line to the server cart, then flag the saved ones.
        Lines that made it are dropped from guest storage; failures stay there.
        An unreadable guest store is reported under its storage key.
        """
        report = MergeReport()
        if not self.is_authenticated:
            return report

        try:
            lines: List[CartItem] = self.guest.active_items() + self.guest.saved_items()
        except CartError as e:
            logger.warning("Guest cart not merged: %s", e.message)
            self.guest_error = e.message
            report.failed[self.guest.key] = e.message
            return report
        if not lines:
            return report

        known_uids = {it.uid for it in self.store.state.items}
        for line in lines:
            response = await self.store.add_to_cart(line.product_uid, variant_uid=line.variant_uid,
                                                    quantity=line.quantity)
            if response is None:
                report.failed[line.uid] = self.store.state.error or "Failed to add item to cart"
                continue
            report.merged.append(line.uid)
            if not line.is_saved_for_later:
                continue

            server_item = CartItem.from_dict(response.cart_item) if response.cart_item else None
            if server_item is None or not server_item.uid:
                logger.warning("Guest line %s merged but could not be moved to saved", line.uid)
            elif server_item.uid in known_uids or server_item.quantity != line.quantity:
                # added onto an active line the user already had; flagging it would save that line too
                logger.info("Guest line %s joined active line %s, left in cart", line.uid, server_item.uid)
                report.kept_active.append(line.uid)
            elif await self.store.update_cart_item(server_item.uid, is_saved_for_later=True) is None:
                logger.warning("Guest line %s merged but could not be moved to saved", line.uid)

        try:
            self.guest.remove_many(report.merged)
        except CartError as e:
            self.guest_error = e.message
            logger.warning("Merged guest lines could not be removed: %s", e.message)
        logger.info("Merged %s guest cart line(s), %s failed", len(report.merged), len(report.failed))
        return report

    # --- routed operations ---

    def _guest_call(self, fn: Callable[..., Any], *args: Any, item_uid: Optional[str] = None,
                    default: Any = None, **kwargs: Any) -> Any:
        self.guest_error = None
        if item_uid is not None:
            self.guest_quantity_errors.pop(item_uid, None)
        try:
            return fn(*args, **kwargs)
        except CartValidationError as e:
            if item_uid is not None:
                self.guest_quantity_errors[item_uid] = e.message
            else:
                self.guest_error = e.message
        except CartError as e:
            logger.warning("Guest cart operation failed: %s", e.message)
            self.guest_error = e.message
        return default

    def current_cart(self) -> Cart:
        if self.is_authenticated:
            return self.store.state.to_cart()
        empty = Cart(summary=CartSummary(currency=self.guest.currency))
        return self._guest_call(self.guest.load, default=empty)

    @property
    def quantity_errors(self) -> Dict[str, str]:
        if self.is_authenticated:
            return dict(self.store.state.quantity_errors)
        return dict(self.guest_quantity_errors)

    async def add_item(self, product_uid: str, price_snapshot: Any = None, quantity: int = 1,
                       variant_uid: Optional[str] = None, **display: Any) -> Any:
        if self.is_authenticated:
            return await self.store.add_to_cart(product_uid, variant_uid=variant_uid, quantity=quantity)
        return self._guest_call(self.guest.add, product_uid, price_snapshot, quantity=quantity,
                                variant_uid=variant_uid, **display)

    async def update_quantity(self, item_uid: str, quantity: int) -> Any:
        if self.is_authenticated:
            return await self.store.update_cart_item(item_uid, quantity=quantity)
        return self._guest_call(self.guest.update_quantity, item_uid, quantity, item_uid=item_uid)

    async def remove_item(self, item_uid: str) -> Any:
        if self.is_authenticated:
            return await self.store.remove_cart_item(item_uid)
        return self._guest_call(self.guest.remove, item_uid, item_uid=item_uid, default=False)

    async def move_to_saved(self, item_uid: str) -> Any:
        if self.is_authenticated:
            return await self.store.update_cart_item(item_uid, is_saved_for_later=True)
        return self._guest_call(self.guest.move_to_saved, item_uid, default=False)

    async def move_to_cart(self, item_uid: str) -> Any:
        if self.is_authenticated:
            response = await self.store.update_cart_item(item_uid, is_saved_for_later=False)
            if response is not None:
                # the backend announces both directions as moved_to_saved
                await self.store.fetch_cart()
            return response
        return self._guest_call(self.guest.move_to_cart, item_uid, default=False)
