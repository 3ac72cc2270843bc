"""Realtime cart events: socket channel and the listener that feeds the store."""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import socketio

from cartsync.api.schemas.events import parse_cart_update
from cartsync.config import settings
from cartsync.core.exceptions import InvalidCartEvent
from cartsync.store.cart_store import CartStore
from cartsync.store.reducer import FollowUp

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]
FollowUpHandler = Callable[[FollowUp, Any], Union[None, Awaitable[None]]]


class SocketIOChannel:
    """
    Socket.IO connection to the backend's `/ws` namespace.

    Authenticates with the bearer token, joins the per-user room on connect
    and keeps connected / reconnecting / error flags for display.
    """

    def __init__(self, token: str, user_uid: Optional[str] = None, url: Optional[str] = None,
                 namespace: Optional[str] = None, client: Optional[socketio.AsyncClient] = None):
        self.token = token
        self.user_uid = user_uid
        self.url = (url or settings.API_URL).rstrip("/")
        self.namespace = namespace or settings.SOCKET_NAMESPACE
        self.sio = client or socketio.AsyncClient(reconnection=True)
        self.connected = False
        self.reconnecting = False
        self.error: Optional[str] = None
        self._closing = False

        self.sio.on("connect", self._on_connect, namespace=self.namespace)
        self.sio.on("disconnect", self._on_disconnect, namespace=self.namespace)
        self.sio.on("connect_error", self._on_connect_error, namespace=self.namespace)

    def on(self, event: str, handler: Handler) -> None:
        self.sio.on(event, handler, namespace=self.namespace)

    async def connect(self) -> None:
        self._closing = False
        await self.sio.connect(self.url, auth={"token": self.token}, namespaces=[self.namespace])

    async def close(self) -> None:
        self._closing = True
        await self.sio.disconnect()
        self.connected = False
        self.reconnecting = False

    async def _on_connect(self) -> None:
        self.connected = True
        self.reconnecting = False
        self.error = None
        logger.info("Socket connected to %s%s", self.url, self.namespace)
        if self.user_uid:
            await self.sio.emit("join_user", {"user_uid": self.user_uid}, namespace=self.namespace)

    async def _on_disconnect(self, *args: Any) -> None:
        self.connected = False
        # the client reconnects by itself unless we asked for the disconnect
        self.reconnecting = not self._closing
        logger.info("Socket disconnected (reconnecting=%s)", self.reconnecting)

    async def _on_connect_error(self, data: Any = None) -> None:
        self.error = str(data.get("message") if isinstance(data, dict) else data)
        logger.error("Socket connection error: %s", self.error)


class RealtimeListener:
    """
    Bridges `cart_update` pushes to a CartStore.

    Events are folded in arrival order with no dedup and no sequence check.
    Nothing is buffered while disconnected; after a reconnect the owner is
    expected to call fetch_cart() to catch up.
    """

    def __init__(self, store: CartStore, channel: Any, on_follow_up: Optional[FollowUpHandler] = None):
        self.store = store
        self.channel = channel
        self.on_follow_up = on_follow_up
        self.running = False

    async def start(self) -> None:
        self.channel.on("cart_update", self.on_cart_update)
        await self.channel.connect()
        self.running = True

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        await self.channel.close()

    async def on_cart_update(self, payload: Dict[str, Any]) -> Optional[FollowUp]:
        try:
            event = parse_cart_update(payload)
        except InvalidCartEvent as e:
            logger.warning("Dropping cart_update: %s", e.message)
            return None

        follow_up = self.store.handle_cart_update(event)
        if follow_up is not FollowUp.NONE and self.on_follow_up is not None:
            result = self.on_follow_up(follow_up, event)
            if inspect.isawaitable(result):
                await result
        return follow_up
