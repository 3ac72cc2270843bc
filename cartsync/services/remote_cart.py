"""
Remote cart client

Thin async HTTP client for the backend cart endpoints. Holds no cart state;
callers decide what to do with the parsed responses.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ValidationError

from cartsync.api.schemas.cart import (
    AddItemRequest,
    CartItemMutationResponse,
    CartResponse,
    RemoveItemResponse,
    UpdateItemRequest,
)
from cartsync.config import settings
from cartsync.core.exceptions import CartValidationError, ServerRejectedError, TransportError

logger = logging.getLogger(__name__)

_UNSET = object()


class RemoteCartClient:
    """HTTP client for the marketplace cart API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Any = _UNSET, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            base_url: backend root. Defaults to settings.API_URL.
            token: bearer token; can be changed later with set_token().
            timeout: seconds, or None for no timeout. Defaults to settings.REQUEST_TIMEOUT.
            client: pre-built httpx.AsyncClient (tests pass one with a mock transport).
        """
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        if timeout is _UNSET:
            timeout = settings.REQUEST_TIMEOUT
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.token: Optional[str] = None
        self.set_token(token)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token or None
        if self.token:
            self._client.headers["Authorization"] = f"Bearer {self.token}"
        else:
            self._client.headers.pop("Authorization", None)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        # keep relative paths when the injected client already has a base_url
        if str(self._client.base_url):
            return path
        return f"{self.base_url}{path}"

    async def _request(self, method: str, path: str, fallback: str,
                       json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, self._url(path), json=json)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(fallback) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            logger.info("%s %s rejected with %s: %s", method, path, response.status_code, message)
            raise ServerRejectedError(message or fallback, status_code=response.status_code)

        if not isinstance(body, dict):
            raise ServerRejectedError(fallback, status_code=response.status_code)
        if body.get("success") is False:
            raise ServerRejectedError(body.get("message") or fallback, status_code=response.status_code)
        return body

    def _payload(self, model: type, **fields: Any) -> Dict[str, Any]:
        try:
            return model(**fields).model_dump(exclude_none=True)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ()))
            raise CartValidationError(f"Invalid {field}: {first.get('msg')}", field=field or None) from e

    def _parse(self, model: type, body: Dict[str, Any], fallback: str) -> BaseModel:
        try:
            return model.model_validate(body)
        except ValidationError as e:
            raise ServerRejectedError(fallback) from e

    # --- endpoints ---

    async def fetch_cart(self) -> CartResponse:
        fallback = "Failed to fetch cart"
        body = await self._request("GET", "/api/cart", fallback)
        parsed = self._parse(CartResponse, body, fallback)
        if parsed.cart is None:
            raise ServerRejectedError(fallback)
        return parsed

    async def add_item(self, product_uid: str, variant_uid: Optional[str] = None,
                       quantity: int = 1) -> CartItemMutationResponse:
        fallback = "Failed to add item to cart"
        payload = self._payload(AddItemRequest, product_uid=product_uid, variant_uid=variant_uid, quantity=quantity)
        body = await self._request("POST", "/api/cart/items", fallback, json=payload)
        return self._parse(CartItemMutationResponse, body, fallback)

    async def update_item(self, item_uid: str, quantity: Optional[int] = None,
                          is_saved_for_later: Optional[bool] = None) -> CartItemMutationResponse:
        fallback = "Failed to update cart item"
        payload = self._payload(UpdateItemRequest, quantity=quantity, is_saved_for_later=is_saved_for_later)
        body = await self._request("PUT", f"/api/cart/items/{item_uid}", fallback,
                                   json=payload)
        return self._parse(CartItemMutationResponse, body, fallback)

    async def remove_item(self, item_uid: str) -> RemoveItemResponse:
        fallback = "Failed to remove cart item"
        body = await self._request("DELETE", f"/api/cart/items/{item_uid}", fallback)
        return self._parse(RemoveItemResponse, body, fallback)
