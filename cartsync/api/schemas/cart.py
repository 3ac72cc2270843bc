from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AddItemRequest(BaseModel):
    product_uid: str
    variant_uid: Optional[str] = None
    quantity: int = Field(1, ge=1)


class UpdateItemRequest(BaseModel):
    quantity: Optional[int] = Field(None, ge=1)
    is_saved_for_later: Optional[bool] = None


class CartSummaryPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    subtotal: Any = 0
    item_count: int = 0


class CartPayload(BaseModel):
    """`cart` object of GET /api/cart. Item rows stay raw; models.cart parses them."""
    model_config = ConfigDict(extra="allow")

    uid: Optional[str] = None
    items: List[Dict[str, Any]] = []
    summary: Optional[Dict[str, Any]] = None
    subtotal: Optional[Any] = None
    item_count: Optional[int] = None


class CartResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = True
    message: Optional[str] = None
    cart: Optional[CartPayload] = None


class CartItemMutationResponse(BaseModel):
    """Response body of POST /api/cart/items and PUT /api/cart/items/{uid}."""
    model_config = ConfigDict(extra="allow")

    success: bool = True
    message: Optional[str] = None
    cart_item: Optional[Dict[str, Any]] = None
    cart_summary: Optional[CartSummaryPayload] = None


class RemoveItemResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = True
    message: Optional[str] = None
    cart_summary: Optional[CartSummaryPayload] = None
