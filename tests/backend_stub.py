# tests/backend_stub.py
"""
In-memory stand-in for the marketplace backend's cart endpoints.

Mirrors the response shapes and cart_update pushes of the real server so the
client can be exercised end to end through httpx.ASGITransport. Pushes go to
subscribed callbacks before the HTTP response is returned.
"""
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

Subscriber = Callable[[Dict[str, Any]], Awaitable[Any]]

CATALOG = {
    "brick-red": {"name": "Red Clay Brick", "price": 0.85},
    "cement-50kg": {"name": "Portland Cement 50kg", "price": 12.40},
    "rebar-12mm": {"name": "Rebar 12mm x 6m", "price": 9.95},
}


class AddItemBody(BaseModel):
    product_uid: str
    variant_uid: Optional[str] = None
    quantity: int = 1


class UpdateItemBody(BaseModel):
    quantity: Optional[int] = None
    is_saved_for_later: Optional[bool] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


class StubBackend:
    def __init__(self, cart_uid: str = "cart-0001"):
        self.cart_uid = cart_uid
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.events: List[Dict[str, Any]] = []
        self.requests: List[str] = []
        self.fail_next: Optional[int] = None
        self._subscribers: List[Subscriber] = []
        self.app = self._build_app()

    # --- helpers used by tests ---

    def seed(self, product_uid: str, quantity: int = 1, saved: bool = False, uid: Optional[str] = None) -> Dict[str, Any]:
        product = CATALOG[product_uid]
        row = {
            "uid": uid or f"ci-{uuid.uuid4().hex[:8]}",
            "cart_uid": self.cart_uid,
            "product_uid": product_uid,
            "product_name": product["name"],
            "variant_uid": None,
            "variant_info": None,
            "quantity": quantity,
            "price_snapshot": product["price"],
            "is_saved_for_later": saved,
            "primary_image_url": f"https://cdn.example.com/{product_uid}.jpg",
        }
        self.rows[row["uid"]] = row
        return row

    def subscribe(self, fn: Subscriber) -> None:
        self._subscribers.append(fn)

    def unsubscribe(self, fn: Subscriber) -> None:
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    def totals(self):
        subtotal = 0.0
        count = 0
        for row in self.rows.values():
            if not row["is_saved_for_later"]:
                subtotal += row["price_snapshot"] * row["quantity"]
                count += row["quantity"]
        return round(subtotal, 2), count

    async def _emit(self, update_type: str, row: Dict[str, Any], previous_quantity: int, new_quantity: int):
        subtotal, count = self.totals()
        event = {
            "cart_uid": self.cart_uid,
            "update_type": update_type,
            "item_uid": row["uid"],
            "product_uid": row["product_uid"],
            "product_name": row["product_name"],
            "variant_uid": row["variant_uid"],
            "variant_info": row["variant_info"],
            "previous_quantity": previous_quantity,
            "new_quantity": new_quantity,
            "cart_total": subtotal,
            "item_count": count,
            "updated_at": "2026-10-17T10:00:00Z",
        }
        self.events.append(event)
        for fn in list(self._subscribers):
            await fn(event)

    def _summary(self) -> Dict[str, Any]:
        subtotal, count = self.totals()
        return {"subtotal": subtotal, "item_count": count}

    # --- app ---

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Marketplace stub")
        backend = self

        @app.middleware("http")
        async def record_and_auth(request: Request, call_next):
            backend.requests.append(f"{request.method} {request.url.path}")
            if not request.headers.get("authorization", "").startswith("Bearer "):
                return _error(401, "Authentication required")
            if backend.fail_next is not None:
                code, backend.fail_next = backend.fail_next, None
                return _error(code, "Server error while processing cart")
            return await call_next(request)

        @app.get("/api/cart")
        async def get_cart():
            subtotal, count = backend.totals()
            return {
                "success": True,
                "cart": {
                    "uid": backend.cart_uid,
                    "name": None,
                    "notes": None,
                    "items": list(backend.rows.values()),
                    "subtotal": subtotal,
                    "item_count": count,
                },
            }

        @app.post("/api/cart/items")
        async def add_item(body: AddItemBody):
            if body.product_uid not in CATALOG:
                return _error(404, "Product not found")
            if body.quantity < 1:
                return _error(400, "Quantity must be at least 1")
            existing = next(
                (r for r in backend.rows.values()
                 if r["product_uid"] == body.product_uid and r["variant_uid"] == body.variant_uid
                 and not r["is_saved_for_later"]),
                None,
            )
            if existing is not None:
                previous = existing["quantity"]
                existing["quantity"] += body.quantity
                row = existing
                await backend._emit("quantity_changed", row, previous, row["quantity"])
            else:
                row = backend.seed(body.product_uid, quantity=body.quantity)
                row["variant_uid"] = body.variant_uid
                await backend._emit("item_added", row, 0, row["quantity"])
            return {
                "success": True,
                "message": "Item added to cart",
                "cart_item": dict(row),
                "cart_summary": backend._summary(),
            }

        @app.put("/api/cart/items/{item_uid}")
        async def update_item(item_uid: str, body: UpdateItemBody):
            row = backend.rows.get(item_uid)
            if row is None:
                return _error(404, "Cart item not found")
            previous = row["quantity"]
            if body.quantity is not None:
                row["quantity"] = body.quantity
            if body.is_saved_for_later is not None:
                row["is_saved_for_later"] = body.is_saved_for_later
            update_type = "quantity_changed" if body.quantity is not None else "moved_to_saved"
            await backend._emit(update_type, row, previous, row["quantity"])
            return {
                "success": True,
                "message": "Cart item updated",
                "cart_item": dict(row),
                "cart_summary": backend._summary(),
            }

        @app.delete("/api/cart/items/{item_uid}")
        async def remove_item(item_uid: str):
            row = backend.rows.pop(item_uid, None)
            if row is None:
                return _error(404, "Cart item not found")
            await backend._emit("item_removed", row, row["quantity"], 0)
            return {"success": True, "message": "Item removed from cart", "cart_summary": backend._summary()}

        return app
