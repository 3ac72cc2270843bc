# tests/conftest.py
import os
import sys
import tempfile
import shutil
from pathlib import Path
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from jose import jwt

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
TESTS = os.path.dirname(__file__)
if TESTS not in sys.path:
    sys.path.insert(0, TESTS)

# point DATA_DIR at a temp dir before anything builds a storage object from settings
_tmp_data_dir = tempfile.mkdtemp(prefix="test_data_")
from cartsync import config as app_config  # keep after tmpdir creation
_orig_settings_data_dir = app_config.settings.DATA_DIR
app_config.settings.DATA_DIR = Path(_tmp_data_dir)

from cartsync.services.guest_cart import GuestCart  # noqa: E402
from cartsync.services.remote_cart import RemoteCartClient  # noqa: E402
from cartsync.storage import FileBackedStorage  # noqa: E402
from cartsync.store.cart_store import CartStore  # noqa: E402

from backend_stub import StubBackend  # noqa: E402

SIGNING_KEY = "test-signing-key"


@pytest.fixture(scope="session", autouse=True)
def temp_data_dir():
    """
    Keeps every test away from the real data dir.
    Restores the original setting and removes the temp dir after the session.
    """
    try:
        yield Path(_tmp_data_dir)
    finally:
        app_config.settings.DATA_DIR = _orig_settings_data_dir
        shutil.rmtree(_tmp_data_dir, ignore_errors=True)


@pytest.fixture
def storage(tmp_path):
    return FileBackedStorage(tmp_path / "local")


@pytest.fixture
def guest_cart(storage):
    return GuestCart(storage=storage)


@pytest.fixture
def backend():
    """In-process marketplace backend exposing the cart endpoints and cart_update pushes."""
    return StubBackend()


@pytest.fixture
def make_token():
    """
    Build a signed JWT the way the backend would.
    Usage: tok = make_token(uid="user-1", expires_in=timedelta(hours=1))
    """
    def _fn(uid="user-1", expires_in=timedelta(hours=1), **claims):
        payload = {"uid": uid, **claims}
        if expires_in is not None:
            payload["exp"] = int((datetime.now(timezone.utc) + expires_in).timestamp())
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")
    return _fn


@pytest.fixture
def remote_for():
    """
    Build a RemoteCartClient routed to an ASGI app (the stub backend) or to a
    plain httpx handler function.
    Usage: remote = remote_for(backend.app, token="t")
    """
    def _fn(target, token=None):
        if callable(target) and not hasattr(target, "router"):
            transport = httpx.MockTransport(target)
        else:
            transport = httpx.ASGITransport(app=target)
        client = httpx.AsyncClient(transport=transport, base_url="http://testserver")
        return RemoteCartClient(base_url="http://testserver", token=token, client=client)
    return _fn


@pytest.fixture
def store_for(remote_for):
    def _fn(target, token="user-1-token"):
        return CartStore(remote_for(target, token=token))
    return _fn


class FakeChannel:
    """Stands in for SocketIOChannel: keeps handlers and lets tests push events."""

    def __init__(self, backend=None, fail_connect=None):
        self.backend = backend
        self.fail_connect = fail_connect
        self.handlers = {}
        self.connected = False
        self.closed = False

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    async def connect(self):
        if self.fail_connect is not None:
            raise self.fail_connect
        self.connected = True
        if self.backend is not None:
            self.backend.subscribe(self.push)

    async def close(self):
        self.connected = False
        self.closed = True
        if self.backend is not None:
            self.backend.unsubscribe(self.push)

    async def push(self, payload, event="cart_update"):
        results = []
        for handler in self.handlers.get(event, []):
            results.append(await handler(payload))
        return results


@pytest.fixture
def fake_channel():
    return FakeChannel
