from typing import Optional


class CartError(Exception):
    """Base class for every cart failure surfaced by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(CartError):
    """The request never got a response (connection refused, DNS, reset...)."""


class ServerRejectedError(CartError):
    """The backend answered but refused the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CartValidationError(CartError, ValueError):
    """Input rejected locally before any network call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidCartEvent(CartError, ValueError):
    pass


class StorageSchemaError(CartError):
    pass
