"""Error taxonomy shared by services and routers.

Services raise these; the handlers registered in ``main`` turn them into
``{"success": false, "error": ...}`` responses with the matching status code.
Any ``details`` are added to the body under the same key.
"""
from typing import Any


class StorefrontError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StorefrontError):
    """Missing or malformed request fields, or a failed business validation."""

    status_code = 400


class NotFoundError(StorefrontError):
    """The requested row does not exist."""

    status_code = 404


class InsufficientStockError(StorefrontError):
    """Requested quantity exceeds what is on hand."""

    status_code = 400

    def __init__(self, message: str, available: int = 0, requested: int = 0):
        super().__init__(message)
        self.available = available
        self.requested = requested


class UpstreamError(StorefrontError):
    """The database or a downstream service call failed."""

    status_code = 500
