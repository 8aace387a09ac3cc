"""
Domain error taxonomy.

Every failure the API reports on purpose is one of these exceptions. Routes,
guards and the order engine raise them; the handlers registered in
``storefront.main`` turn them into JSON responses. Anything else that escapes
a route is an unexpected failure and is reported as a generic 500.
"""

from typing import Any, Optional

from .responses import ErrorCodes


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = ErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(message)


class ValidationError(StorefrontError):
    """Malformed input: missing fields, dates outside the pickup window."""

    status_code = 400
    code = ErrorCodes.VALIDATION_ERROR


class Unauthenticated(StorefrontError):
    """Missing or malformed credential."""

    status_code = 401
    code = ErrorCodes.AUTHENTICATION_REQUIRED


class Forbidden(StorefrontError):
    """Tenant mismatch, insufficient role, or acting on someone else's behalf."""

    status_code = 403
    code = ErrorCodes.AUTHORIZATION_DENIED


class NotFound(StorefrontError):
    status_code = 404
    code = ErrorCodes.NOT_FOUND


class TenantNotFound(NotFound):
    code = ErrorCodes.TENANT_NOT_FOUND

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Tenant {slug} not found.", details={"slug": slug})


class Conflict(StorefrontError):
    status_code = 409
    code = ErrorCodes.CONFLICT


class InsufficientStock(Conflict):
    code = ErrorCodes.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, requested: int, available: Optional[int] = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Insufficient stock for product ID {product_id}."
        else:
            message = f"Insufficient stock for product ID {product_id}. Available: {available}"
        super().__init__(
            message,
            details={"productId": product_id, "requested": requested, "available": available},
        )


class ProductUnavailable(StorefrontError):
    status_code = 400
    code = ErrorCodes.PRODUCT_UNAVAILABLE

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(
            f"Product with ID {product_id} is not available.",
            details={"productId": product_id},
        )


class ServerError(StorefrontError):
    status_code = 500
    code = ErrorCodes.INTERNAL_ERROR
