"""
Standardized API Response Module

Provides consistent error formatting across all API endpoints.

RESPONSE FORMAT:
    Success bodies are endpoint specific (the storefront client reads fields
    such as ``orderId`` or ``products`` directly).

    Error:
        {
            "message": "Human-readable message",
            "code": "ERROR_CODE",
            "details": {...}  # Optional extra context
        }

ERROR CODES:
    - AUTHENTICATION_REQUIRED: No valid credential provided
    - AUTHORIZATION_DENIED: Wrong tenant, role, or subject
    - NOT_FOUND: Resource not found
    - VALIDATION_ERROR: Request data failed validation
    - CONFLICT: Resource already exists or state conflict
    - INTERNAL_ERROR: Server-side error
"""

from typing import Optional


# ============================================================================
# COMMON ERROR CODES
# ============================================================================

class ErrorCodes:
    """Standard error codes for API responses."""

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    # Authorization errors (403)
    AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    TENANT_MISMATCH = "TENANT_MISMATCH"

    # Not found errors (404)
    NOT_FOUND = "NOT_FOUND"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_TENANT = "MISSING_TENANT"
    PRODUCT_UNAVAILABLE = "PRODUCT_UNAVAILABLE"

    # Conflict errors (409)
    CONFLICT = "CONFLICT"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    SLOT_TAKEN = "SLOT_TAKEN"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """
    Create a standardized error response dict.
    """
    response = {
        "message": message,
        "code": code,
    }
    if details:
        response["details"] = details
    return response
