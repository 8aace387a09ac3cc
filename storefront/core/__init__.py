"""
Core module - configuration, database, principal resolution, and error formatting.
"""
from .config import get_settings
from .db import get_session, Base, engine, AsyncSessionLocal
from .principal import (
    Principal,
    Role,
    get_principal,
    issue_credential,
    parse_credential,
)
from .errors import (
    StorefrontError,
    ValidationError,
    Unauthenticated,
    Forbidden,
    NotFound,
    TenantNotFound,
    Conflict,
    InsufficientStock,
    ProductUnavailable,
    ServerError,
)
from .responses import ErrorCodes, error_response

__all__ = [
    # Config
    "get_settings",
    # Database
    "get_session",
    "Base",
    "engine",
    "AsyncSessionLocal",
    # Principal
    "Principal",
    "Role",
    "get_principal",
    "issue_credential",
    "parse_credential",
    # Errors
    "StorefrontError",
    "ValidationError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "TenantNotFound",
    "Conflict",
    "InsufficientStock",
    "ProductUnavailable",
    "ServerError",
    # Responses
    "ErrorCodes",
    "error_response",
]
