"""
Principal Resolution Module

This module turns the bearer credential on a request into a Principal:
who is calling, which tenant issued the credential, and with what role.

ARCHITECTURE:
    1. get_principal() reads the Authorization header
    2. parse_credential() verifies the token and builds the Principal
    3. All authorization checks (storefront.auth) work from the Principal

AUTH METHOD:
    - Signed JWT (HS256 by default) carrying ``tenant``, ``role`` and ``sub``
    - The legacy "slug:role[:subjectId]" bearer value is accepted ONLY when
      ALLOW_PLAIN_CREDENTIALS=true (development)
    - No database lookup happens here
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import jwt
from fastapi import Header

from .config import Settings, get_settings
from .errors import Unauthenticated
from .responses import ErrorCodes

logger = logging.getLogger(__name__)


SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


class Role(str, Enum):
    """Closed set of roles a credential can carry."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    CLIENT = "client"

    @property
    def is_staff(self) -> bool:
        return self is not Role.CLIENT


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor for one request.

    Attributes:
        tenant_slug: Slug of the tenant that issued the credential
        role: Role carried by the credential
        subject_id: Client or staff id; None when the credential names none
    """

    tenant_slug: str
    role: Role
    subject_id: Optional[int] = None

    @property
    def actor(self) -> str:
        """Identifier used in audit entries."""
        if self.subject_id is None:
            return f"{self.role.value}@{self.tenant_slug}"
        return f"{self.role.value}:{self.subject_id}@{self.tenant_slug}"


def normalize_slug(value: Optional[str]) -> Optional[str]:
    """Lowercase and validate a tenant slug. Returns None if it is not a valid slug."""
    if not value:
        return None
    slug = value.strip().lower()
    if not SLUG_PATTERN.match(slug):
        return None
    return slug


# ────────────────────────────────────────────────────────────────
# Credential issuing
# ────────────────────────────────────────────────────────────────

def issue_credential(
    tenant_slug: str,
    role: Role,
    subject_id: Optional[int] = None,
    *,
    settings: Optional[Settings] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    """
    Mint a signed credential for a principal.

    Example:
        token = issue_credential("acme", Role.CLIENT, client.id)
        # Authorization: Bearer <token>
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.auth_token_ttl_minutes)
    payload = {
        "tenant": tenant_slug,
        "role": Role(role).value,
        "iat": now,
        "exp": now + lifetime,
    }
    if subject_id is not None:
        # PyJWT requires "sub" to be a string.
        payload["sub"] = str(subject_id)
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


# ────────────────────────────────────────────────────────────────
# Credential parsing
# ────────────────────────────────────────────────────────────────

def _looks_like_plain_credential(token: str) -> bool:
    return ":" in token and token.count(".") != 2


def _build_principal(slug_value, role_value, subject_value) -> Principal:
    slug = normalize_slug(slug_value if isinstance(slug_value, str) else None)
    if not slug:
        raise Unauthenticated("Invalid token: missing tenant.", code=ErrorCodes.INVALID_TOKEN)

    try:
        role = Role(role_value)
    except ValueError:
        raise Unauthenticated("Invalid token: unrecognized role.", code=ErrorCodes.INVALID_TOKEN)

    subject_id: Optional[int] = None
    if subject_value not in (None, ""):
        try:
            subject_id = int(str(subject_value))
        except ValueError:
            raise Unauthenticated("Invalid token: malformed subject.", code=ErrorCodes.INVALID_TOKEN)
        if subject_id <= 0:
            raise Unauthenticated("Invalid token: malformed subject.", code=ErrorCodes.INVALID_TOKEN)

    return Principal(tenant_slug=slug, role=role, subject_id=subject_id)


def _parse_plain_credential(token: str) -> Principal:
    parts = token.split(":")
    if len(parts) < 2 or len(parts) > 3:
        raise Unauthenticated("Invalid token.", code=ErrorCodes.INVALID_TOKEN)
    subject = parts[2] if len(parts) == 3 else None
    return _build_principal(parts[0], parts[1], subject)


def parse_credential(credential: Optional[str], settings: Optional[Settings] = None) -> Principal:
    """
    Parse a bearer credential into a Principal.

    Args:
        credential: The token part of "Authorization: Bearer <token>"
        settings: Optional settings override (tests)

    Returns:
        Principal with tenant slug, role and optional subject id

    Raises:
        Unauthenticated: missing, malformed, expired or badly signed credential
    """
    settings = settings or get_settings()

    if not credential or not credential.strip():
        raise Unauthenticated("Authentication required. Token not provided.")
    token = credential.strip()

    if _looks_like_plain_credential(token):
        if not settings.allow_plain_credentials:
            logger.warning("Rejected plain credential: plain credentials are disabled")
            raise Unauthenticated("Invalid token.", code=ErrorCodes.INVALID_TOKEN)
        return _parse_plain_credential(token)

    try:
        claims = jwt.decode(
            token,
            settings.auth_secret_key,
            algorithms=[settings.auth_algorithm],
            options={"require": ["exp", "tenant", "role"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired. Please sign in again.", code=ErrorCodes.TOKEN_EXPIRED)
    except jwt.PyJWTError as e:
        logger.warning(f"Credential verification failed: {e}")
        raise Unauthenticated("Invalid or expired token.", code=ErrorCodes.INVALID_TOKEN)

    return _build_principal(claims.get("tenant"), claims.get("role"), claims.get("sub"))


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an "Authorization: Bearer <token>" header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        raise Unauthenticated(
            "Invalid Authorization header format. Expected: Bearer <token>",
            code=ErrorCodes.INVALID_TOKEN,
        )
    return token.strip() or None


async def get_principal(authorization: Optional[str] = Header(None)) -> Principal:
    """
    FastAPI dependency resolving the Principal for the current request.

        @router.get("/something")
        async def handler(principal: Principal = Depends(get_principal)):
            ...
    """
    principal = parse_credential(extract_bearer_token(authorization))
    logger.debug(f"Authenticated {principal.role.value} for tenant {principal.tenant_slug}")
    return principal
