"""
Multi-tenancy context module.

This module provides the TenantContext abstraction for tenant isolation.

A tenant is identified by its slug, taken from the request's subdomain
(``<slug>.<base domain>``) or, for deployments without subdomains, from the
fallback header (``X-Tenant-ID`` by default). The slug is never read from a
request body. The directory turns the slug into the numeric ``tenants.id``
that every tenant-scoped row references.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.db import get_session
from ..core.errors import TenantNotFound, ValidationError
from ..core.principal import normalize_slug
from ..core.responses import ErrorCodes
from ..models import Tenant


logger = logging.getLogger(__name__)

RESERVED_SUBDOMAINS = frozenset({"www", "api"})


class TenantResolutionSource(str, Enum):
    """How the tenant slug was determined."""

    SUBDOMAIN = "subdomain"     # From <slug>.<base domain> Host header
    HEADER = "header"           # From the fallback tenant header
    DIRECT = "direct"           # Resolved by code, not from a request


@dataclass(frozen=True)
class TenantContext:
    """
    Immutable context representing the current tenant for a request.

    This object MUST be established before any tenant-specific database operation.

    Attributes:
        tenant_id: The database ID of the tenant (tenants.id)
        slug: Public identifier (e.g., "acme")
        name: Human-readable business name
        source: How the slug was determined (for audit logging)
    """

    tenant_id: int
    slug: str
    name: Optional[str] = None
    source: TenantResolutionSource = TenantResolutionSource.DIRECT

    def __post_init__(self):
        if self.tenant_id <= 0:
            raise ValueError(f"tenant_id must be positive, got {self.tenant_id}")


# ────────────────────────────────────────────────────────────────
# Tenant Directory
# ────────────────────────────────────────────────────────────────

class TenantDirectory:
    """
    Maps tenant slugs to tenant ids.

    Lookups sit on every request's hot path, so hits are cached in-process
    for a short TTL. Only immutable TenantContext values are cached.
    """

    def __init__(self, ttl_seconds: Optional[float] = None):
        self._ttl_seconds = ttl_seconds
        # Structure: {slug: (expires_at_monotonic, TenantContext)}
        self._cache: dict[str, tuple[float, TenantContext]] = {}

    @property
    def ttl_seconds(self) -> float:
        if self._ttl_seconds is not None:
            return self._ttl_seconds
        return get_settings().tenant_cache_ttl_seconds

    def clear(self) -> None:
        self._cache.clear()

    def _cached(self, slug: str) -> Optional[TenantContext]:
        entry = self._cache.get(slug)
        if entry is None:
            return None
        expires_at, ctx = entry
        if expires_at <= time.monotonic():
            self._cache.pop(slug, None)
            return None
        return ctx

    async def resolve(self, session: AsyncSession, slug: str) -> TenantContext:
        """
        Resolve a slug to its tenant.

        Raises:
            TenantNotFound: no tenant has this slug
        """
        ctx = self._cached(slug)
        if ctx is not None:
            return ctx

        result = await session.execute(select(Tenant.id, Tenant.slug, Tenant.name).where(Tenant.slug == slug))
        row = result.one_or_none()
        if row is None:
            raise TenantNotFound(slug)

        ctx = TenantContext(tenant_id=row.id, slug=row.slug, name=row.name)
        ttl = self.ttl_seconds
        if ttl > 0:
            self._cache[slug] = (time.monotonic() + ttl, ctx)
        return ctx


tenant_directory = TenantDirectory()


def clear_tenant_cache() -> None:
    tenant_directory.clear()


# ────────────────────────────────────────────────────────────────
# Request Helpers
# ────────────────────────────────────────────────────────────────

def extract_slug_from_host(host: Optional[str], base_domain: str) -> Optional[str]:
    """
    Extract the tenant slug from a Host header.

    Expected patterns (base domain "example.com"):
        acme.example.com       -> "acme"
        acme.example.com:8000  -> "acme"
        example.com            -> None
        www.example.com        -> None
        a.b.example.com        -> None
    """
    if not host:
        return None
    hostname = host.strip().lower().split(":", 1)[0].rstrip(".")
    base = base_domain.strip().lower().strip(".")
    if not base or not hostname.endswith("." + base):
        return None
    subdomain = hostname[: -(len(base) + 1)]
    if not subdomain or "." in subdomain or subdomain in RESERVED_SUBDOMAINS:
        return None
    return normalize_slug(subdomain)


def resolve_tenant_slug(request: Request) -> tuple[Optional[str], TenantResolutionSource]:
    """
    Work out which tenant a request targets.

    Resolution order (first match wins):
    1. Subdomain of the Host header
    2. Fallback tenant header
    """
    settings = get_settings()

    slug = extract_slug_from_host(request.headers.get("host"), settings.base_domain)
    if slug:
        return slug, TenantResolutionSource.SUBDOMAIN

    slug = normalize_slug(request.headers.get(settings.tenant_header))
    return slug, TenantResolutionSource.HEADER


# ────────────────────────────────────────────────────────────────
# FastAPI Dependencies
# ────────────────────────────────────────────────────────────────

async def get_tenant_context(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> TenantContext:
    """
    FastAPI dependency to resolve the tenant targeted by this request.

    Usage:
        @router.get("/products")
        async def list_products(
            tenant: TenantContext = Depends(get_tenant_context),
            session: AsyncSession = Depends(get_session),
        ):
            products = await list_store_products(session, tenant.tenant_id)
    """
    slug, source = resolve_tenant_slug(request)
    if not slug:
        raise ValidationError("Tenant slug not found in request.", code=ErrorCodes.MISSING_TENANT)

    ctx = await tenant_directory.resolve(session, slug)
    logger.debug(f"Resolved tenant from {source.value}: {slug} -> tenant_id={ctx.tenant_id}")
    return TenantContext(tenant_id=ctx.tenant_id, slug=ctx.slug, name=ctx.name, source=source)
