"""
Access Guard: tenant isolation and role-based access control.

Every tenant-scoped operation passes two independent checks before it runs:

1. Cross-tenant isolation: the tenant that issued the credential must be the
   tenant this request targets (resolved from subdomain or header). A
   credential issued for tenant A is never honored against tenant B, whatever
   tenant identifier appears in the body or path.
2. Role permission: the operation declares the roles it admits. Clients may
   additionally only act on their own subject id.

USAGE:
    from storefront.auth import AccessContext, CLIENT_ONLY, require_access

    @router.post("/api/orders")
    async def create(
        payload: OrderCreateRequest,
        access: AccessContext = Depends(require_access(*CLIENT_ONLY)),
        session: AsyncSession = Depends(get_session),
    ):
        # access.tenant_id is the ONLY tenant id downstream code may use
        ...
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import Forbidden
from .core.principal import Principal, Role, get_principal
from .core.responses import ErrorCodes
from .models import AuditLog
from .tenancy.context import TenantContext, get_tenant_context


logger = logging.getLogger(__name__)


__all__ = [
    "AccessContext",
    "ADMIN_ONLY",
    "STAFF_ROLES",
    "CLIENT_ONLY",
    "ensure_same_tenant",
    "require_role",
    "require_subject",
    "authorize",
    "require_access",
    "log_audit",
    "AUDIT_ORDER_CREATED",
    "AUDIT_PRODUCT_ACTIVATED",
    "AUDIT_PRODUCT_DEACTIVATED",
    "AUDIT_CLIENT_REGISTERED",
    "AUDIT_STAFF_CREATED",
    "AUDIT_STAFF_UPDATED",
    "AUDIT_STAFF_DELETED",
    "AUDIT_APPOINTMENT_BOOKED",
]


# ============================================================================
# PERMISSION MATRIX
# ============================================================================

ADMIN_ONLY = frozenset({Role.ADMIN})
STAFF_ROLES = frozenset({Role.ADMIN, Role.DOCTOR, Role.RECEPTIONIST})
CLIENT_ONLY = frozenset({Role.CLIENT})


@dataclass(frozen=True)
class AccessContext:
    """An authorized principal bound to the tenant the request targets."""

    principal: Principal
    tenant: TenantContext

    @property
    def tenant_id(self) -> int:
        return self.tenant.tenant_id

    @property
    def subject_id(self) -> Optional[int]:
        return self.principal.subject_id


# ============================================================================
# CHECKS
# ============================================================================

def ensure_same_tenant(principal: Principal, tenant: TenantContext) -> None:
    """
    Reject a principal whose credential was issued by another tenant.

    Raises:
        Forbidden: credential tenant != request tenant
    """
    if principal.tenant_slug != tenant.slug:
        logger.error(
            f"Tenant boundary violation! Credential tenant={principal.tenant_slug}, "
            f"request tenant={tenant.slug} (tenant_id={tenant.tenant_id})"
        )
        raise Forbidden(
            "Access denied. You do not have permission to access this tenant's resources.",
            code=ErrorCodes.TENANT_MISMATCH,
        )


def require_role(principal: Principal, allowed_roles: Iterable[Role]) -> Role:
    """
    Require the principal to hold one of ``allowed_roles``.

    Returns:
        The principal's role

    Raises:
        Forbidden: role not in the allowed set
    """
    allowed = frozenset(allowed_roles)
    if principal.role not in allowed:
        allowed_values = sorted(role.value for role in allowed)
        logger.warning(
            f"Authorization failed: {principal.actor} has role {principal.role.value}, "
            f"needs one of {allowed_values}"
        )
        raise Forbidden(
            f"Access denied. Required role: {', '.join(allowed_values)}. Your role: {principal.role.value}.",
            code=ErrorCodes.INSUFFICIENT_ROLE,
        )
    return principal.role


def require_subject(principal: Principal, subject_id: Optional[int] = None) -> int:
    """
    Require the principal to name a subject, and (optionally) a specific one.

    A client may only act for itself: when ``subject_id`` is given it must be
    the principal's own id.

    Raises:
        Forbidden: credential carries no subject, or names someone else
    """
    if principal.subject_id is None:
        logger.warning(f"Authorization failed: {principal.actor} carries no subject id")
        raise Forbidden("Access denied. Credential does not identify a user.")
    if subject_id is not None and subject_id != principal.subject_id:
        logger.warning(
            f"Authorization failed: {principal.actor} attempted to act for subject {subject_id}"
        )
        raise Forbidden("Access denied. You can only act on your own behalf.")
    return principal.subject_id


def authorize(
    principal: Principal,
    tenant: TenantContext,
    allowed_roles: Iterable[Role],
) -> AccessContext:
    """
    Run the isolation check, then the role check.

    The tenant check comes first so a foreign credential is always reported
    as a tenant mismatch, whatever its role.
    """
    ensure_same_tenant(principal, tenant)
    require_role(principal, allowed_roles)
    logger.debug(f"Authorization successful: {principal.actor} on tenant {tenant.tenant_id}")
    return AccessContext(principal=principal, tenant=tenant)


def require_access(*allowed_roles: Role):
    """
    Build a FastAPI dependency that authenticates and authorizes the request.

    Evaluation order: credential (401) -> tenant resolution (400/404)
    -> tenant match (403) -> role (403).

    On success the resolved tenant id is also attached to ``request.state``.
    """
    roles = frozenset(allowed_roles) or STAFF_ROLES | CLIENT_ONLY

    async def dependency(
        request: Request,
        principal: Principal = Depends(get_principal),
        tenant: TenantContext = Depends(get_tenant_context),
    ) -> AccessContext:
        access = authorize(principal, tenant, roles)
        request.state.tenant_id = access.tenant_id
        return access

    return dependency


# ============================================================================
# AUDIT LOGGING HELPERS
# ============================================================================

async def log_audit(
    session: AsyncSession,
    *,
    actor: str,
    action: str,
    tenant_id: Optional[int] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    IMPORTANT: Do NOT include PII (emails, phone numbers) in metadata.
    The entry joins the caller's transaction; it is not committed here.

    Example:
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_ORDER_CREATED,
            tenant_id=access.tenant_id,
            target_type="order",
            target_id=str(order.id),
            metadata={"total": "20.00"},
        )
    """
    audit_log = AuditLog(
        tenant_id=tenant_id,
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        extra_data=metadata,
    )
    session.add(audit_log)
    await session.flush()

    logger.info(
        f"Audit: {action} by {actor} "
        f"(tenant={tenant_id}, target={target_type}:{target_id})"
    )

    return audit_log


# ============================================================================
# COMMON AUDIT ACTIONS
# ============================================================================

AUDIT_ORDER_CREATED = "order.created"
AUDIT_PRODUCT_ACTIVATED = "product.activated"
AUDIT_PRODUCT_DEACTIVATED = "product.deactivated"
AUDIT_CLIENT_REGISTERED = "client.registered"
AUDIT_STAFF_CREATED = "staff.created"
AUDIT_STAFF_UPDATED = "staff.updated"
AUDIT_STAFF_DELETED = "staff.deleted"
AUDIT_APPOINTMENT_BOOKED = "appointment.booked"
