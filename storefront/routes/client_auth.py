"""
Client account routes for the storefront.

    POST /api/client/auth/register -> Create a client account in this tenant
    POST /api/client/auth/login    -> Exchange email + password for a credential

Both endpoints are public but tenant-scoped: the account always belongs to
the tenant resolved from the request.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AUDIT_CLIENT_REGISTERED, log_audit
from ..core.db import get_session
from ..core.errors import Conflict, Unauthenticated
from ..core.passwords import dummy_password_hash, hash_password, verify_password
from ..core.principal import Role, issue_credential
from ..core.responses import ErrorCodes
from ..models import Client
from ..tenancy.context import TenantContext, get_tenant_context
from ..tenancy.queries import email_in_use, get_client_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/client/auth", tags=["client-auth"])


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=255)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    client_id: int = Field(..., alias="clientId")


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ClientUser(BaseModel):
    id: int
    name: str
    email: str
    role: str = Role.CLIENT.value


class LoginResponse(BaseModel):
    message: str
    token: str
    user: ClientUser


def _email_taken() -> Conflict:
    return Conflict("Email is already in use.", code=ErrorCodes.ALREADY_EXISTS)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_client(
    payload: RegisterRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """Create a client account. Emails are unique per tenant across clients and staff."""
    email = payload.email.strip().lower()
    if await email_in_use(session, tenant.tenant_id, email):
        raise _email_taken()

    client = Client(
        tenant_id=tenant.tenant_id,
        name=payload.name.strip(),
        email=email,
        password_hash=await run_in_threadpool(hash_password, payload.password),
        phone=payload.phone,
        address=payload.address,
    )
    session.add(client)
    try:
        await session.flush()
        await log_audit(
            session,
            actor=f"client:{client.id}@{tenant.slug}",
            action=AUDIT_CLIENT_REGISTERED,
            tenant_id=tenant.tenant_id,
            target_type="client",
            target_id=str(client.id),
        )
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email.
        await session.rollback()
        raise _email_taken()

    logger.info(f"Registered client {client.id} for tenant_id={tenant.tenant_id}")
    return RegisterResponse(message="Client registered successfully.", client_id=client.id)


@router.post("/login", response_model=LoginResponse)
async def login_client(
    payload: LoginRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """Verify a client's password and issue a signed credential for this tenant."""
    client = await get_client_by_email(session, tenant.tenant_id, payload.email)
    # Unknown emails still pay for one bcrypt check.
    if client is not None:
        password_hash = client.password_hash
    else:
        password_hash = await run_in_threadpool(dummy_password_hash)
    valid = await run_in_threadpool(verify_password, payload.password, password_hash)
    if client is None or not valid:
        logger.warning(f"Failed client login for tenant_id={tenant.tenant_id}")
        raise Unauthenticated("Invalid credentials.", code=ErrorCodes.INVALID_CREDENTIALS)

    token = issue_credential(tenant.slug, Role.CLIENT, client.id)
    return LoginResponse(
        message="Login successful.",
        token=token,
        user=ClientUser(id=client.id, name=client.name, email=client.email),
    )
