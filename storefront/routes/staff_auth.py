"""
Staff login.

    POST /api/staff/auth/login -> Exchange email + password for a staff credential

Public but tenant-scoped: only staff of the resolved tenant can sign in, and
the credential carries the member's stored role.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..core.errors import Unauthenticated
from ..core.passwords import dummy_password_hash, verify_password
from ..core.principal import Role, issue_credential
from ..core.responses import ErrorCodes
from ..tenancy.context import TenantContext, get_tenant_context
from ..tenancy.queries import get_staff_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff/auth", tags=["staff-auth"])


class StaffLoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class StaffLoginUser(BaseModel):
    id: int
    name: str
    email: str
    role: str


class StaffLoginResponse(BaseModel):
    message: str
    token: str
    user: StaffLoginUser


@router.post("/login", response_model=StaffLoginResponse)
async def login_staff(
    payload: StaffLoginRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    member = await get_staff_by_email(session, tenant.tenant_id, payload.email)
    if member is not None:
        password_hash = member.password_hash
    else:
        password_hash = await run_in_threadpool(dummy_password_hash)
    valid = await run_in_threadpool(verify_password, payload.password, password_hash)
    if member is None or not valid:
        logger.warning(f"Failed staff login for tenant_id={tenant.tenant_id}")
        raise Unauthenticated("Invalid credentials.", code=ErrorCodes.INVALID_CREDENTIALS)

    role = Role(member.role.value)
    token = issue_credential(tenant.slug, role, member.id)
    logger.info(f"Staff {member.id} ({role.value}) signed in to tenant_id={tenant.tenant_id}")
    return StaffLoginResponse(
        message="Login successful.",
        token=token,
        user=StaffLoginUser(id=member.id, name=member.name, email=member.email, role=role.value),
    )
