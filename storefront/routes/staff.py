"""
Staff management.

    GET    /api/staff             -> List staff (any staff role)
    POST   /api/staff             -> Create a staff member (admin only)
    PUT    /api/staff/{staff_id}  -> Update name, role and optionally password (admin only)
    DELETE /api/staff/{staff_id}  -> Remove a staff member (admin only)

Clients never reach these endpoints. A staff id of another tenant is
reported as not found.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    ADMIN_ONLY,
    AUDIT_STAFF_CREATED,
    AUDIT_STAFF_DELETED,
    AUDIT_STAFF_UPDATED,
    STAFF_ROLES,
    AccessContext,
    log_audit,
    require_access,
)
from ..core.db import get_session
from ..core.errors import Conflict, NotFound
from ..core.passwords import hash_password
from ..core.responses import ErrorCodes
from ..models import MAX_INT, Staff, StaffRole
from ..tenancy.queries import delete_staff, email_in_use, list_staff, require_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff", tags=["staff"])


# ────────────────────────────────────────────────────────────────
# Request / Response Models
# ────────────────────────────────────────────────────────────────

class StaffUser(BaseModel):
    id: int
    tenant_id: str  # tenant slug, not the numeric id
    email: str
    name: str
    role: str


class StaffListResponse(BaseModel):
    message: str
    users: list[StaffUser]


class StaffCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)
    role: StaffRole


class StaffUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    role: StaffRole
    password: Optional[str] = Field(None, min_length=1)


class StaffCreatedResponse(BaseModel):
    message: str
    user: StaffUser


class MessageResponse(BaseModel):
    message: str


def _staff_out(member: Staff, access: AccessContext) -> StaffUser:
    return StaffUser(
        id=member.id,
        tenant_id=access.tenant.slug,
        email=member.email,
        name=member.name,
        role=member.role.value,
    )


def _email_taken() -> Conflict:
    return Conflict("Email is already in use.", code=ErrorCodes.ALREADY_EXISTS)


# ────────────────────────────────────────────────────────────────
# Endpoints
# ────────────────────────────────────────────────────────────────

@router.get("", response_model=StaffListResponse)
@router.get("/", response_model=StaffListResponse, include_in_schema=False)
async def get_staff(
    access: AccessContext = Depends(require_access(*STAFF_ROLES)),
    session: AsyncSession = Depends(get_session),
):
    members = await list_staff(session, access.tenant_id)
    return StaffListResponse(
        message="Staff list retrieved successfully.",
        users=[_staff_out(m, access) for m in members],
    )


@router.post("", response_model=StaffCreatedResponse, status_code=status.HTTP_201_CREATED)
@router.post(
    "/",
    response_model=StaffCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_staff(
    payload: StaffCreateRequest,
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    """Create a staff member. Emails are unique per tenant across clients and staff."""
    email = payload.email.strip().lower()
    if await email_in_use(session, access.tenant_id, email):
        raise _email_taken()

    member = Staff(
        tenant_id=access.tenant_id,
        name=payload.name.strip(),
        email=email,
        password_hash=await run_in_threadpool(hash_password, payload.password),
        role=payload.role,
    )
    session.add(member)
    try:
        await session.flush()
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_STAFF_CREATED,
            tenant_id=access.tenant_id,
            target_type="staff",
            target_id=str(member.id),
            metadata={"role": member.role.value},
        )
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise _email_taken()

    logger.info(f"Created staff {member.id} ({member.role.value}) for tenant_id={access.tenant_id}")
    return StaffCreatedResponse(
        message=f"Staff member {member.name} created as {member.role.value}.",
        user=_staff_out(member, access),
    )


@router.put("/{staff_id}", response_model=MessageResponse)
async def update_staff(
    payload: StaffUpdateRequest,
    staff_id: int = Path(..., gt=0, le=MAX_INT),
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    member = await require_owned(session, Staff, staff_id, access.tenant_id)
    if member is None:
        raise NotFound("Staff member not found.", details={"staffId": staff_id})

    password_hash = None
    if payload.password:
        password_hash = await run_in_threadpool(hash_password, payload.password)

    try:
        member.name = payload.name.strip()
        member.role = payload.role
        if password_hash is not None:
            member.password_hash = password_hash
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_STAFF_UPDATED,
            tenant_id=access.tenant_id,
            target_type="staff",
            target_id=str(staff_id),
            metadata={"role": payload.role.value, "password_changed": password_hash is not None},
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return MessageResponse(message="Staff member updated.")


@router.delete("/{staff_id}", response_model=MessageResponse)
async def remove_staff(
    staff_id: int = Path(..., gt=0, le=MAX_INT),
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    try:
        deleted = await delete_staff(session, access.tenant_id, staff_id)
        if not deleted:
            raise NotFound("Staff member not found.", details={"staffId": staff_id})
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_STAFF_DELETED,
            tenant_id=access.tenant_id,
            target_type="staff",
            target_id=str(staff_id),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Deleted staff {staff_id} from tenant_id={access.tenant_id}")
    return MessageResponse(message="Staff member deleted.")
