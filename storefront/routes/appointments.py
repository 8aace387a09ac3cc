"""
Appointment booking.

    POST /api/appointments -> Book a tenant time slot for a client's pet

Clients may only book for themselves; staff may book for any client of the
tenant. Each tenant date/time slot holds at most one appointment.
"""

import logging
from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    AUDIT_APPOINTMENT_BOOKED,
    CLIENT_ONLY,
    STAFF_ROLES,
    AccessContext,
    log_audit,
    require_access,
    require_subject,
)
from ..core.db import get_session
from ..core.errors import Conflict, NotFound
from ..core.principal import Role
from ..core.responses import ErrorCodes
from ..models import MAX_INT, Appointment, Client
from ..tenancy.queries import appointment_slot_taken, require_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


class AppointmentCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: int = Field(..., alias="clientId", gt=0, le=MAX_INT)
    pet_name: str = Field(..., alias="petName", min_length=1, max_length=255)
    pet_type: str = Field(..., alias="petType", min_length=1, max_length=64)
    service: str = Field(..., min_length=1, max_length=255)
    appointment_date: date = Field(..., alias="appointmentDate", description="YYYY-MM-DD")
    appointment_time: time = Field(..., alias="appointmentTime", description="HH:MM")
    notes: Optional[str] = None


class AppointmentCreatedResponse(BaseModel):
    message: str
    id: int


def _slot_taken(appointment_date: date, appointment_time: time) -> Conflict:
    return Conflict(
        "This time slot is already booked.",
        code=ErrorCodes.SLOT_TAKEN,
        details={
            "appointmentDate": appointment_date.isoformat(),
            "appointmentTime": appointment_time.isoformat(timespec="minutes"),
        },
    )


@router.post("", response_model=AppointmentCreatedResponse, status_code=status.HTTP_201_CREATED)
@router.post(
    "/",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def book_appointment(
    payload: AppointmentCreateRequest,
    access: AccessContext = Depends(require_access(*(CLIENT_ONLY | STAFF_ROLES))),
    session: AsyncSession = Depends(get_session),
):
    """
    Book an appointment.

    Example: POST /api/appointments
        {"clientId": 7, "petName": "Rex", "petType": "dog", "service": "Checkup",
         "appointmentDate": "2026-03-14", "appointmentTime": "10:30"}
    """
    if access.principal.role is Role.CLIENT:
        require_subject(access.principal, payload.client_id)

    client = await require_owned(session, Client, payload.client_id, access.tenant_id)
    if client is None:
        raise NotFound("Client not found for this tenant.", details={"clientId": payload.client_id})

    if await appointment_slot_taken(
        session, access.tenant_id, payload.appointment_date, payload.appointment_time
    ):
        raise _slot_taken(payload.appointment_date, payload.appointment_time)

    appointment = Appointment(
        tenant_id=access.tenant_id,
        client_id=client.id,
        pet_name=payload.pet_name.strip(),
        pet_type=payload.pet_type.strip(),
        service=payload.service.strip(),
        appointment_date=payload.appointment_date,
        appointment_time=payload.appointment_time,
        notes=payload.notes,
    )
    session.add(appointment)
    try:
        await session.flush()
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_APPOINTMENT_BOOKED,
            tenant_id=access.tenant_id,
            target_type="appointment",
            target_id=str(appointment.id),
        )
        await session.commit()
    except IntegrityError:
        # Another booking took the slot between the check and the insert.
        await session.rollback()
        raise _slot_taken(payload.appointment_date, payload.appointment_time)

    logger.info(
        f"Booked appointment {appointment.id} for client {client.id} "
        f"on {payload.appointment_date} {payload.appointment_time} (tenant_id={access.tenant_id})"
    )
    return AppointmentCreatedResponse(message="Appointment booked successfully.", id=appointment.id)
