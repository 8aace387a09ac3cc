"""
Appointment booking endpoint tests.

Run with: pytest tests/test_appointments_api.py -v
"""
import asyncio
from datetime import date, time

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import auth_headers
from storefront.core.principal import Role
from storefront.models import Appointment, AuditLog


def booking(client_id: int, **overrides) -> dict:
    body = {
        "clientId": client_id,
        "petName": "Rex",
        "petType": "dog",
        "service": "Checkup",
        "appointmentDate": "2026-03-14",
        "appointmentTime": "10:30",
    }
    body.update(overrides)
    return body


async def count_appointments(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(Appointment))).scalar_one()


@pytest.mark.asyncio
async def test_client_books_for_itself(client: AsyncClient, session_factory, seed):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.alice.id, notes="Limping"),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Appointment booked successfully."

    async with session_factory() as session:
        stored = await session.get(Appointment, body["id"])
        assert stored.tenant_id == seed.acme.id
        assert stored.client_id == seed.alice.id
        assert stored.appointment_date == date(2026, 3, 14)
        assert stored.appointment_time == time(10, 30)
        assert stored.notes == "Limping"
        audit = (await session.execute(select(AuditLog).where(AuditLog.action == "appointment.booked"))).scalar_one()
        assert audit.target_id == str(stored.id)


@pytest.mark.asyncio
async def test_client_cannot_book_for_another_client(client: AsyncClient, session_factory, seed):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.bob.id),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 403
    assert await count_appointments(session_factory) == 0


@pytest.mark.asyncio
async def test_client_credential_without_subject_forbidden(client: AsyncClient, seed):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.alice.id),
        headers=auth_headers("acme", Role.CLIENT),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_receptionist_books_for_a_client(client: AsyncClient, seed):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.bob.id),
        headers=auth_headers("acme", Role.RECEPTIONIST, seed.acme_doctor.id),
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_other_tenants_client_is_404(client: AsyncClient, session_factory, seed):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.carol.id),
        headers=auth_headers("acme", Role.ADMIN, seed.acme_admin.id),
    )
    assert response.status_code == 404
    assert await count_appointments(session_factory) == 0


@pytest.mark.asyncio
async def test_cross_tenant_booking_forbidden(client: AsyncClient, seed):
    """A globex client cannot book in acme, whatever the body says."""
    body = booking(seed.carol.id)
    body["tenantId"] = "acme"
    response = await client.post(
        "/api/appointments",
        json=body,
        headers=auth_headers("globex", Role.CLIENT, seed.carol.id, tenant="acme"),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "TENANT_MISMATCH"


@pytest.mark.asyncio
async def test_taken_slot_is_409(client: AsyncClient, session_factory, seed):
    first = await client.post(
        "/api/appointments",
        json=booking(seed.alice.id),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/appointments",
        json=booking(seed.bob.id, petName="Tom", petType="cat"),
        headers=auth_headers("acme", Role.CLIENT, seed.bob.id),
    )
    assert second.status_code == 409
    assert second.json()["code"] == "SLOT_TAKEN"
    assert await count_appointments(session_factory) == 1


@pytest.mark.asyncio
async def test_same_slot_free_in_another_tenant(client: AsyncClient, seed):
    await client.post(
        "/api/appointments",
        json=booking(seed.alice.id),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    response = await client.post(
        "/api/appointments",
        json=booking(seed.carol.id),
        headers=auth_headers("globex", Role.CLIENT, seed.carol.id),
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_concurrent_bookings_one_wins(client: AsyncClient, session_factory, seed):
    responses = await asyncio.gather(
        client.post(
            "/api/appointments",
            json=booking(seed.alice.id),
            headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
        ),
        client.post(
            "/api/appointments",
            json=booking(seed.bob.id),
            headers=auth_headers("acme", Role.CLIENT, seed.bob.id),
        ),
    )
    assert sorted(r.status_code for r in responses) == [201, 409]
    assert await count_appointments(session_factory) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"petName": ""},
        {"appointmentTime": "25:00"},
        {"appointmentDate": "not-a-date"},
        {"clientId": 2**70},
    ],
)
async def test_malformed_booking_is_400(client: AsyncClient, seed, overrides):
    response = await client.post(
        "/api/appointments",
        json=booking(seed.alice.id, **overrides),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_unauthenticated_booking_is_401(client: AsyncClient, seed):
    response = await client.post(
        "/api/appointments", json=booking(seed.alice.id), headers={"X-Tenant-ID": "acme"}
    )
    assert response.status_code == 401
