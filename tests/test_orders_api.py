"""
Order endpoint tests.

Run with: pytest tests/test_orders_api.py -v
"""
import asyncio
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import auth_headers, get_stock
from storefront.core.principal import Role
from storefront.models import Order
from storefront.orders import local_today


def pickup_in(days: int) -> str:
    return (local_today() + timedelta(days=days)).isoformat()


def order_body(*items, days: int = 2) -> dict:
    return {
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
        "pickupDate": pickup_in(days),
    }


# ============================================================================
# POST /api/orders
# ============================================================================

@pytest.mark.asyncio
async def test_place_order(client: AsyncClient, session_factory, seed):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 2)),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Order created successfully."
    assert body["total"] == 20.0
    assert isinstance(body["orderId"], int)
    assert await get_stock(session_factory, seed.p1.id) == 1


@pytest.mark.asyncio
async def test_place_order_trailing_slash(client: AsyncClient, seed):
    response = await client.post(
        "/api/orders/",
        json=order_body((seed.dog_food.id, 1)),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 201
    assert response.json()["total"] == 25.5


@pytest.mark.asyncio
async def test_client_id_comes_from_credential(client: AsyncClient, session_factory, seed):
    """Body fields naming another client or tenant are ignored."""
    body = order_body((seed.p1.id, 1))
    body["clientId"] = seed.bob.id
    body["tenantId"] = "globex"
    response = await client.post(
        "/api/orders", json=body, headers=auth_headers("acme", Role.CLIENT, seed.alice.id)
    )
    assert response.status_code == 201

    async with session_factory() as session:
        order = await session.get(Order, response.json()["orderId"])
        assert order.client_id == seed.alice.id
        assert order.tenant_id == seed.acme.id


@pytest.mark.asyncio
async def test_insufficient_stock_is_409(client: AsyncClient, session_factory, seed):
    headers = auth_headers("acme", Role.CLIENT, seed.alice.id)
    first = await client.post("/api/orders", json=order_body((seed.p1.id, 2)), headers=headers)
    assert first.status_code == 201

    second = await client.post("/api/orders", json=order_body((seed.p1.id, 2)), headers=headers)
    assert second.status_code == 409
    body = second.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["message"] == f"Insufficient stock for product ID {seed.p1.id}. Available: 1"
    assert await get_stock(session_factory, seed.p1.id) == 1


@pytest.mark.asyncio
async def test_concurrent_requests_one_wins(client: AsyncClient, session_factory, seed):
    alice = auth_headers("acme", Role.CLIENT, seed.alice.id)
    bob = auth_headers("acme", Role.CLIENT, seed.bob.id)

    responses = await asyncio.gather(
        client.post("/api/orders", json=order_body((seed.p1.id, 2)), headers=alice),
        client.post("/api/orders", json=order_body((seed.p1.id, 2)), headers=bob),
    )

    assert sorted(r.status_code for r in responses) == [201, 409]
    assert await get_stock(session_factory, seed.p1.id) == 1


@pytest.mark.asyncio
async def test_unavailable_product_is_400(client: AsyncClient, seed):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.shampoo.id, 1)),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "PRODUCT_UNAVAILABLE"


@pytest.mark.asyncio
async def test_other_tenants_product_is_400(client: AsyncClient, session_factory, seed):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.cat_food.id, 1)),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == 400
    assert await get_stock(session_factory, seed.cat_food.id) == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("days,status", [(0, 400), (1, 201), (10, 201), (11, 400)])
async def test_pickup_window(client: AsyncClient, seed, days, status):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.dog_food.id, 1), days=days),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    assert response.status_code == status


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"items": [], "pickupDate": "2099-01-01"},
        {"items": [{"productId": 1, "quantity": 1}]},
        {"pickupDate": "2099-01-01"},
        {"items": [{"productId": 1, "quantity": 1}], "pickupDate": "not-a-date"},
        {"items": [{"productId": 1, "quantity": 0}], "pickupDate": "2099-01-01"},
        {"items": [{"productId": 1, "quantity": 1.5}], "pickupDate": "2099-01-01"},
        {"items": [{"productId": 2**70, "quantity": 1}], "pickupDate": "2099-01-01"},
        {"items": [{"productId": 2**31, "quantity": 1}], "pickupDate": "2099-01-01"},
        {"items": [{"productId": 1, "quantity": 2**40}], "pickupDate": "2099-01-01"},
    ],
)
async def test_malformed_body_is_400(client: AsyncClient, seed, body):
    response = await client.post(
        "/api/orders", json=body, headers=auth_headers("acme", Role.CLIENT, seed.alice.id)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_cross_tenant_order_forbidden(client: AsyncClient, session_factory, seed):
    """A globex client credential cannot place an order in acme."""
    response = await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 1)),
        headers=auth_headers("globex", Role.CLIENT, seed.carol.id, tenant="acme"),
    )
    assert response.status_code == 403
    assert await get_stock(session_factory, seed.p1.id) == 3


@pytest.mark.asyncio
async def test_client_credential_without_subject_forbidden(client: AsyncClient, seed):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 1)),
        headers=auth_headers("acme", Role.CLIENT),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_subject_from_other_tenant_forbidden(client: AsyncClient, seed):
    """An acme-signed credential naming a globex client id is refused."""
    response = await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 1)),
        headers=auth_headers("acme", Role.CLIENT, seed.carol.id),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_staff_cannot_order(client: AsyncClient, seed):
    response = await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 1)),
        headers=auth_headers("acme", Role.ADMIN, seed.acme_admin.id),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unauthenticated_order_is_401(client: AsyncClient, seed):
    response = await client.post(
        "/api/orders", json=order_body((seed.p1.id, 1)), headers={"X-Tenant-ID": "acme"}
    )
    assert response.status_code == 401


# ============================================================================
# GET /api/orders/my-orders
# ============================================================================

@pytest.mark.asyncio
async def test_my_orders(client: AsyncClient, seed):
    alice = auth_headers("acme", Role.CLIENT, seed.alice.id)
    bob = auth_headers("acme", Role.CLIENT, seed.bob.id)

    first = await client.post("/api/orders", json=order_body((seed.p1.id, 1)), headers=alice)
    second = await client.post(
        "/api/orders", json=order_body((seed.dog_food.id, 2), (seed.p1.id, 1), days=3), headers=alice
    )
    await client.post("/api/orders", json=order_body((seed.dog_food.id, 1)), headers=bob)

    response = await client.get("/api/orders/my-orders", headers=alice)
    assert response.status_code == 200
    orders = response.json()["orders"]

    # Newest first, only Alice's
    assert [o["id"] for o in orders] == [second.json()["orderId"], first.json()["orderId"]]
    latest = orders[0]
    assert latest["total_amount"] == 61.0
    assert latest["status"] == "pending_pickup"
    assert latest["pickup_date"] == pickup_in(3)
    assert "created_at" in latest
    assert {(i["product_id"], i["quantity"], i["unit_price"]) for i in latest["items"]} == {
        (seed.dog_food.id, 2, 25.5),
        (seed.p1.id, 1, 10.0),
    }
    p1_item = next(i for i in latest["items"] if i["product_id"] == seed.p1.id)
    assert p1_item["product_name"] == "Rabies vaccine"
    assert p1_item["product_image"] == "/img/rabies.png"


@pytest.mark.asyncio
async def test_my_orders_empty(client: AsyncClient, seed):
    response = await client.get(
        "/api/orders/my-orders", headers=auth_headers("acme", Role.CLIENT, seed.bob.id)
    )
    assert response.status_code == 200
    assert response.json() == {"orders": []}


@pytest.mark.asyncio
async def test_my_orders_not_visible_across_tenants(client: AsyncClient, session_factory, seed):
    await client.post(
        "/api/orders",
        json=order_body((seed.p1.id, 1)),
        headers=auth_headers("acme", Role.CLIENT, seed.alice.id),
    )
    # Same numeric id, signed by globex, aimed at globex
    response = await client.get(
        "/api/orders/my-orders", headers=auth_headers("globex", Role.CLIENT, seed.alice.id)
    )
    assert response.status_code == 200
    assert response.json() == {"orders": []}

    async with session_factory() as session:
        assert len((await session.execute(select(Order))).scalars().all()) == 1
