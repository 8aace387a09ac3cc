"""
Order routes.

    POST /api/orders            -> Place a pickup order (client only)
    GET  /api/orders/my-orders  -> The calling client's orders, newest first

The tenant and the ordering client always come from the authorized request
context. The body carries only items and the pickup date.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CLIENT_ONLY, AccessContext, require_access, require_subject
from ..core.db import get_session
from ..core.errors import Forbidden
from ..models import MAX_INT, Client
from ..orders import OrderLine, create_order
from ..tenancy.queries import list_orders_for_client, require_owned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ────────────────────────────────────────────────────────────────
# Request / Response Models
# ────────────────────────────────────────────────────────────────

class OrderItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId", gt=0, le=MAX_INT)
    quantity: int = Field(..., gt=0, le=MAX_INT)


class OrderCreateRequest(BaseModel):
    """Pickup reservation request."""
    model_config = ConfigDict(populate_by_name=True)

    items: list[OrderItemIn]
    pickup_date: date = Field(..., alias="pickupDate", description="Date in YYYY-MM-DD format")


class OrderCreatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    order_id: int = Field(..., alias="orderId")
    total: float


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    unit_price: float
    product_name: Optional[str] = None
    product_image: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    total_amount: float
    status: str
    pickup_date: date
    created_at: datetime
    items: list[OrderItemOut]


class MyOrdersResponse(BaseModel):
    orders: list[OrderOut]


# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────

async def _require_client_account(session: AsyncSession, access: AccessContext) -> int:
    client_id = require_subject(access.principal)
    client = await require_owned(session, Client, client_id, access.tenant_id)
    if client is None:
        logger.warning(
            f"Authorization failed: {access.principal.actor} has no client account "
            f"in tenant_id={access.tenant_id}"
        )
        raise Forbidden("Access denied. Client account not found for this tenant.")
    return client.id


# ────────────────────────────────────────────────────────────────
# Endpoints
# ────────────────────────────────────────────────────────────────

@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
@router.post(
    "/",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def place_order(
    payload: OrderCreateRequest,
    access: AccessContext = Depends(require_access(*CLIENT_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    """
    Reserve products for pickup.

    Stock is taken at once; the order expires two days after the pickup date.

    Example: POST /api/orders
        {"items": [{"productId": 1, "quantity": 2}], "pickupDate": "2026-03-14"}
    """
    client_id = await _require_client_account(session, access)
    receipt = await create_order(
        session,
        access.tenant_id,
        client_id,
        [OrderLine(product_id=item.product_id, quantity=item.quantity) for item in payload.items],
        payload.pickup_date,
        actor=access.principal.actor,
    )
    return OrderCreatedResponse(
        message="Order created successfully.",
        order_id=receipt.order_id,
        total=float(receipt.total),
    )


@router.get("/my-orders", response_model=MyOrdersResponse)
async def my_orders(
    access: AccessContext = Depends(require_access(*CLIENT_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    """List the calling client's orders with their line items."""
    client_id = require_subject(access.principal)
    orders = await list_orders_for_client(session, access.tenant_id, client_id)
    return MyOrdersResponse(
        orders=[
            OrderOut(
                id=order.id,
                total_amount=float(order.total_amount),
                status=order.status.value,
                pickup_date=order.pickup_date,
                created_at=order.created_at,
                items=[
                    OrderItemOut(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=float(item.unit_price),
                        product_name=item.product.name if item.product else None,
                        product_image=item.product.image_url if item.product else None,
                    )
                    for item in order.items
                ],
            )
            for order in orders
        ]
    )
