"""
Inventory-locking order creation.

An order is a pickup reservation: the requested units are taken out of stock
when the order is placed, at the prices in force at that moment. Everything
happens in one transaction:

    lock product rows (ascending id) -> check stock -> compute total
    -> insert order + items -> decrement stock -> audit -> commit

Any failure after the first locked read rolls the whole transaction back.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AUDIT_ORDER_CREATED, log_audit
from ..core.config import get_settings
from ..core.errors import InsufficientStock, ProductUnavailable, ValidationError
from ..models import Order, OrderItem, OrderStatus
from ..tenancy.queries import decrement_stock, lock_products_for_order


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderReceipt:
    order_id: int
    total: Decimal


def local_today() -> date:
    """Current date in the store's timezone."""
    tz = ZoneInfo(get_settings().store_timezone)
    return datetime.now(tz).date()


def validate_pickup_date(pickup_date: date, today: Optional[date] = None) -> date:
    """
    Pickup must be after today and at most MAX_PICKUP_DAYS ahead.

    Raises:
        ValidationError: pickup date outside (today, today + MAX_PICKUP_DAYS]
    """
    today = today or local_today()
    max_days = get_settings().max_pickup_days
    if pickup_date <= today:
        raise ValidationError(
            "Pickup date must be after today.",
            details={"pickupDate": pickup_date.isoformat(), "today": today.isoformat()},
        )
    if pickup_date > today + timedelta(days=max_days):
        raise ValidationError(
            f"Pickup date must be within {max_days} days.",
            details={"pickupDate": pickup_date.isoformat(), "today": today.isoformat()},
        )
    return pickup_date


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def normalize_items(items: Iterable[OrderLine]) -> list[OrderLine]:
    """
    Validate order lines and merge repeated products.

    Returns lines sorted by product id, one per product, quantities summed.

    Raises:
        ValidationError: no lines, or a non-positive product id / quantity
    """
    merged: dict[int, int] = {}
    for line in items:
        if not _positive_int(line.product_id):
            raise ValidationError(
                "Each item needs a positive product id.",
                details={"productId": line.product_id},
            )
        if not _positive_int(line.quantity):
            raise ValidationError(
                f"Quantity for product ID {line.product_id} must be a positive integer.",
                details={"productId": line.product_id, "quantity": line.quantity},
            )
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity

    if not merged:
        raise ValidationError("Order has no items.")

    return [OrderLine(product_id=pid, quantity=qty) for pid, qty in sorted(merged.items())]


async def create_order(
    session: AsyncSession,
    tenant_id: int,
    client_id: int,
    items: Iterable[OrderLine],
    pickup_date: date,
    *,
    today: Optional[date] = None,
    actor: Optional[str] = None,
) -> OrderReceipt:
    """
    Place a pickup order for ``client_id`` within ``tenant_id``.

    ``tenant_id`` and ``client_id`` must come from the authorized request
    context, never from the request body.

    Raises:
        ValidationError: bad items or pickup date (nothing is locked)
        ProductUnavailable: a product is unknown, unavailable, or another tenant's
        InsufficientStock: a product has fewer units than requested
    """
    lines = normalize_items(items)
    validate_pickup_date(pickup_date, today)
    expiration_days = get_settings().order_expiration_days

    try:
        products = await lock_products_for_order(
            session, tenant_id, [line.product_id for line in lines]
        )

        total = Decimal("0")
        unit_prices: dict[int, Decimal] = {}
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise ProductUnavailable(line.product_id)
            if product.stock < line.quantity:
                raise InsufficientStock(line.product_id, line.quantity, product.stock)
            unit_prices[line.product_id] = Decimal(product.price).quantize(CENT, ROUND_HALF_UP)
            total += unit_prices[line.product_id] * line.quantity
        total = total.quantize(CENT, ROUND_HALF_UP)

        order = Order(
            tenant_id=tenant_id,
            client_id=client_id,
            total_amount=total,
            status=OrderStatus.PENDING_PICKUP,
            pickup_date=pickup_date,
            expiration_date=pickup_date + timedelta(days=expiration_days),
        )
        session.add(order)
        await session.flush()

        for line in lines:
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_prices[line.product_id],
                )
            )
            # Guarded decrement; a concurrent order may have won the row.
            if not await decrement_stock(session, tenant_id, line.product_id, line.quantity):
                raise InsufficientStock(line.product_id, line.quantity)
        await session.flush()

        await log_audit(
            session,
            actor=actor or f"client:{client_id}",
            action=AUDIT_ORDER_CREATED,
            tenant_id=tenant_id,
            target_type="order",
            target_id=str(order.id),
            metadata={
                "total": str(total),
                "items": [[line.product_id, line.quantity] for line in lines],
            },
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Order {order.id} created: tenant_id={tenant_id}, client_id={client_id}, "
        f"items={len(lines)}, total={total}"
    )
    return OrderReceipt(order_id=order.id, total=total)
