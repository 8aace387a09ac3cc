"""
Tenant-scoped query helpers.

These functions provide safe, tenant-isolated database queries.
ALL queries for tenant data MUST use these helpers or include explicit
tenant_id filtering. Every helper takes the numeric tenant id resolved by the
access guard, never a value taken from a request body.

Usage:
    from storefront.tenancy.queries import list_store_products, scoped_select

    products = await list_store_products(session, access.tenant_id)

    # Or using composable helpers:
    stmt = scoped_select(Product, tenant_id).where(Product.is_available.is_(True))
"""

from datetime import date, time
from typing import Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, selectinload

from ..models import Appointment, Category, Client, Order, OrderItem, Product, Staff, Tenant

# Type variable for generic model functions
T = TypeVar("T", bound=DeclarativeBase)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def scoped_select(model: Type[T], tenant_id: int) -> Select:
    """
    Create a SELECT statement pre-filtered by tenant_id.

    Usage:
        stmt = scoped_select(Product, tenant_id).where(Product.stock > 0)
        result = await session.execute(stmt)
    """
    return select(model).where(model.tenant_id == tenant_id)


def tenant_filter(model: Type[T], tenant_id: int):
    """
    Return a SQLAlchemy filter clause for tenant_id.

    Usage:
        stmt = select(Product).where(tenant_filter(Product, tenant_id), Product.id == product_id)
    """
    return model.tenant_id == tenant_id


async def require_owned(
    session: AsyncSession,
    model: Type[T],
    entity_id: int,
    tenant_id: int,
) -> Optional[T]:
    """
    Fetch an entity by ID, validating tenant ownership.
    Returns None if not found or owned by another tenant.
    """
    result = await session.execute(
        select(model).where(
            model.id == entity_id,
            model.tenant_id == tenant_id,
        )
    )
    return result.scalar_one_or_none()


# ────────────────────────────────────────────────────────────────
# Tenant Queries
# ────────────────────────────────────────────────────────────────

async def get_tenant_by_slug(session: AsyncSession, slug: str) -> Optional[Tenant]:
    """Get a tenant by its public slug."""
    result = await session.execute(select(Tenant).where(Tenant.slug == slug))
    return result.scalar_one_or_none()


# ────────────────────────────────────────────────────────────────
# Catalogue Queries (Tenant-Scoped)
# ────────────────────────────────────────────────────────────────

async def list_categories(session: AsyncSession, tenant_id: int) -> Sequence[Category]:
    result = await session.execute(
        scoped_select(Category, tenant_id).order_by(Category.sort_order, Category.name)
    )
    return result.scalars().all()


def _apply_catalogue_filters(stmt: Select, category_id: Optional[int], search: Optional[str]) -> Select:
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    return stmt


async def list_store_products(
    session: AsyncSession,
    tenant_id: int,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Sequence[Product]:
    """List products a customer can buy right now: available and in stock."""
    stmt = scoped_select(Product, tenant_id).where(
        Product.is_available.is_(True),
        Product.stock > 0,
    )
    stmt = _apply_catalogue_filters(stmt, category_id, search)
    result = await session.execute(stmt.order_by(Product.name))
    return result.scalars().all()


async def list_admin_products(
    session: AsyncSession,
    tenant_id: int,
    available: Optional[bool] = None,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Sequence[Product]:
    """List every product of a tenant, optionally filtered by availability."""
    stmt = scoped_select(Product, tenant_id)
    if available is not None:
        stmt = stmt.where(Product.is_available.is_(available))
    stmt = _apply_catalogue_filters(stmt, category_id, search)
    result = await session.execute(stmt.order_by(Product.name))
    return result.scalars().all()


async def set_product_availability(
    session: AsyncSession,
    tenant_id: int,
    product_id: int,
    available: bool,
) -> bool:
    """Flip a product's availability. Returns False when the tenant owns no such product."""
    result = await session.execute(
        update(Product)
        .where(Product.id == product_id, Product.tenant_id == tenant_id)
        .values(is_available=available)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def lock_products_for_order(
    session: AsyncSession,
    tenant_id: int,
    product_ids: Sequence[int],
) -> dict[int, Product]:
    """
    Lock the orderable rows among ``product_ids`` with SELECT ... FOR UPDATE.

    Rows are selected in ascending id order so concurrent orders touching
    the same products always acquire locks in the same sequence. Products
    that are unavailable or owned by another tenant are simply absent from
    the result.
    """
    if not product_ids:
        return {}
    result = await session.execute(
        select(Product)
        .where(
            Product.tenant_id == tenant_id,
            Product.id.in_(sorted(product_ids)),
            Product.is_available.is_(True),
        )
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {product.id: product for product in result.scalars().all()}


async def decrement_stock(
    session: AsyncSession,
    tenant_id: int,
    product_id: int,
    quantity: int,
) -> bool:
    """
    Take ``quantity`` units from a product's stock.

    The WHERE clause refuses to drive stock below zero; returns False when
    no row was updated.
    """
    result = await session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.tenant_id == tenant_id,
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ────────────────────────────────────────────────────────────────
# People Queries (Tenant-Scoped)
# ────────────────────────────────────────────────────────────────

async def get_client_by_email(
    session: AsyncSession,
    tenant_id: int,
    email: str,
) -> Optional[Client]:
    result = await session.execute(
        scoped_select(Client, tenant_id).where(Client.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def email_in_use(session: AsyncSession, tenant_id: int, email: str) -> bool:
    """True if a client or staff member of this tenant already uses the email."""
    normalized = email.strip().lower()
    client = await session.execute(
        select(Client.id).where(Client.tenant_id == tenant_id, Client.email == normalized)
    )
    if client.first() is not None:
        return True
    staff = await session.execute(
        select(Staff.id).where(Staff.tenant_id == tenant_id, Staff.email == normalized)
    )
    return staff.first() is not None


async def list_staff(session: AsyncSession, tenant_id: int) -> Sequence[Staff]:
    result = await session.execute(scoped_select(Staff, tenant_id).order_by(Staff.id))
    return result.scalars().all()


async def get_staff_by_email(
    session: AsyncSession,
    tenant_id: int,
    email: str,
) -> Optional[Staff]:
    result = await session.execute(
        scoped_select(Staff, tenant_id).where(Staff.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def delete_staff(session: AsyncSession, tenant_id: int, staff_id: int) -> bool:
    """Delete a staff member. Returns False when the tenant has no such staff member."""
    result = await session.execute(
        delete(Staff)
        .where(Staff.id == staff_id, Staff.tenant_id == tenant_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


# ────────────────────────────────────────────────────────────────
# Order Queries (Tenant-Scoped)
# ────────────────────────────────────────────────────────────────

async def get_order_by_id(
    session: AsyncSession,
    tenant_id: int,
    order_id: int,
) -> Optional[Order]:
    """Get an order with its line items, scoped to tenant."""
    result = await session.execute(
        scoped_select(Order, tenant_id)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
    )
    return result.scalar_one_or_none()


async def list_orders_for_client(
    session: AsyncSession,
    tenant_id: int,
    client_id: int,
) -> Sequence[Order]:
    """List a client's orders, newest first, with items and their products loaded."""
    result = await session.execute(
        scoped_select(Order, tenant_id)
        .where(Order.client_id == client_id)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return result.scalars().all()


# ────────────────────────────────────────────────────────────────
# Appointment Queries (Tenant-Scoped)
# ────────────────────────────────────────────────────────────────

async def appointment_slot_taken(
    session: AsyncSession,
    tenant_id: int,
    appointment_date: date,
    appointment_time: time,
) -> bool:
    """True if the tenant already has a booking at this date and time."""
    result = await session.execute(
        select(Appointment.id).where(
            Appointment.tenant_id == tenant_id,
            Appointment.appointment_date == appointment_date,
            Appointment.appointment_time == appointment_time,
        )
    )
    return result.first() is not None
