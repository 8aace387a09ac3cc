"""
Admin product management.

    GET /api/admin/products?status=available|unavailable
    PUT /api/admin/products/{product_id}/activate
    PUT /api/admin/products/{product_id}/deactivate

Admin role only. A product of another tenant is reported as not found.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import (
    ADMIN_ONLY,
    AUDIT_PRODUCT_ACTIVATED,
    AUDIT_PRODUCT_DEACTIVATED,
    AccessContext,
    log_audit,
    require_access,
)
from ..core.db import get_session
from ..core.errors import NotFound
from ..models import MAX_INT
from ..tenancy.queries import list_admin_products, set_product_availability
from .store import ProductOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/products", tags=["admin-products"])


class AdminProductOut(ProductOut):
    is_available: bool


class AdminProductsResponse(BaseModel):
    products: list[AdminProductOut]


class MessageResponse(BaseModel):
    message: str


@router.get("", response_model=AdminProductsResponse)
@router.get("/", response_model=AdminProductsResponse, include_in_schema=False)
async def admin_list_products(
    status: Optional[Literal["available", "unavailable"]] = Query(None),
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    available = None if status is None else status == "available"
    products = await list_admin_products(session, access.tenant_id, available=available)
    return AdminProductsResponse(
        products=[
            AdminProductOut(**ProductOut.from_model(p).model_dump(), is_available=p.is_available)
            for p in products
        ]
    )


async def _set_availability(
    session: AsyncSession,
    access: AccessContext,
    product_id: int,
    available: bool,
) -> None:
    try:
        updated = await set_product_availability(session, access.tenant_id, product_id, available)
        if not updated:
            raise NotFound("Product not found.", details={"productId": product_id})
        await log_audit(
            session,
            actor=access.principal.actor,
            action=AUDIT_PRODUCT_ACTIVATED if available else AUDIT_PRODUCT_DEACTIVATED,
            tenant_id=access.tenant_id,
            target_type="product",
            target_id=str(product_id),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise


@router.put("/{product_id}/activate", response_model=MessageResponse)
async def activate_product(
    product_id: int = Path(..., gt=0, le=MAX_INT),
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    await _set_availability(session, access, product_id, True)
    return MessageResponse(message="Product activated.")


@router.put("/{product_id}/deactivate", response_model=MessageResponse)
async def deactivate_product(
    product_id: int = Path(..., gt=0, le=MAX_INT),
    access: AccessContext = Depends(require_access(*ADMIN_ONLY)),
    session: AsyncSession = Depends(get_session),
):
    await _set_availability(session, access, product_id, False)
    return MessageResponse(message="Product deactivated.")
