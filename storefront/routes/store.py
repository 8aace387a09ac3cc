"""
Public storefront catalogue. No authentication; tenant from host or header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..models import MAX_INT, Product
from ..tenancy.context import TenantContext, get_tenant_context
from ..tenancy.queries import list_categories, list_store_products

router = APIRouter(prefix="/api/store", tags=["store"])


class CategoryOut(BaseModel):
    id: int
    name: str


class CategoriesResponse(BaseModel):
    categories: list[CategoryOut]


class ProductOut(BaseModel):
    id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    image: Optional[str] = None

    @classmethod
    def from_model(cls, product: Product) -> "ProductOut":
        return cls(
            id=product.id,
            category_id=product.category_id,
            name=product.name,
            description=product.description,
            price=float(product.price),
            stock=product.stock,
            image=product.image_url,
        )


class ProductsResponse(BaseModel):
    products: list[ProductOut]


@router.get("/categories", response_model=CategoriesResponse)
async def store_categories(
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    categories = await list_categories(session, tenant.tenant_id)
    return CategoriesResponse(
        categories=[CategoryOut(id=c.id, name=c.name) for c in categories]
    )


@router.get("/products", response_model=ProductsResponse)
async def store_products(
    category: Optional[int] = Query(None, gt=0, le=MAX_INT, description="Filter by category id"),
    search: Optional[str] = Query(None, description="Match against name or description"),
    tenant: TenantContext = Depends(get_tenant_context),
    session: AsyncSession = Depends(get_session),
):
    """Products a customer can order right now (available and in stock)."""
    products = await list_store_products(session, tenant.tenant_id, category, search)
    return ProductsResponse(products=[ProductOut.from_model(p) for p in products])
