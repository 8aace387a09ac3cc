"""
HTTP routers.

Every router resolves the tenant from the request (subdomain or fallback
header); protected routers additionally go through ``require_access``.
"""

from .admin_products import router as admin_products_router
from .appointments import router as appointments_router
from .client_auth import router as client_auth_router
from .orders import router as orders_router
from .staff import router as staff_router
from .staff_auth import router as staff_auth_router
from .store import router as store_router

__all__ = [
    "admin_products_router",
    "appointments_router",
    "client_auth_router",
    "orders_router",
    "staff_router",
    "staff_auth_router",
    "store_router",
]
