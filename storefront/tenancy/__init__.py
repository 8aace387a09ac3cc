"""
Multi-tenancy package.

This package provides tenant isolation primitives for the storefront.

Modules:
    context: TenantContext resolution (subdomain or fallback header) and the
             cached TenantDirectory
    queries: Tenant-scoped query helpers
"""

from .context import (
    TenantContext,
    TenantDirectory,
    TenantResolutionSource,
    clear_tenant_cache,
    extract_slug_from_host,
    get_tenant_context,
    resolve_tenant_slug,
    tenant_directory,
)

from .queries import (
    # Composable helpers
    scoped_select,
    tenant_filter,
    require_owned,
    # Catalogue queries
    list_categories,
    list_store_products,
    list_admin_products,
    set_product_availability,
    lock_products_for_order,
    decrement_stock,
    # People queries
    get_client_by_email,
    email_in_use,
    list_staff,
    get_staff_by_email,
    delete_staff,
    # Order queries
    get_order_by_id,
    list_orders_for_client,
    # Appointment queries
    appointment_slot_taken,
)

__all__ = [
    # Context
    "TenantContext",
    "TenantDirectory",
    "TenantResolutionSource",
    "clear_tenant_cache",
    "extract_slug_from_host",
    "get_tenant_context",
    "resolve_tenant_slug",
    "tenant_directory",
    # Query helpers
    "scoped_select",
    "tenant_filter",
    "require_owned",
    "list_categories",
    "list_store_products",
    "list_admin_products",
    "set_product_availability",
    "lock_products_for_order",
    "decrement_stock",
    "get_client_by_email",
    "email_in_use",
    "list_staff",
    "get_staff_by_email",
    "delete_staff",
    "get_order_by_id",
    "list_orders_for_client",
    "appointment_slot_taken",
]
