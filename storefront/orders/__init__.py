from .engine import (
    OrderLine,
    OrderReceipt,
    create_order,
    local_today,
    normalize_items,
    validate_pickup_date,
)

__all__ = [
    "OrderLine",
    "OrderReceipt",
    "create_order",
    "local_today",
    "normalize_items",
    "validate_pickup_date",
]
