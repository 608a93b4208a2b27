"""Store Service models package."""

from services.store_service.models.catalog import Product, StoreProfile
from services.store_service.models.commerce import (
    CartItem,
    CustomerProfile,
    Purchase,
    StoreSale,
    UserAddress,
)
from services.store_service.models.enums import (
    ALLOWED_TRANSITIONS,
    PaymentMethod,
    SaleStatus,
    can_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CartItem",
    "CustomerProfile",
    "PaymentMethod",
    "Product",
    "Purchase",
    "SaleStatus",
    "StoreProfile",
    "StoreSale",
    "UserAddress",
    "can_transition",
]
