"""Store service routers package."""

from services.store_service.routers.addresses import router as addresses_router
from services.store_service.routers.admin_purchases import (
    router as admin_purchases_router,
)
from services.store_service.routers.cart import router as cart_router
from services.store_service.routers.purchases import router as purchases_router
from services.store_service.routers.shipping import router as shipping_router

__all__ = [
    "addresses_router",
    "admin_purchases_router",
    "cart_router",
    "purchases_router",
    "shipping_router",
]
