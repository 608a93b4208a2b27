"""Routers package."""

from services.payments_service.routers.affiliation import (
    admin_router as affiliation_admin_router,
)
from services.payments_service.routers.affiliation import (
    router as affiliation_router,
)
from services.payments_service.routers.webhooks import router as webhooks_router

__all__ = [
    "affiliation_admin_router",
    "affiliation_router",
    "webhooks_router",
]
