"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import (
    addresses_router,
    admin_purchases_router,
    cart_router,
    purchases_router,
    shipping_router,
)


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="Mercafly Store Service",
        version="0.1.0",
        description="Marketplace service for Mercafly - cart, shipping quotes, checkout, purchases.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Buyer and seller routes
    app.include_router(cart_router, prefix="/store")
    app.include_router(addresses_router, prefix="/store")
    app.include_router(shipping_router, prefix="/store")
    app.include_router(purchases_router, prefix="/store")

    # Admin routes
    app.include_router(admin_purchases_router, prefix="/admin/store")

    return app


app = create_app()
