"""Admin purchase management: lock-step status transitions."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.errors import CheckoutError
from services.store_service.models import SaleStatus
from services.store_service.routers._helpers import (
    get_checkout_orchestrator,
    to_http_error,
)
from services.store_service.routers.purchases import purchase_detail
from services.store_service.schemas import PurchaseDetailResponse, PurchaseStatusUpdate
from services.store_service.services.checkout import (
    CheckoutOrchestrator,
    transition_status,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store-admin"])
logger = get_logger(__name__)


@router.patch(
    "/purchases/{purchase_id}/status", response_model=PurchaseDetailResponse
)
async def update_purchase_status(
    purchase_id: uuid.UUID,
    status_in: PurchaseStatusUpdate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator),
):
    """
    Move a purchase and all its store sales to a new status.

    Canceling also closes the purchase's payment order at the processor.
    """
    try:
        if status_in.status == SaleStatus.CANCELED:
            purchase = await orchestrator.cancel_purchase(db, purchase_id)
        else:
            purchase = await transition_status(db, purchase_id, status_in.status)
    except CheckoutError as e:
        raise to_http_error(e)

    logger.info(
        f"Purchase {purchase_id} set to {status_in.status.value} by admin",
        extra={"extra_fields": {"admin_id": admin.user_id}},
    )
    return purchase_detail(purchase, purchase.sales)
