"""Pagar.me webhook endpoint."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.schemas import WebhookAck
from services.payments_service.services.webhook_processor import (
    HandleResult,
    WebhookProcessor,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
settings = get_settings()
logger = get_logger(__name__)

SIGNATURE_HEADER = "x-pagarme-signature"


def get_webhook_processor(
    db: AsyncSession = Depends(get_async_db),
) -> WebhookProcessor:
    return WebhookProcessor(db)


@router.post("/webhooks/pagarme", response_model=WebhookAck)
async def pagarme_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Pagar.me webhook endpoint (no auth; verified by x-pagarme-signature).
    """
    secret = settings.PAGARME_WEBHOOK_SECRET
    if not secret:
        logger.error("PAGARME_WEBHOOK_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    raw = await request.body()
    result = await processor.handle(raw, request.headers.get(SIGNATURE_HEADER), secret)

    if result == HandleResult.UNAUTHORIZED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )
    if result == HandleResult.STORAGE_ERROR:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    return WebhookAck()
