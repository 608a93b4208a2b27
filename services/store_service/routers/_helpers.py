"""Shared dependencies and error translation for store routers."""

import uuid

from fastapi import HTTPException, status
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.payments_service.pagarme_client import PagarmeClient
from services.store_service.errors import (
    CheckoutError,
    IncompleteShippingSelection,
    ShippingUnavailableError,
    StoreNotAffiliatedError,
)
from services.store_service.melhor_envio_client import get_melhor_envio_client
from services.store_service.models import CustomerProfile, UserAddress
from services.store_service.services.checkout import CheckoutOrchestrator
from services.store_service.services.shipping import ShippingQuoteAggregator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

settings = get_settings()
logger = get_logger(__name__)

_STATUS_BY_KIND = {
    "validation": 422,
    "conflict": status.HTTP_409_CONFLICT,
    "upstream": status.HTTP_502_BAD_GATEWAY,
    "state": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "payment": status.HTTP_402_PAYMENT_REQUIRED,
}


def to_http_error(error: CheckoutError) -> HTTPException:
    """Translate a domain error into the HTTP response the buyer sees."""
    detail: dict = {"message": error.message, "kind": error.kind}
    if isinstance(error, IncompleteShippingSelection):
        detail["missing_store_ids"] = [str(s) for s in error.missing_store_ids]
    elif isinstance(error, (ShippingUnavailableError, StoreNotAffiliatedError)):
        detail["store_ids"] = [str(s) for s in error.store_ids]
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(error.kind, status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )


def get_shipping_aggregator() -> ShippingQuoteAggregator:
    return ShippingQuoteAggregator(get_melhor_envio_client())


def get_checkout_orchestrator() -> CheckoutOrchestrator:
    # Without an API key PIX purchases are created uncharged
    payments = PagarmeClient() if settings.PAGARME_API_KEY else None
    return CheckoutOrchestrator(payments=payments)


async def get_user_address(
    db: AsyncSession, user_id: str, address_id: uuid.UUID
) -> UserAddress:
    result = await db.execute(
        select(UserAddress).where(
            UserAddress.id == address_id, UserAddress.user_id == user_id
        )
    )
    address = result.scalar_one_or_none()
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address


async def get_customer_profile(db: AsyncSession, user_id: str):
    result = await db.execute(
        select(CustomerProfile).where(CustomerProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()
