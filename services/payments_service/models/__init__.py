"""Payments Service models package."""

from services.payments_service.models.core import (
    AccountGateway,
    AccountGatewayData,
    GatewayWebhookEvent,
)
from services.payments_service.models.enums import (
    AffiliationStatus,
    PaymentGatewayType,
)

__all__ = [
    "AccountGateway",
    "AccountGatewayData",
    "AffiliationStatus",
    "GatewayWebhookEvent",
    "PaymentGatewayType",
]
