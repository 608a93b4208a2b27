"""Payments Service schemas package."""

from services.payments_service.schemas.main import (
    AccountGatewayResponse,
    AffiliationCreate,
    BankAccount,
    CorporationRegistration,
    IndividualRegistration,
    PhoneNumber,
    RegisterInformation,
    RegistrationAddress,
    SellerGateResponse,
    SimulateEventRequest,
    SimulateEventResponse,
    WebhookAck,
    WebhookEventResponse,
)

__all__ = [
    "AccountGatewayResponse",
    "AffiliationCreate",
    "BankAccount",
    "CorporationRegistration",
    "IndividualRegistration",
    "PhoneNumber",
    "RegisterInformation",
    "RegistrationAddress",
    "SellerGateResponse",
    "SimulateEventRequest",
    "SimulateEventResponse",
    "WebhookAck",
    "WebhookEventResponse",
]
