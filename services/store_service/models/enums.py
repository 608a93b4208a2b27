"""Enum definitions for store service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class SaleStatus(str, enum.Enum):
    """Lifecycle shared by a Purchase and all of its StoreSales."""

    WAITING_PAYMENT = "waiting_payment"
    PAID = "paid"
    PROCESSING = "processing"
    TRANSPORT = "transport"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    REFUNDED = "refunded"


# Forward-only transitions; terminal states have no entry
ALLOWED_TRANSITIONS: dict[SaleStatus, frozenset[SaleStatus]] = {
    SaleStatus.WAITING_PAYMENT: frozenset({SaleStatus.PAID, SaleStatus.CANCELED}),
    SaleStatus.PAID: frozenset({SaleStatus.PROCESSING, SaleStatus.REFUNDED}),
    SaleStatus.PROCESSING: frozenset({SaleStatus.TRANSPORT}),
    SaleStatus.TRANSPORT: frozenset({SaleStatus.DELIVERED}),
}


def can_transition(current: SaleStatus, new: SaleStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


class PaymentMethod(str, enum.Enum):
    PIX = "pix"
    BOLETO = "boleto"
    CREDIT_CARD = "credit_card"
