"""Pydantic schemas for store service."""

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.store_service.models import PaymentMethod, SaleStatus

# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=99)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=99)


class CartLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    store_id: uuid.UUID
    store_name: str
    unit_price: int
    quantity: int
    subtotal: int
    is_available: bool
    stock: int


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lines: list[CartLineResponse] = []
    total_items: int = 0
    total_value: int = 0
    total_value_formatted: str = "R$ 0,00"


# ============================================================================
# ADDRESS SCHEMAS
# ============================================================================


class AddressCreate(BaseModel):
    recipient_name: str = Field(..., min_length=2, max_length=200)
    street: str = Field(..., min_length=2, max_length=255)
    number: str = Field(..., min_length=1, max_length=20)
    neighborhood: str = Field(..., min_length=2, max_length=100)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=2)
    postal_code: str
    complement: Optional[str] = Field(None, max_length=255)

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.upper()

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v: str) -> str:
        digits = re.sub(r"\D", "", v)
        if len(digits) != 8:
            raise ValueError("CEP must have 8 digits")
        return digits


class AddressResponse(AddressCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime


# ============================================================================
# SHIPPING SCHEMAS
# ============================================================================


class ShippingQuoteRequest(BaseModel):
    address_id: uuid.UUID


class ShippingOptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company: str
    name: str
    price: int
    delivery_min: int
    delivery_max: int


class StoreShippingGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    store_id: uuid.UUID
    store_name: str
    subtotal: int
    options: list[ShippingOptionResponse] = []
    has_error: bool = False
    error_message: Optional[str] = None


# ============================================================================
# PURCHASE SCHEMAS
# ============================================================================


class CheckoutRequest(BaseModel):
    address_id: uuid.UUID
    payment_method: PaymentMethod
    installments: Optional[int] = None
    # store_id -> shipping option id from the latest quote
    shipping_selections: dict[uuid.UUID, str] = Field(default_factory=dict)
    # Pagar.me saved card (card_...), required for credit_card
    card_id: Optional[str] = None


class PurchaseStatusUpdate(BaseModel):
    status: SaleStatus


class PixChargeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    status: str
    qr_code: Optional[str] = None
    qr_code_url: Optional[str] = None
    expires_at: Optional[datetime] = None


class CardChargeRequest(BaseModel):
    card_id: str = Field(..., min_length=1)


class CardChargeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    status: str
    amount: int
    installments: int
    approved: bool
    acquirer_message: Optional[str] = None


class StoreSaleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    purchase_id: uuid.UUID
    store_id: uuid.UUID
    buyer_id: str
    product_id: uuid.UUID
    quantity: int
    amount: int
    payment_method: PaymentMethod
    installments: Optional[int] = None
    status: SaleStatus
    created_at: datetime


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: str
    product_amount: int
    shipping_fee: int
    total_amount: int
    payment_method: PaymentMethod
    installments: Optional[int] = None
    address_id: uuid.UUID
    status: SaleStatus
    gateway_order_id: Optional[str] = None
    pix_qr_code: Optional[str] = None
    pix_qr_code_url: Optional[str] = None
    pix_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PurchaseDetailResponse(BaseModel):
    purchase: PurchaseResponse
    sales: list[StoreSaleResponse] = []


class CheckoutResponse(PurchaseDetailResponse):
    charge: Optional[PixChargeResponse] = None
    card_charge: Optional[CardChargeResponse] = None
    charge_error: Optional[str] = None
