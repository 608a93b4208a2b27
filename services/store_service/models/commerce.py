"""Store commerce models: cart, addresses, customers, purchases, store sales."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import PaymentMethod, SaleStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# CART MODELS
# ============================================================================


class CartItem(Base):
    """Cart line item.

    ``purchase_id`` stays NULL until checkout consumes the line; consumed
    lines are history and never show up in the cart again.
    """

    __tablename__ = "store_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    purchase_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_purchases.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="positive_quantity"),
        Index("ix_store_cart_items_buyer_purchase", "buyer_id", "purchase_id"),
    )

    # Relationships
    product = relationship("Product")

    def __repr__(self):
        return f"<CartItem {self.id} qty={self.quantity}>"


# ============================================================================
# CUSTOMER MODELS
# ============================================================================


class UserAddress(Base):
    """Buyer delivery address."""

    __tablename__ = "store_user_addresses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    number: Mapped[str] = mapped_column(String(20), nullable=False)
    neighborhood: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(8), nullable=False)
    complement: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    def __repr__(self):
        return f"<UserAddress {self.postal_code} user={self.user_id}>"


class CustomerProfile(Base):
    """Buyer identity used as the processor customer for PIX orders."""

    __tablename__ = "store_customer_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    document: Mapped[str] = mapped_column(String(11), nullable=False)  # CPF
    phone_area_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


# ============================================================================
# PURCHASE MODELS
# ============================================================================


class Purchase(Base):
    """A buyer's checkout across one or more stores. Amounts in centavos."""

    __tablename__ = "store_purchases"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    product_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_fee: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
            validate_strings=True,
        ),
        nullable=False,
    )
    installments: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    address_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_user_addresses.id"), nullable=False
    )

    status: Mapped[SaleStatus] = mapped_column(
        SAEnum(
            SaleStatus,
            values_callable=enum_values,
            name="store_sale_status_enum",
            validate_strings=True,
        ),
        default=SaleStatus.WAITING_PAYMENT,
        nullable=False,
    )

    # Payment processor order and PIX payload
    gateway_order_id: Mapped[Optional[str]] = mapped_column(
        String(128), index=True, nullable=True
    )
    pix_qr_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pix_qr_code_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pix_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("product_amount >= 0", name="purchase_amount_non_negative"),
        CheckConstraint("shipping_fee >= 0", name="purchase_shipping_non_negative"),
    )

    # Relationships
    sales = relationship(
        "StoreSale", back_populates="purchase", order_by="StoreSale.created_at"
    )

    @property
    def total_amount(self) -> int:
        return self.product_amount + self.shipping_fee

    def __repr__(self):
        return f"<Purchase {self.id} status={self.status}>"


class StoreSale(Base):
    """One consumed cart line of a Purchase, as seen by the selling store."""

    __tablename__ = "store_sales"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_purchases.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_profiles.id"), index=True, nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )
    cart_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
            validate_strings=True,
        ),
        nullable=False,
    )
    installments: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    address_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    status: Mapped[SaleStatus] = mapped_column(
        SAEnum(
            SaleStatus,
            values_callable=enum_values,
            name="store_sale_status_enum",
            validate_strings=True,
        ),
        default=SaleStatus.WAITING_PAYMENT,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    purchase = relationship("Purchase", back_populates="sales")

    def __repr__(self):
        return f"<StoreSale {self.id} store={self.store_id} status={self.status}>"
