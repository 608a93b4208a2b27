import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.payments_service.models.enums import (
    AffiliationStatus,
    PaymentGatewayType,
    enum_values,
)
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class AccountGateway(Base):
    """A seller's affiliation (recipient) account with the payment gateway.

    Status is written only by webhook processing; users never update it.
    """

    __tablename__ = "account_gateway"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    payment_gateway: Mapped[PaymentGatewayType] = mapped_column(
        SAEnum(
            PaymentGatewayType,
            name="payment_gateway_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentGatewayType.PAGARME,
        nullable=False,
    )
    # Recipient id at the gateway (e.g. "rp_XXXX")
    external_id: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )

    status: Mapped[AffiliationStatus] = mapped_column(
        SAEnum(
            AffiliationStatus,
            name="affiliation_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=AffiliationStatus.PENDING,
        nullable=False,
    )

    # Seller profile that owns the account (store or professional)
    store_profile_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    professional_profile_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )

    # KYC / proof-of-life link sent by the gateway
    affiliation_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_webhook_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    registration = relationship(
        "AccountGatewayData",
        back_populates="account",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<AccountGateway {self.external_id} status={self.status}>"


class AccountGatewayData(Base):
    """Registration information sent to the gateway and its raw response."""

    __tablename__ = "account_gateway_data"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_gateway_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("account_gateway.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    payment_gateway: Mapped[PaymentGatewayType] = mapped_column(
        SAEnum(
            PaymentGatewayType,
            name="payment_gateway_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentGatewayType.PAGARME,
        nullable=False,
    )
    register_information: Mapped[dict] = mapped_column(JSONType, nullable=False)
    raw_response: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    account = relationship("AccountGateway", back_populates="registration")


class GatewayWebhookEvent(Base):
    """Log of processed affiliation webhook events.

    A non-null event_id is unique, so a replayed delivery is recognised
    and acknowledged without touching the account again.
    """

    __tablename__ = "gateway_webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[Optional[str]] = mapped_column(
        String(128), unique=True, nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    external_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    mapped_status: Mapped[AffiliationStatus] = mapped_column(
        SAEnum(
            AffiliationStatus,
            name="affiliation_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        Index("ix_gateway_webhook_events_external_id", "external_id", "received_at"),
    )
