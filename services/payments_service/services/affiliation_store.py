"""Persistence boundary for gateway affiliation accounts."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    AccountGateway,
    AccountGatewayData,
    AffiliationStatus,
    GatewayWebhookEvent,
    PaymentGatewayType,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


class AffiliationStore:
    """Reads and writes AccountGateway rows through an injected session.

    Write methods flush but do not commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_user(self, user_id: str) -> Optional[AccountGateway]:
        result = await self.db.execute(
            select(AccountGateway)
            .where(AccountGateway.user_id == user_id)
            .order_by(AccountGateway.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Optional[AccountGateway]:
        result = await self.db.execute(
            select(AccountGateway)
            .where(AccountGateway.external_id == external_id)
            .options(selectinload(AccountGateway.registration))
        )
        return result.scalar_one_or_none()

    async def has_event(self, event_id: str) -> bool:
        result = await self.db.execute(
            select(GatewayWebhookEvent.id).where(GatewayWebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none() is not None

    async def list_events(self, external_id: str) -> list[GatewayWebhookEvent]:
        result = await self.db.execute(
            select(GatewayWebhookEvent)
            .where(GatewayWebhookEvent.external_id == external_id)
            .order_by(GatewayWebhookEvent.received_at.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_pending(
        self,
        *,
        user_id: str,
        external_id: str,
        register_information: dict,
        raw_response: Optional[dict] = None,
        store_profile_id: Optional[uuid.UUID] = None,
        professional_profile_id: Optional[uuid.UUID] = None,
        payment_gateway: PaymentGatewayType = PaymentGatewayType.PAGARME,
    ) -> AccountGateway:
        account = AccountGateway(
            user_id=user_id,
            external_id=external_id,
            payment_gateway=payment_gateway,
            status=AffiliationStatus.PENDING,
            store_profile_id=store_profile_id,
            professional_profile_id=professional_profile_id,
        )
        self.db.add(account)
        await self.db.flush()

        self.db.add(
            AccountGatewayData(
                account_gateway_id=account.id,
                external_id=external_id,
                payment_gateway=payment_gateway,
                register_information=register_information,
                raw_response=raw_response,
            )
        )
        await self.db.flush()
        return account

    async def apply_status(
        self,
        external_id: str,
        status: AffiliationStatus,
        *,
        affiliation_url: Optional[str] = None,
        received_at: Optional[datetime] = None,
    ) -> Optional[AccountGateway]:
        """Set the account's status, keyed by the gateway recipient id.

        Applying the same status twice leaves the same row. The affiliation
        URL is only overwritten when one is provided. Returns None when no
        account matches.
        """
        account = await self.get_by_external_id(external_id)
        if account is None:
            return None

        previous = account.status
        account.status = status
        if affiliation_url:
            account.affiliation_url = affiliation_url
        account.last_webhook_at = received_at or utc_now()
        await self.db.flush()

        if previous != status:
            logger.info(
                "Affiliation %s moved %s -> %s",
                external_id,
                previous.value,
                status.value,
                extra={"extra_fields": {"user_id": account.user_id}},
            )
        return account

    async def record_event(
        self,
        *,
        event_id: Optional[str],
        event_type: str,
        external_id: str,
        external_status: Optional[str],
        mapped_status: AffiliationStatus,
        received_at: Optional[datetime] = None,
    ) -> GatewayWebhookEvent:
        event = GatewayWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            external_id=external_id,
            external_status=external_status,
            mapped_status=mapped_status,
            received_at=received_at or utc_now(),
        )
        self.db.add(event)
        await self.db.flush()
        return event
