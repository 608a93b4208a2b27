"""Signed webhook processing for gateway recipient (KYC) updates."""

import enum
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.affiliation import map_external_status
from services.payments_service.events import DecodeFailure, GatewayEvent, decode_event
from services.payments_service.services.affiliation_store import AffiliationStore
from services.payments_service.signature import verify_signature
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class HandleResult(str, enum.Enum):
    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    UNSUPPORTED_EVENT = "unsupported_event"
    STORAGE_ERROR = "storage_error"


class WebhookProcessor:
    """Verifies, decodes and applies gateway webhook events.

    Only ``recipient.updated`` mutates state; every other event type is
    acknowledged so the sender stops retrying.
    """

    def __init__(self, db: AsyncSession, store: Optional[AffiliationStore] = None):
        self.db = db
        self.store = store or AffiliationStore(db)

    async def handle(
        self, raw_payload: bytes, signature_header: Optional[str], secret: Optional[str]
    ) -> HandleResult:
        if not verify_signature(raw_payload, signature_header, secret):
            logger.warning(
                "Webhook rejected: invalid signature",
                extra={"extra_fields": {"payload_length": len(raw_payload or b"")}},
            )
            return HandleResult.UNAUTHORIZED

        decoded = decode_event(raw_payload)
        if isinstance(decoded, DecodeFailure):
            logger.warning(f"Webhook rejected: {decoded.reason}")
            return HandleResult.UNAUTHORIZED

        return await self.process_event(decoded)

    async def process_event(self, event: GatewayEvent) -> HandleResult:
        """Apply an already-authenticated event."""
        if not event.is_recipient_update:
            logger.info(
                f"Webhook event type not supported: {event.type}",
                extra={"extra_fields": {"event_id": event.id}},
            )
            return HandleResult.UNSUPPORTED_EVENT

        recipient_id = event.data.id
        new_status = map_external_status(event.data.status)
        received_at = utc_now()

        try:
            if event.id and await self.store.has_event(event.id):
                logger.info(
                    f"Webhook {event.id} skipped - already processed",
                    extra={"extra_fields": {"recipient_id": recipient_id}},
                )
                return HandleResult.OK

            account = await self.store.apply_status(
                recipient_id,
                new_status,
                affiliation_url=event.data.affiliation_url,
                received_at=received_at,
            )
            if account is None:
                # Acknowledge anyway: a retried delivery would not find it either
                logger.warning(
                    f"Webhook received for unknown recipient: {recipient_id}",
                    extra={
                        "extra_fields": {
                            "recipient_id": recipient_id,
                            "event_id": event.id,
                            "status": event.data.status,
                        }
                    },
                )
                await self.db.rollback()
                return HandleResult.OK

            await self.store.record_event(
                event_id=event.id,
                event_type=event.type,
                external_id=recipient_id,
                external_status=event.data.status,
                mapped_status=new_status,
                received_at=received_at,
            )
            await self.db.commit()

        except IntegrityError as e:
            await self.db.rollback()
            if event.id and await self._recorded_concurrently(event.id):
                logger.info(
                    f"Webhook {event.id} skipped - recorded by a concurrent delivery",
                    extra={"extra_fields": {"recipient_id": recipient_id}},
                )
                return HandleResult.OK
            logger.error(
                f"Failed to persist webhook for recipient {recipient_id}: {e}",
                extra={"extra_fields": {"event_id": event.id}},
            )
            return HandleResult.STORAGE_ERROR
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Failed to persist webhook for recipient {recipient_id}: {e}",
                extra={"extra_fields": {"event_id": event.id}},
            )
            return HandleResult.STORAGE_ERROR

        logger.info(
            f"Gateway account {recipient_id} updated to status: {new_status.value}"
        )
        return HandleResult.OK

    async def _recorded_concurrently(self, event_id: str) -> bool:
        # Two deliveries of one event can both pass has_event; the unique
        # index lets only one of them commit.
        try:
            return await self.store.has_event(event_id)
        except SQLAlchemyError:
            await self.db.rollback()
            return False
