"""Unit tests for WebhookProcessor: authentication, idempotency, storage errors."""

import json

import pytest
from services.payments_service.models import AffiliationStatus, GatewayWebhookEvent
from services.payments_service.services.affiliation_store import AffiliationStore
from services.payments_service.services.webhook_processor import (
    HandleResult,
    WebhookProcessor,
)
from services.payments_service.signature import compute_signature
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from tests.factories import AccountGatewayFactory

SECRET = "whsec_unit"


def _event(recipient_id, status="active", event_id="evt_1", **data) -> bytes:
    body = {
        "id": event_id,
        "type": "recipient.updated",
        "created_at": "2025-01-10T12:00:00Z",
        "data": {"id": recipient_id, "status": status, **data},
    }
    return json.dumps(body).encode()


async def _make_account(db, **overrides):
    account = AccountGatewayFactory.create(**overrides)
    db.add(account)
    await db.commit()
    await db.refresh(account)
    return account


async def _event_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(GatewayWebhookEvent))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Happy path and idempotency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recipient_updated_applies_mapped_status(db_session):
    account = await _make_account(db_session)
    payload = _event(
        account.external_id, "active", affiliation_url="https://kyc.example.com/1"
    )

    result = await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )

    assert result == HandleResult.OK
    await db_session.refresh(account)
    assert account.status == AffiliationStatus.APPROVED
    assert account.affiliation_url == "https://kyc.example.com/1"
    assert account.last_webhook_at is not None
    assert await _event_count(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_replayed_event_is_idempotent(db_session):
    account = await _make_account(db_session)
    payload = _event(account.external_id, "rejected", event_id="evt_replay")
    signature = compute_signature(payload, SECRET)
    processor = WebhookProcessor(db_session)

    first = await processor.handle(payload, signature, SECRET)
    await db_session.refresh(account)
    after_first = (account.status, account.affiliation_url, account.last_webhook_at)

    second = await processor.handle(payload, signature, SECRET)
    await db_session.refresh(account)
    after_second = (account.status, account.affiliation_url, account.last_webhook_at)

    assert first == second == HandleResult.OK
    assert after_first == after_second
    assert account.status == AffiliationStatus.REFUSED
    assert await _event_count(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_replay_without_event_id_reaches_same_state(db_session):
    account = await _make_account(db_session)
    payload = _event(account.external_id, "active", event_id=None)
    signature = compute_signature(payload, SECRET)
    processor = WebhookProcessor(db_session)

    assert await processor.handle(payload, signature, SECRET) == HandleResult.OK
    assert await processor.handle(payload, signature, SECRET) == HandleResult.OK

    await db_session.refresh(account)
    assert account.status == AffiliationStatus.APPROVED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_affiliation_url_kept_when_event_has_none(db_session):
    account = await _make_account(
        db_session, affiliation_url="https://kyc.example.com/original"
    )
    payload = _event(account.external_id, "pending")

    await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )

    await db_session.refresh(account)
    assert account.status == AffiliationStatus.PENDING
    assert account.affiliation_url == "https://kyc.example.com/original"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_numeric_recipient_id_is_accepted(db_session):
    account = await _make_account(db_session, external_id="987654")
    body = {"id": "evt_num", "type": "recipient.updated", "data": {"id": 987654, "status": "active"}}
    payload = json.dumps(body).encode()

    result = await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )

    assert result == HandleResult.OK
    await db_session.refresh(account)
    assert account.status == AffiliationStatus.APPROVED


# ---------------------------------------------------------------------------
# Rejections leave state untouched
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "signature",
    [None, "", "sha256=" + "0" * 64, "not-a-signature"],
)
async def test_bad_signature_mutates_nothing(db_session, signature):
    account = await _make_account(db_session)
    before = (account.status, account.affiliation_url, account.last_webhook_at)
    payload = _event(account.external_id, "active")

    result = await WebhookProcessor(db_session).handle(payload, signature, SECRET)

    assert result == HandleResult.UNAUTHORIZED
    await db_session.refresh(account)
    assert (account.status, account.affiliation_url, account.last_webhook_at) == before
    assert await _event_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[1, 2, 3]",
        json.dumps({"data": {"id": "rp_1", "status": "active"}}).encode(),
        json.dumps({"type": "recipient.updated", "data": {"status": "active"}}).encode(),
        json.dumps({"type": "recipient.updated"}).encode(),
    ],
)
async def test_malformed_event_is_unauthorized(db_session, payload):
    result = await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )
    assert result == HandleResult.UNAUTHORIZED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_other_event_types_are_acknowledged_without_mutation(db_session):
    account = await _make_account(db_session)
    body = {"id": "evt_x", "type": "order.paid", "data": {"id": account.external_id}}
    payload = json.dumps(body).encode()

    result = await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )

    assert result == HandleResult.UNSUPPORTED_EVENT
    await db_session.refresh(account)
    assert account.status == AffiliationStatus.PENDING
    assert await _event_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_recipient_is_acknowledged(db_session):
    payload = _event("rp_does_not_exist", "active")

    result = await WebhookProcessor(db_session).handle(
        payload, compute_signature(payload, SECRET), SECRET
    )

    assert result == HandleResult.OK
    assert await _event_count(db_session) == 0


# ---------------------------------------------------------------------------
# Storage failure
# ---------------------------------------------------------------------------


class _FailingStore(AffiliationStore):
    async def apply_status(self, *args, **kwargs):
        raise SQLAlchemyError("database unavailable")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_storage_error_is_reported_for_retry(db_session):
    account = await _make_account(db_session)
    payload = _event(account.external_id, "active")
    processor = WebhookProcessor(db_session, store=_FailingStore(db_session))

    result = await processor.handle(payload, compute_signature(payload, SECRET), SECRET)

    assert result == HandleResult.STORAGE_ERROR
    await db_session.refresh(account)
    assert account.status == AffiliationStatus.PENDING


class _RacingStore(AffiliationStore):
    """Misses the first has_event lookup, as a delivery racing another would."""

    def __init__(self, db):
        super().__init__(db)
        self.lookups = 0

    async def has_event(self, event_id):
        self.lookups += 1
        if self.lookups == 1:
            return False
        return await super().has_event(event_id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_duplicate_delivery_is_acknowledged(db_session):
    account = await _make_account(db_session)
    payload = _event(account.external_id, "active", event_id="evt_race")
    signature = compute_signature(payload, SECRET)

    first = await WebhookProcessor(db_session).handle(payload, signature, SECRET)
    racing_store = _RacingStore(db_session)
    second = await WebhookProcessor(db_session, store=racing_store).handle(
        payload, signature, SECRET
    )

    assert first == HandleResult.OK
    assert second == HandleResult.OK
    assert racing_store.lookups == 2
    assert await _event_count(db_session) == 1
    await db_session.refresh(account)
    assert account.status == AffiliationStatus.APPROVED
