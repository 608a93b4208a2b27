"""Seller affiliation (KYC) endpoints and admin tooling."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.affiliation import can_sell
from services.payments_service.events import RECIPIENT_UPDATED, GatewayEvent
from services.payments_service.pagarme_client import (
    PagarmeClient,
    PagarmeError,
    get_pagarme_client,
)
from services.payments_service.schemas import (
    AccountGatewayResponse,
    AffiliationCreate,
    SellerGateResponse,
    SimulateEventRequest,
    SimulateEventResponse,
    WebhookEventResponse,
)
from services.payments_service.services.affiliation_store import AffiliationStore
from services.payments_service.services.registration import (
    AffiliationAlreadyExists,
    register_affiliation,
)
from services.payments_service.services.webhook_processor import (
    HandleResult,
    WebhookProcessor,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["affiliation"])
admin_router = APIRouter(prefix="/payments/admin/affiliation", tags=["admin"])
logger = get_logger(__name__)


@router.post(
    "/affiliation",
    response_model=AccountGatewayResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_affiliation(
    payload: AffiliationCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    client: PagarmeClient = Depends(get_pagarme_client),
):
    """Register the current user as a gateway recipient (starts KYC)."""
    try:
        return await register_affiliation(db, current_user.user_id, payload, client)
    except AffiliationAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Gateway account already exists for this user",
        )
    except PagarmeError as e:
        logger.error(
            f"Recipient creation failed for user {current_user.user_id}: {e.message}",
            extra={"extra_fields": {"response": e.response_data}},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not create gateway account: {e.message}",
        )


@router.get("/affiliation/me", response_model=SellerGateResponse)
async def get_my_affiliation(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Return whether the current user may sell, and the KYC link if pending."""
    return await can_sell(AffiliationStore(db), current_user.user_id)


# ============================================================================
# Admin
# ============================================================================


@admin_router.post("/simulate", response_model=SimulateEventResponse)
async def simulate_affiliation_event(
    payload: SimulateEventRequest,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Feed a synthetic recipient.updated event through webhook processing.

    Skips signature verification only; status mapping, idempotency and
    persistence follow the real webhook path.
    """
    store = AffiliationStore(db)
    if await store.get_by_external_id(payload.external_id) is None:
        raise HTTPException(status_code=404, detail="Gateway account not found")

    event = GatewayEvent(
        id=payload.event_id or f"sim_{uuid.uuid4().hex}",
        type=RECIPIENT_UPDATED,
        data={
            "id": payload.external_id,
            "status": payload.status,
            "affiliation_url": payload.affiliation_url,
        },
    )
    result = await WebhookProcessor(db, store).process_event(event)
    if result == HandleResult.STORAGE_ERROR:
        raise HTTPException(status_code=500, detail="Failed to apply event")

    account = await store.get_by_external_id(payload.external_id)
    # process_event may have committed; reload current column values
    await db.refresh(account)
    return SimulateEventResponse(
        result=result.value,
        account=AccountGatewayResponse.model_validate(account),
    )


@admin_router.get("/{external_id}/events", response_model=list[WebhookEventResponse])
async def list_affiliation_events(
    external_id: str,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Webhook log for one gateway recipient, newest first."""
    return await AffiliationStore(db).list_events(external_id)
