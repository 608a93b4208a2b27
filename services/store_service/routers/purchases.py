"""Checkout, buyer purchases and store sales."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from libs.auth.dependencies import ensure_owner_or_admin, get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.errors import CheckoutError
from services.store_service.models import Purchase, StoreProfile, StoreSale
from services.store_service.routers._helpers import (
    get_checkout_orchestrator,
    get_customer_profile,
    get_shipping_aggregator,
    get_user_address,
    to_http_error,
)
from services.store_service.schemas import (
    CardChargeRequest,
    CardChargeResponse,
    CheckoutRequest,
    CheckoutResponse,
    PixChargeResponse,
    PurchaseDetailResponse,
    PurchaseResponse,
    StoreSaleResponse,
)
from services.store_service.services.cart import get_cart_summary
from services.store_service.services.checkout import (
    CheckoutOrchestrator,
    get_purchase_with_sales,
    list_buyer_purchases,
    list_store_sales,
)
from services.store_service.services.shipping import ShippingQuoteAggregator
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])
logger = get_logger(__name__)


def purchase_detail(purchase: Purchase, sales: list[StoreSale]) -> dict:
    return {
        "purchase": PurchaseResponse.model_validate(purchase),
        "sales": [StoreSaleResponse.model_validate(sale) for sale in sales],
    }


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/purchases",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_purchase(
    checkout_in: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    aggregator: ShippingQuoteAggregator = Depends(get_shipping_aggregator),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator),
):
    """
    Check out the whole cart: one purchase, one sale per cart line.

    Shipping is re-quoted here; each selection must match an option of the
    fresh quote and its current price is the one charged.
    """
    buyer_id = current_user.user_id
    address = await get_user_address(db, buyer_id, checkout_in.address_id)
    cart = await get_cart_summary(db, buyer_id)
    customer = await get_customer_profile(db, buyer_id)

    try:
        shipping_groups = await aggregator.quote(address, cart) if cart.lines else []
        result = await orchestrator.create_purchase(
            db,
            buyer_id=buyer_id,
            cart=cart,
            shipping_groups=shipping_groups,
            selected_shipping=checkout_in.shipping_selections,
            payment_method=checkout_in.payment_method,
            address=address,
            installments=checkout_in.installments,
            customer=customer,
            card_id=checkout_in.card_id,
        )
    except CheckoutError as e:
        logger.info(f"Checkout rejected for buyer {buyer_id}: {e.message}")
        raise to_http_error(e)

    return CheckoutResponse(
        **purchase_detail(result.purchase, result.sales),
        charge=(
            PixChargeResponse.model_validate(result.charge) if result.charge else None
        ),
        card_charge=(
            CardChargeResponse.model_validate(result.card_charge)
            if result.card_charge
            else None
        ),
        charge_error=result.charge_error,
    )


@router.post("/purchases/{purchase_id}/pix-charge", response_model=PixChargeResponse)
async def request_pix_charge(
    purchase_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator),
):
    """Create (or return the existing) PIX charge of a waiting purchase."""
    customer = await get_customer_profile(db, current_user.user_id)
    try:
        charge = await orchestrator.request_pix_charge(
            db, purchase_id, current_user.user_id, customer
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return PixChargeResponse.model_validate(charge)


@router.post(
    "/purchases/{purchase_id}/card-charge", response_model=CardChargeResponse
)
async def request_card_charge(
    purchase_id: uuid.UUID,
    charge_in: CardChargeRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator),
):
    """Retry the card charge of a credit card purchase that is still unpaid."""
    customer = await get_customer_profile(db, current_user.user_id)
    try:
        charge = await orchestrator.request_card_charge(
            db, purchase_id, current_user.user_id, customer, charge_in.card_id
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return CardChargeResponse.model_validate(charge)


# ============================================================================
# BUYER PURCHASES
# ============================================================================


@router.get("/purchases", response_model=list[PurchaseDetailResponse])
async def list_my_purchases(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    purchases = await list_buyer_purchases(db, current_user.user_id)
    return [purchase_detail(p, p.sales) for p in purchases]


@router.get("/purchases/{purchase_id}", response_model=PurchaseDetailResponse)
async def get_my_purchase(
    purchase_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    try:
        purchase = await get_purchase_with_sales(
            db, purchase_id, buyer_id=current_user.user_id
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return purchase_detail(purchase, purchase.sales)


@router.post("/purchases/{purchase_id}/cancel", response_model=PurchaseDetailResponse)
async def cancel_my_purchase(
    purchase_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator),
):
    """Cancel a purchase that is still waiting for payment."""
    try:
        purchase = await orchestrator.cancel_purchase(
            db, purchase_id, buyer_id=current_user.user_id
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return purchase_detail(purchase, purchase.sales)


# ============================================================================
# STORE SALES
# ============================================================================


@router.get("/stores/{store_id}/sales", response_model=list[StoreSaleResponse])
async def list_sales_for_store(
    store_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Sales of one store; visible to its owner and to admins."""
    store = await db.get(StoreProfile, store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    ensure_owner_or_admin(current_user, store.owner_user_id)
    return await list_store_sales(db, store_id)
