"""Per-store shipping quotes for the current cart."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.routers._helpers import (
    get_shipping_aggregator,
    get_user_address,
)
from services.store_service.schemas import (
    ShippingQuoteRequest,
    StoreShippingGroupResponse,
)
from services.store_service.services.cart import get_cart_summary
from services.store_service.services.shipping import ShippingQuoteAggregator
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.post("/shipping/quote", response_model=list[StoreShippingGroupResponse])
async def quote_shipping(
    request: ShippingQuoteRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    aggregator: ShippingQuoteAggregator = Depends(get_shipping_aggregator),
):
    """
    Quote shipping for every store in the cart.

    One group per store; a store whose quote failed comes back with
    ``has_error`` instead of failing the whole request.
    """
    address = await get_user_address(db, current_user.user_id, request.address_id)
    cart = await get_cart_summary(db, current_user.user_id)
    groups = await aggregator.quote(address, cart)
    return [StoreShippingGroupResponse.model_validate(group) for group in groups]
