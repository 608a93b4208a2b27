"""Store cart router: the buyer's open cart lines."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.errors import CheckoutError
from services.store_service.routers._helpers import to_http_error
from services.store_service.schemas import CartItemCreate, CartItemUpdate, CartResponse
from services.store_service.services import cart as cart_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


async def _cart_response(db: AsyncSession, buyer_id: str) -> CartResponse:
    summary = await cart_service.get_cart_summary(db, buyer_id)
    return CartResponse.model_validate(summary)


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current cart (lines already purchased are never included)."""
    return await _cart_response(db, current_user.user_id)


@router.post("/cart/items", response_model=CartResponse)
async def add_cart_item(
    item_in: CartItemCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add item to cart; an existing line for the product has its quantity increased."""
    try:
        await cart_service.add_to_cart(
            db, current_user.user_id, item_in.product_id, item_in.quantity
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return await _cart_response(db, current_user.user_id)


@router.patch("/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    item_in: CartItemUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update cart item quantity."""
    try:
        await cart_service.update_quantity(
            db, current_user.user_id, item_id, item_in.quantity
        )
    except CheckoutError as e:
        raise to_http_error(e)
    return await _cart_response(db, current_user.user_id)


@router.delete("/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove item from cart."""
    try:
        await cart_service.remove_item(db, current_user.user_id, item_id)
    except CheckoutError as e:
        raise to_http_error(e)
    return await _cart_response(db, current_user.user_id)


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await cart_service.clear_cart(db, current_user.user_id)
    return await _cart_response(db, current_user.user_id)
