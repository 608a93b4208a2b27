"""Cart reads and mutations.

Only unconsumed lines (``purchase_id IS NULL``) belong to the cart. Lines
consumed by a purchase are history and every operation here ignores them.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.currency import format_brl
from libs.common.logging import get_logger
from services.store_service.errors import CartValidationError, NotFoundError
from services.store_service.models import CartItem, Product, StoreProfile
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    """A cart item joined with its product and store."""

    id: uuid.UUID
    buyer_id: str
    product_id: uuid.UUID
    product_name: str
    store_id: uuid.UUID
    store_name: str
    store_owner_id: str
    unit_price: int
    quantity: int
    is_available: bool
    stock: int
    store_origin_postal_code: Optional[str] = None
    weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    width_cm: Optional[float] = None
    length_cm: Optional[float] = None
    purchase_id: Optional[uuid.UUID] = None

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSummary:
    lines: list[CartLine] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_value(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def total_value_formatted(self) -> str:
        return format_brl(self.total_value)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def store_ids(self) -> set[uuid.UUID]:
        return {line.store_id for line in self.lines}


def _to_line(item: CartItem, product: Product, store: StoreProfile) -> CartLine:
    return CartLine(
        id=item.id,
        buyer_id=item.buyer_id,
        product_id=product.id,
        product_name=product.name,
        store_id=store.id,
        store_name=store.name,
        store_owner_id=store.owner_user_id,
        unit_price=product.price,
        quantity=item.quantity,
        is_available=product.is_available,
        stock=product.stock,
        store_origin_postal_code=store.origin_postal_code,
        weight_kg=product.weight_kg,
        height_cm=product.height_cm,
        width_cm=product.width_cm,
        length_cm=product.length_cm,
        purchase_id=item.purchase_id,
    )


def validate_lines(lines: list[CartLine]) -> list[str]:
    """Return checkout blocking issues (unavailable products, short stock)."""
    issues = []
    for line in lines:
        if not line.is_available:
            issues.append(f"{line.product_name} is no longer available")
        elif line.quantity > line.stock:
            issues.append(
                f"{line.product_name}: only {line.stock} in stock "
                f"(requested {line.quantity})"
            )
    return issues


# ============================================================================
# READS
# ============================================================================


async def get_cart_summary(db: AsyncSession, buyer_id: str) -> CartSummary:
    query = (
        select(CartItem, Product, StoreProfile)
        .join(Product, CartItem.product_id == Product.id)
        .join(StoreProfile, Product.store_id == StoreProfile.id)
        .where(CartItem.buyer_id == buyer_id, CartItem.purchase_id.is_(None))
        .order_by(CartItem.created_at, CartItem.id)
    )
    result = await db.execute(query)
    return CartSummary(lines=[_to_line(*row) for row in result.all()])


async def _get_open_item(
    db: AsyncSession, buyer_id: str, item_id: uuid.UUID
) -> CartItem:
    result = await db.execute(
        select(CartItem).where(
            CartItem.id == item_id,
            CartItem.buyer_id == buyer_id,
            CartItem.purchase_id.is_(None),
        )
    )
    item = result.scalar_one_or_none()
    if not item:
        raise NotFoundError("Cart item not found")
    return item


# ============================================================================
# MUTATIONS
# ============================================================================


async def add_to_cart(
    db: AsyncSession, buyer_id: str, product_id: uuid.UUID, quantity: int = 1
) -> CartItem:
    """Add a product, merging with an existing open line for the same product."""
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    if not product.is_available:
        raise CartValidationError([f"{product.name} is not available"])

    result = await db.execute(
        select(CartItem).where(
            CartItem.buyer_id == buyer_id,
            CartItem.product_id == product_id,
            CartItem.purchase_id.is_(None),
        )
    )
    item = result.scalar_one_or_none()
    new_quantity = quantity + (item.quantity if item else 0)
    if new_quantity > product.stock:
        raise CartValidationError(
            [f"{product.name}: only {product.stock} in stock"]
        )

    if item:
        item.quantity = new_quantity
    else:
        item = CartItem(buyer_id=buyer_id, product_id=product_id, quantity=quantity)
        db.add(item)

    await db.commit()
    await db.refresh(item)
    return item


async def update_quantity(
    db: AsyncSession, buyer_id: str, item_id: uuid.UUID, quantity: int
) -> CartItem:
    item = await _get_open_item(db, buyer_id, item_id)
    product = await db.get(Product, item.product_id)
    if product and quantity > product.stock:
        raise CartValidationError(
            [f"{product.name}: only {product.stock} in stock"]
        )

    item.quantity = quantity
    await db.commit()
    await db.refresh(item)
    return item


async def remove_item(db: AsyncSession, buyer_id: str, item_id: uuid.UUID) -> None:
    item = await _get_open_item(db, buyer_id, item_id)
    await db.delete(item)
    await db.commit()


async def clear_cart(db: AsyncSession, buyer_id: str) -> int:
    """Delete every open line of the buyer. Returns how many were removed."""
    result = await db.execute(
        delete(CartItem).where(
            CartItem.buyer_id == buyer_id, CartItem.purchase_id.is_(None)
        )
    )
    await db.commit()
    logger.info(f"Cleared {result.rowcount} cart item(s) for buyer {buyer_id}")
    return result.rowcount
