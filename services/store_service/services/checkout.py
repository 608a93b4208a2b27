"""Multi-store checkout and purchase lifecycle.

A checkout turns the buyer's open cart lines into one Purchase plus one
StoreSale per line. The Purchase insert, the cart consumption and the
StoreSale inserts share one transaction: either all of them persist or
none do. PIX and credit card charges are requested only after that commit;
an approved card moves the purchase and its sales to ``paid``.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Union

from libs.common.logging import get_logger
from services.payments_service.affiliation import can_sell
from services.payments_service.pagarme_client import (
    CardCharge,
    OrderAddress,
    OrderCustomer,
    PagarmeClient,
    PagarmeError,
    PixCharge,
)
from services.payments_service.services.affiliation_store import AffiliationStore
from services.store_service.errors import (
    CardDeclinedError,
    CartConflictError,
    CartValidationError,
    ChargeFailedError,
    EmptyCartError,
    IncompleteShippingSelection,
    InvalidInstallments,
    InvalidStatusTransition,
    MissingCardError,
    OrderCancelFailedError,
    PurchaseNotFound,
    PurchaseStateError,
    ShippingOptionNotFound,
    ShippingUnavailableError,
    StoreNotAffiliatedError,
)
from services.store_service.melhor_envio_client import ShippingOption
from services.store_service.models import (
    CartItem,
    CustomerProfile,
    PaymentMethod,
    Purchase,
    SaleStatus,
    StoreSale,
    UserAddress,
    can_transition,
)
from services.store_service.services.cart import CartLine, CartSummary, validate_lines
from services.store_service.services.shipping import StoreShippingGroup
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 12


@dataclass
class CheckoutResult:
    purchase: Purchase
    sales: list[StoreSale] = field(default_factory=list)
    charge: Optional[PixCharge] = None
    card_charge: Optional[CardCharge] = None
    charge_error: Optional[str] = None


def _option_id(selection: Union[ShippingOption, str]) -> str:
    return selection.id if isinstance(selection, ShippingOption) else str(selection)


def _normalize_installments(
    payment_method: PaymentMethod, installments: Optional[int]
) -> Optional[int]:
    if payment_method != PaymentMethod.CREDIT_CARD:
        return None
    if installments is None or not MIN_INSTALLMENTS <= installments <= MAX_INSTALLMENTS:
        raise InvalidInstallments(installments)
    return installments


def _resolve_shipping(
    lines: list[CartLine],
    shipping_groups: list[StoreShippingGroup],
    selected_shipping: dict[uuid.UUID, Union[ShippingOption, str]],
) -> dict[uuid.UUID, ShippingOption]:
    """Match each store's selection against its current quote."""
    groups = {group.store_id: group for group in shipping_groups}
    cart_stores = {line.store_id for line in lines}

    missing = {
        store_id
        for store_id in cart_stores
        if store_id not in selected_shipping
        and (store_id not in groups or not groups[store_id].has_error)
    }
    if missing:
        raise IncompleteShippingSelection(missing)

    errored = {
        store_id
        for store_id in cart_stores
        if store_id in groups and groups[store_id].has_error
    }
    if errored:
        raise ShippingUnavailableError(errored)

    resolved = {}
    for store_id, selection in selected_shipping.items():
        option_id = _option_id(selection)
        group = groups.get(store_id)
        option = group.find_option(option_id) if group else None
        if store_id not in cart_stores or option is None:
            raise ShippingOptionNotFound(store_id, option_id)
        resolved[store_id] = option
    return resolved


def _order_customer(customer: CustomerProfile) -> OrderCustomer:
    order_customer = OrderCustomer(
        name=customer.full_name, email=customer.email, document=customer.document
    )
    if customer.phone_area_code and customer.phone_number:
        order_customer.phone_area_code = customer.phone_area_code
        order_customer.phone_number = customer.phone_number
    return order_customer


def _order_address(address: UserAddress) -> OrderAddress:
    return OrderAddress(
        street=address.street,
        number=address.number,
        city=address.city,
        state=address.state,
        zip_code=address.postal_code,
        complement=address.complement,
    )


def _stored_charge(purchase: Purchase) -> PixCharge:
    return PixCharge(
        order_id=purchase.gateway_order_id,
        status="pending",
        amount=purchase.total_amount,
        qr_code=purchase.pix_qr_code,
        qr_code_url=purchase.pix_qr_code_url,
        expires_at=purchase.pix_expires_at,
    )


class CheckoutOrchestrator:
    """Validates a checkout, persists it atomically, then charges it.

    ``payments`` may be None when no processor is configured; PIX and card
    purchases are then created without a charge and can be charged later
    through ``request_pix_charge`` / ``request_card_charge``.
    """

    def __init__(
        self,
        payments: Optional[PagarmeClient] = None,
        enforce_seller_gate: bool = True,
    ):
        self.payments = payments
        self.enforce_seller_gate = enforce_seller_gate

    async def create_purchase(
        self,
        db: AsyncSession,
        *,
        buyer_id: str,
        cart: CartSummary,
        shipping_groups: list[StoreShippingGroup],
        selected_shipping: dict[uuid.UUID, Union[ShippingOption, str]],
        payment_method: PaymentMethod,
        address: UserAddress,
        installments: Optional[int] = None,
        customer: Optional[CustomerProfile] = None,
        card_id: Optional[str] = None,
    ) -> CheckoutResult:
        lines = [line for line in cart.lines if line.purchase_id is None]
        if not lines:
            raise EmptyCartError()

        issues = validate_lines(lines)
        if issues:
            raise CartValidationError(issues)

        installments = _normalize_installments(payment_method, installments)
        if payment_method == PaymentMethod.CREDIT_CARD and not card_id:
            raise MissingCardError()
        shipping = _resolve_shipping(lines, shipping_groups, selected_shipping)

        if self.enforce_seller_gate:
            await self._check_sellers(db, lines)

        product_amount = sum(line.subtotal for line in lines)
        shipping_fee = sum(option.price for option in shipping.values())

        try:
            purchase = Purchase(
                buyer_id=buyer_id,
                product_amount=product_amount,
                shipping_fee=shipping_fee,
                payment_method=payment_method,
                installments=installments,
                address_id=address.id,
                status=SaleStatus.WAITING_PAYMENT,
            )
            db.add(purchase)
            await db.flush()

            await self._consume_lines(db, purchase, lines)
            sales = await self._insert_sales(db, purchase, lines)
            await db.commit()
        except CartConflictError:
            await db.rollback()
            logger.warning(
                f"Checkout conflict for buyer {buyer_id}: cart already consumed"
            )
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Checkout failed for buyer {buyer_id}: {e}")
            raise

        logger.info(
            f"Purchase {purchase.id} created",
            extra={
                "extra_fields": {
                    "buyer_id": buyer_id,
                    "stores": len(shipping),
                    "sales": len(sales),
                    "product_amount": product_amount,
                    "shipping_fee": shipping_fee,
                }
            },
        )

        result = CheckoutResult(purchase=purchase, sales=sales)
        if payment_method == PaymentMethod.PIX:
            result.charge, result.charge_error = await self._charge_pix(
                db, purchase, customer, address
            )
        elif payment_method == PaymentMethod.CREDIT_CARD:
            result.card_charge, result.charge_error = await self._charge_card(
                db, purchase, customer, address, card_id
            )
        return result

    async def request_pix_charge(
        self,
        db: AsyncSession,
        purchase_id: uuid.UUID,
        buyer_id: str,
        customer: Optional[CustomerProfile],
        address: Optional[UserAddress] = None,
    ) -> PixCharge:
        """Create the PIX charge of a purchase, or return the one already stored."""
        purchase = await self._waiting_purchase(
            db, purchase_id, buyer_id, PaymentMethod.PIX
        )
        if purchase.gateway_order_id:
            return _stored_charge(purchase)

        if address is None:
            address = await db.get(UserAddress, purchase.address_id)

        charge, error = await self._charge_pix(db, purchase, customer, address)
        if charge is None:
            raise ChargeFailedError(error)
        return charge

    async def request_card_charge(
        self,
        db: AsyncSession,
        purchase_id: uuid.UUID,
        buyer_id: str,
        customer: Optional[CustomerProfile],
        card_id: str,
        address: Optional[UserAddress] = None,
    ) -> CardCharge:
        """Retry the card charge of a credit card purchase still awaiting payment."""
        purchase = await self._waiting_purchase(
            db, purchase_id, buyer_id, PaymentMethod.CREDIT_CARD
        )
        if not card_id:
            raise MissingCardError()

        if address is None:
            address = await db.get(UserAddress, purchase.address_id)

        charge, error = await self._charge_card(
            db, purchase, customer, address, card_id
        )
        if charge is None:
            raise ChargeFailedError(error)
        if not charge.approved:
            raise CardDeclinedError(error, order_id=charge.order_id)
        return charge

    async def cancel_purchase(
        self,
        db: AsyncSession,
        purchase_id: uuid.UUID,
        buyer_id: Optional[str] = None,
    ) -> Purchase:
        """
        Cancel a purchase awaiting payment, closing its processor order first.

        When the processor order cannot be cancelled the purchase keeps its
        status, so an order that can still be paid is never marked canceled.
        """
        purchase = await get_purchase_with_sales(db, purchase_id, buyer_id=buyer_id)
        if not can_transition(purchase.status, SaleStatus.CANCELED):
            raise InvalidStatusTransition(purchase.status, SaleStatus.CANCELED)

        order_id = purchase.gateway_order_id
        if order_id:
            if self.payments is None:
                raise OrderCancelFailedError(
                    order_id, "payment processor is not configured"
                )
            try:
                await self.payments.cancel_order(order_id)
            except PagarmeError as e:
                logger.error(
                    f"Cancel of order {order_id} failed for purchase {purchase_id}: "
                    f"{e.message}",
                    extra={"extra_fields": {"response": e.response_data}},
                )
                raise OrderCancelFailedError(order_id, e.message) from e

        return await transition_status(db, purchase_id, SaleStatus.CANCELED)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _waiting_purchase(
        self,
        db: AsyncSession,
        purchase_id: uuid.UUID,
        buyer_id: str,
        payment_method: PaymentMethod,
    ) -> Purchase:
        purchase = await get_purchase_with_sales(db, purchase_id, buyer_id=buyer_id)
        if purchase.payment_method != payment_method:
            raise PurchaseStateError(
                f"Purchase is not paid with {payment_method.value}"
            )
        if purchase.status != SaleStatus.WAITING_PAYMENT:
            raise PurchaseStateError(
                f"Purchase is {purchase.status.value}; no charge can be requested"
            )
        return purchase

    async def _check_sellers(self, db: AsyncSession, lines: list[CartLine]) -> None:
        owners = {line.store_id: line.store_owner_id for line in lines}
        store = AffiliationStore(db)
        blocked = []
        for store_id, owner_id in owners.items():
            gate = await can_sell(store, owner_id)
            if not gate.can_sell:
                blocked.append(store_id)
        if blocked:
            raise StoreNotAffiliatedError(blocked)

    async def _consume_lines(
        self, db: AsyncSession, purchase: Purchase, lines: list[CartLine]
    ) -> None:
        """Attach the lines to the purchase; first writer wins."""
        line_ids = [line.id for line in lines]
        result = await db.execute(
            update(CartItem)
            .where(
                CartItem.id.in_(line_ids),
                CartItem.buyer_id == purchase.buyer_id,
                CartItem.purchase_id.is_(None),
            )
            .values(purchase_id=purchase.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(line_ids):
            raise CartConflictError()

    async def _insert_sales(
        self, db: AsyncSession, purchase: Purchase, lines: list[CartLine]
    ) -> list[StoreSale]:
        sales = [
            StoreSale(
                purchase_id=purchase.id,
                store_id=line.store_id,
                buyer_id=purchase.buyer_id,
                product_id=line.product_id,
                cart_item_id=line.id,
                quantity=line.quantity,
                amount=line.subtotal,
                payment_method=purchase.payment_method,
                installments=purchase.installments,
                address_id=purchase.address_id,
                status=purchase.status,
            )
            for line in lines
        ]
        db.add_all(sales)
        await db.flush()
        return sales

    def _charge_blocker(
        self,
        customer: Optional[CustomerProfile],
        address: Optional[UserAddress],
    ) -> Optional[str]:
        if self.payments is None:
            return "Payment processor is not configured"
        if customer is None:
            return "Customer profile is required for PIX and card payments"
        if address is None:
            return "Delivery address not found"
        return None

    async def _charge_pix(
        self,
        db: AsyncSession,
        purchase: Purchase,
        customer: Optional[CustomerProfile],
        address: Optional[UserAddress],
    ) -> tuple[Optional[PixCharge], Optional[str]]:
        """Request the PIX order. Failures leave the purchase waiting_payment."""
        blocker = self._charge_blocker(customer, address)
        if blocker:
            return None, blocker

        try:
            charge = await self.payments.create_pix_order(
                customer=_order_customer(customer),
                address=_order_address(address),
                amount=purchase.total_amount,
                description=f"Mercafly purchase {purchase.id}",
                code=str(purchase.id),
            )
        except PagarmeError as e:
            logger.error(
                f"PIX charge failed for purchase {purchase.id}: {e.message}",
                extra={"extra_fields": {"response": e.response_data}},
            )
            return None, f"Could not create PIX charge: {e.message}"

        purchase.gateway_order_id = charge.order_id
        purchase.pix_qr_code = charge.qr_code
        purchase.pix_qr_code_url = charge.qr_code_url
        purchase.pix_expires_at = charge.expires_at
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            await db.refresh(purchase)
            logger.error(
                f"PIX order {charge.order_id} created but not saved for "
                f"purchase {purchase.id}: {e}"
            )
            return charge, "Charge created but could not be saved"

        logger.info(
            f"PIX charge {charge.order_id} created for purchase {purchase.id}"
        )
        return charge, None

    async def _charge_card(
        self,
        db: AsyncSession,
        purchase: Purchase,
        customer: Optional[CustomerProfile],
        address: Optional[UserAddress],
        card_id: str,
    ) -> tuple[Optional[CardCharge], Optional[str]]:
        """
        Charge the saved card and mark the purchase paid when approved.

        Declines and processor failures leave the purchase waiting_payment
        with no order attached, so the buyer can retry with another card.
        """
        blocker = self._charge_blocker(customer, address)
        if blocker:
            return None, blocker

        try:
            charge = await self.payments.create_card_order(
                customer=_order_customer(customer),
                address=_order_address(address),
                amount=purchase.total_amount,
                card_id=card_id,
                installments=purchase.installments,
                description=f"Mercafly purchase {purchase.id}",
                code=str(purchase.id),
            )
        except PagarmeError as e:
            logger.error(
                f"Card charge failed for purchase {purchase.id}: {e.message}",
                extra={"extra_fields": {"response": e.response_data}},
            )
            return None, f"Could not charge card: {e.message}"

        if not charge.approved:
            logger.info(
                f"Card declined for purchase {purchase.id}",
                extra={
                    "extra_fields": {
                        "order_id": charge.order_id,
                        "status": charge.status,
                        "acquirer_message": charge.acquirer_message,
                    }
                },
            )
            return charge, (
                f"Card payment declined: {charge.acquirer_message or charge.status}"
            )

        purchase.gateway_order_id = charge.order_id
        try:
            await db.flush()
            await transition_status(db, purchase.id, SaleStatus.PAID)
        except SQLAlchemyError as e:
            await db.rollback()
            await db.refresh(purchase)
            logger.error(
                f"Card order {charge.order_id} approved but purchase {purchase.id} "
                f"could not be marked paid: {e}"
            )
            return charge, "Card charged but the purchase could not be updated"

        logger.info(
            f"Card charge {charge.order_id} approved for purchase {purchase.id}",
            extra={"extra_fields": {"installments": charge.installments}},
        )
        return charge, None


# ============================================================================
# PURCHASE READS AND TRANSITIONS
# ============================================================================


async def get_purchase_with_sales(
    db: AsyncSession, purchase_id: uuid.UUID, buyer_id: Optional[str] = None
) -> Purchase:
    """Load a purchase and its sales. ``buyer_id`` restricts to the owner."""
    query = (
        select(Purchase)
        .where(Purchase.id == purchase_id)
        .options(selectinload(Purchase.sales))
        .execution_options(populate_existing=True)
    )
    if buyer_id is not None:
        query = query.where(Purchase.buyer_id == buyer_id)
    result = await db.execute(query)
    purchase = result.scalar_one_or_none()
    if not purchase:
        raise PurchaseNotFound(purchase_id)
    return purchase


async def list_buyer_purchases(db: AsyncSession, buyer_id: str) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.buyer_id == buyer_id)
        .options(selectinload(Purchase.sales))
        .execution_options(populate_existing=True)
        .order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())


async def list_store_sales(db: AsyncSession, store_id: uuid.UUID) -> list[StoreSale]:
    result = await db.execute(
        select(StoreSale)
        .where(StoreSale.store_id == store_id)
        .order_by(StoreSale.created_at.desc())
    )
    return list(result.scalars().all())


async def transition_status(
    db: AsyncSession, purchase_id: uuid.UUID, new_status: SaleStatus
) -> Purchase:
    """Move a purchase and every one of its sales to ``new_status`` together."""
    result = await db.execute(
        select(Purchase)
        .where(Purchase.id == purchase_id)
        .options(selectinload(Purchase.sales))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    purchase = result.scalar_one_or_none()
    if not purchase:
        raise PurchaseNotFound(purchase_id)

    current = purchase.status
    if not can_transition(current, new_status):
        raise InvalidStatusTransition(current, new_status)

    purchase.status = new_status
    for sale in purchase.sales:
        sale.status = new_status

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info(
        f"Purchase {purchase_id} moved {current.value} -> {new_status.value}",
        extra={"extra_fields": {"sales": len(purchase.sales)}},
    )
    return purchase
