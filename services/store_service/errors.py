"""Domain errors raised by store services and translated by routers."""

import uuid
from typing import Iterable, Optional

from services.store_service.models import SaleStatus


class CheckoutError(Exception):
    """Base class for checkout and purchase lifecycle failures.

    ``kind`` is one of: validation, conflict, upstream, state, not_found,
    payment.
    """

    kind = "validation"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EmptyCartError(CheckoutError):
    def __init__(self):
        super().__init__("Cart is empty")


class CartValidationError(CheckoutError):
    def __init__(self, issues: list[str]):
        self.issues = issues
        super().__init__("; ".join(issues) or "Cart is not valid for checkout")


class IncompleteShippingSelection(CheckoutError):
    def __init__(self, missing_store_ids: Iterable[uuid.UUID]):
        self.missing_store_ids = sorted(missing_store_ids, key=str)
        stores = ", ".join(str(s) for s in self.missing_store_ids)
        super().__init__(f"Select a shipping option for store(s): {stores}")


class ShippingOptionNotFound(CheckoutError):
    def __init__(self, store_id: uuid.UUID, option_id: str):
        self.store_id = store_id
        self.option_id = option_id
        super().__init__(
            f"Shipping option {option_id} is not available for store {store_id}"
        )


class InvalidInstallments(CheckoutError):
    def __init__(self, installments: Optional[int]):
        self.installments = installments
        super().__init__("Credit card payments require 1 to 12 installments")


class MissingCardError(CheckoutError):
    def __init__(self):
        super().__init__("Credit card payments require a saved card")


class StoreNotAffiliatedError(CheckoutError):
    def __init__(self, store_ids: Iterable[uuid.UUID]):
        self.store_ids = sorted(store_ids, key=str)
        stores = ", ".join(str(s) for s in self.store_ids)
        super().__init__(f"Store(s) not enabled to sell: {stores}")


class ShippingUnavailableError(CheckoutError):
    kind = "upstream"

    def __init__(self, store_ids: Iterable[uuid.UUID]):
        self.store_ids = sorted(store_ids, key=str)
        stores = ", ".join(str(s) for s in self.store_ids)
        super().__init__(
            f"Shipping could not be quoted for store(s): {stores}. Try again."
        )


class CartConflictError(CheckoutError):
    kind = "conflict"

    def __init__(self):
        super().__init__("Cart changed during checkout; it was already purchased")


class InvalidStatusTransition(CheckoutError):
    kind = "state"

    def __init__(self, current: SaleStatus, new: SaleStatus):
        self.current = current
        self.new = new
        super().__init__(f"Cannot move purchase from {current.value} to {new.value}")


class PurchaseStateError(CheckoutError):
    kind = "state"


class NotFoundError(CheckoutError):
    kind = "not_found"


class PurchaseNotFound(NotFoundError):
    def __init__(self, purchase_id: uuid.UUID):
        self.purchase_id = purchase_id
        super().__init__("Purchase not found")


class ChargeFailedError(CheckoutError):
    kind = "upstream"


class CardDeclinedError(CheckoutError):
    kind = "payment"

    def __init__(self, message: str, order_id: Optional[str] = None):
        self.order_id = order_id
        super().__init__(message)


class OrderCancelFailedError(CheckoutError):
    """The processor order could not be closed; the purchase is left as is."""

    kind = "upstream"

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        super().__init__(f"Could not cancel payment order {order_id}: {reason}")
