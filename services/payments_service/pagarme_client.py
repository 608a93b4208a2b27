"""
Pagar.me API client (Core API v5) for recipients and checkout orders.

Provides async methods for:
- Creating recipients (seller affiliation / KYC)
- Creating PIX orders and saved-card orders for checkout
- Cancelling the open charges of an order
"""

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.datetime_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

settings = get_settings()

# Charges in these states cannot be paid any more
CLOSED_CHARGE_STATUSES = frozenset({"canceled", "failed"})


@dataclass
class Recipient:
    """Recipient created at Pagar.me."""

    id: str
    status: str
    raw: dict = field(default_factory=dict)


@dataclass
class PixCharge:
    """Result of creating a PIX order."""

    order_id: str
    status: str
    amount: int  # in centavos
    qr_code: Optional[str] = None
    qr_code_url: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class CardCharge:
    """Result of charging a saved credit card."""

    order_id: str
    status: str
    amount: int  # in centavos
    installments: int
    approved: bool
    acquirer_message: Optional[str] = None


@dataclass
class OrderCustomer:
    """Buyer identity sent with a checkout order."""

    name: str
    email: str
    document: str  # CPF, digits only
    phone_area_code: str = "11"
    phone_number: str = "999999999"


@dataclass
class OrderAddress:
    street: str
    number: str
    city: str
    state: str
    zip_code: str
    complement: Optional[str] = None

    @property
    def line_1(self) -> str:
        line = f"{self.street}, {self.number}"
        if self.complement:
            line = f"{line}, {self.complement}"
        return line


class PagarmeError(Exception):
    """Base exception for Pagar.me API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _digits(value: Optional[str]) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def _last_transaction(order: dict) -> dict:
    charges = order.get("charges") or []
    if not charges or not isinstance(charges[0], dict):
        return {}
    return charges[0].get("last_transaction") or {}


class PagarmeClient:
    """Async client for the Pagar.me Core API."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.PAGARME_API_KEY
        if not self.api_key:
            raise ValueError("PAGARME_API_KEY is required")
        self.base_url = (base_url or settings.PAGARME_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAGARME_TIMEOUT_SECONDS
        self._transport = transport
        basic = base64.b64encode(f"{self.api_key}:".encode("utf-8")).decode("ascii")
        self._headers = {
            "Authorization": f"Basic {basic}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
    ) -> dict:
        """Make an async request to the Pagar.me API."""
        url = f"{self.base_url}{endpoint}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._headers,
                    json=json_data,
                )
        except httpx.TimeoutException as e:
            raise PagarmeError(f"Pagar.me request timed out: {endpoint}") from e
        except httpx.RequestError as e:
            raise PagarmeError(f"Pagar.me unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            if not isinstance(data, dict):
                data = {"message": str(data), "errors": data}
            logger.error(f"Pagar.me API error: {response.status_code} - {data}")
            raise PagarmeError(
                message=str(data.get("message") or "Unknown Pagar.me error"),
                status_code=response.status_code,
                response_data=data,
            )

        if not isinstance(data, dict):
            raise PagarmeError(
                f"Unexpected Pagar.me response for {endpoint}",
                status_code=response.status_code,
                response_data={"body": data},
            )

        return data

    # =========================================================================
    # Recipient Methods
    # =========================================================================

    async def create_recipient(self, register_information: dict) -> Recipient:
        """
        Create a recipient (payable seller account).

        The returned recipient id is stored as the affiliation account's
        external id; its status then evolves through recipient.updated webhooks.
        """
        payload = {"register_information": register_information}
        bank_account = register_information.get("default_bank_account")
        if bank_account:
            payload["default_bank_account"] = bank_account

        data = await self._request("POST", "/recipients", json_data=payload)

        recipient_id = data.get("id")
        if not recipient_id:
            raise PagarmeError("Recipient response missing id", response_data=data)

        return Recipient(id=recipient_id, status=data.get("status", "pending"), raw=data)

    # =========================================================================
    # Order Methods
    # =========================================================================

    def _order_payload(
        self,
        *,
        customer: OrderCustomer,
        address: OrderAddress,
        amount: int,
        description: str,
        code: str,
        payment: dict,
    ) -> dict:
        return {
            "code": code,
            "customer": {
                "name": customer.name,
                "email": customer.email,
                "type": "individual",
                "document": _digits(customer.document),
                "document_type": "CPF",
                "address": {
                    "country": "BR",
                    "state": address.state,
                    "city": address.city,
                    "zip_code": _digits(address.zip_code),
                    "line_1": address.line_1,
                },
                "phones": {
                    "mobile_phone": {
                        "country_code": "55",
                        "area_code": customer.phone_area_code,
                        "number": customer.phone_number,
                    }
                },
            },
            "items": [
                {
                    "amount": amount,
                    "quantity": 1,
                    "description": description,
                    "code": code,
                }
            ],
            "payments": [{"amount": amount, **payment}],
        }

    async def create_pix_order(
        self,
        *,
        customer: OrderCustomer,
        address: OrderAddress,
        amount: int,
        description: str,
        code: str,
        expires_in: int = None,
    ) -> PixCharge:
        """
        Create a single-item PIX order for ``amount`` centavos.

        Returns the order id plus the QR code payload of its first charge.
        The order stays pending until the buyer pays.
        """
        payload = self._order_payload(
            customer=customer,
            address=address,
            amount=amount,
            description=description,
            code=code,
            payment={
                "payment_method": "pix",
                "pix": {"expires_in": expires_in or settings.PIX_EXPIRES_IN_SECONDS},
            },
        )

        data = await self._request("POST", "/orders", json_data=payload)

        order_id = data.get("id")
        if not order_id:
            raise PagarmeError("Order response missing id", response_data=data)

        transaction = _last_transaction(data)

        return PixCharge(
            order_id=order_id,
            status=data.get("status", "pending"),
            amount=data.get("amount", amount),
            qr_code=transaction.get("qr_code"),
            qr_code_url=transaction.get("qr_code_url"),
            expires_at=parse_iso_datetime(transaction.get("expires_at")),
        )

    async def create_card_order(
        self,
        *,
        customer: OrderCustomer,
        address: OrderAddress,
        amount: int,
        card_id: str,
        installments: int,
        description: str,
        code: str,
    ) -> CardCharge:
        """
        Charge a saved card (auth and capture) for ``amount`` centavos.

        A declined card is not an error: the returned charge has
        ``approved=False`` and carries the acquirer message.
        """
        payload = self._order_payload(
            customer=customer,
            address=address,
            amount=amount,
            description=description,
            code=code,
            payment={
                "payment_method": "credit_card",
                "credit_card": {
                    "card_id": card_id,
                    "installments": installments,
                    "operation_type": "auth_and_capture",
                    "statement_descriptor": settings.PAGARME_STATEMENT_DESCRIPTOR,
                },
            },
        )

        data = await self._request("POST", "/orders", json_data=payload)

        order_id = data.get("id")
        if not order_id:
            raise PagarmeError("Order response missing id", response_data=data)

        transaction = _last_transaction(data)
        order_status = data.get("status", "failed")

        return CardCharge(
            order_id=order_id,
            status=order_status,
            amount=data.get("amount", amount),
            installments=installments,
            approved=order_status == "paid",
            acquirer_message=transaction.get("acquirer_message"),
        )

    async def cancel_order(self, order_id: str) -> list[str]:
        """
        Cancel every open charge of an order so it can no longer be paid.

        Returns the ids of the charges cancelled; charges already canceled
        or failed are left alone.
        """
        order = await self._request("GET", f"/orders/{order_id}")

        cancelled = []
        for charge in order.get("charges") or []:
            charge_id = charge.get("id") if isinstance(charge, dict) else None
            if not charge_id or charge.get("status") in CLOSED_CHARGE_STATUSES:
                continue
            await self._request("DELETE", f"/charges/{charge_id}")
            cancelled.append(charge_id)

        logger.info(f"Pagar.me order {order_id} cancelled charges: {cancelled}")
        return cancelled


def get_pagarme_client() -> PagarmeClient:
    """Get a PagarmeClient instance (FastAPI dependency)."""
    return PagarmeClient()
