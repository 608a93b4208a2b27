"""
Melhor Envio API client for shipping quotes.

Only the quote (``/me/shipment/calculate``) endpoint is used; labels and
tracking are handled by sellers directly on Melhor Envio.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.currency import reais_to_centavos

logger = logging.getLogger(__name__)

settings = get_settings()

_NON_DIGIT = re.compile(r"\D")


@dataclass(frozen=True)
class PackageDescriptor:
    """Aggregated parcel for one store's lines (cm, kg, centavos)."""

    height: int
    width: int
    length: int
    weight: float
    insurance_value: int


@dataclass(frozen=True)
class ShippingOption:
    id: str
    company: str
    name: str
    price: int  # in centavos
    delivery_min: int
    delivery_max: int
    error: Optional[str] = None


class ShippingProviderError(Exception):
    """Raised when a quote cannot be obtained from Melhor Envio."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _parse_service(service: dict) -> Optional[ShippingOption]:
    if service.get("error"):
        return None

    try:
        price = reais_to_centavos(service.get("price"))
    except ValueError:
        logger.warning(f"Discarding shipping service with invalid price: {service}")
        return None

    delivery_time = int(service.get("delivery_time") or 0)
    delivery_range = service.get("delivery_range") or {}
    company = service.get("company") or {}

    return ShippingOption(
        id=str(service.get("id")),
        company=company.get("name") or "Transportadora",
        name=service.get("name") or "",
        price=price,
        delivery_min=int(delivery_range.get("min") or delivery_time),
        delivery_max=int(delivery_range.get("max") or delivery_time),
    )


class MelhorEnvioClient:
    """Async client for the Melhor Envio shipping API."""

    def __init__(
        self,
        token: str = None,
        base_url: str = None,
        timeout: float = None,
        services: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token or settings.MELHOR_ENVIO_TOKEN
        self.base_url = (base_url or settings.MELHOR_ENVIO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.SHIPPING_TIMEOUT_SECONDS
        self.services = services or settings.MELHOR_ENVIO_SERVICES
        self._transport = transport
        self._headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
            "User-Agent": settings.MELHOR_ENVIO_USER_AGENT,
        }

    async def calculate(
        self,
        from_postal_code: str,
        to_postal_code: str,
        package: PackageDescriptor,
    ) -> list[ShippingOption]:
        """
        Quote every configured service for one parcel.

        Returns only viable options (services reporting an error are
        dropped). Raises ShippingProviderError on transport or HTTP failure.
        """
        payload = {
            "from": {"postal_code": _NON_DIGIT.sub("", from_postal_code)},
            "to": {"postal_code": _NON_DIGIT.sub("", to_postal_code)},
            "package": {
                "height": package.height,
                "width": package.width,
                "length": package.length,
                "weight": package.weight,
            },
            "options": {
                "insurance_value": package.insurance_value / 100,
                "receipt": False,
                "own_hand": False,
            },
            "services": self.services,
        }

        url = f"{self.base_url}/me/shipment/calculate"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, headers=self._headers, json=payload)
        except httpx.TimeoutException as e:
            raise ShippingProviderError("Shipping quote timed out") from e
        except httpx.RequestError as e:
            raise ShippingProviderError(f"Shipping provider unreachable: {e}") from e

        if not response.is_success:
            logger.error(
                f"Melhor Envio API error: {response.status_code} - {response.text}"
            )
            raise ShippingProviderError(
                message=f"Shipping provider returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ShippingProviderError("Invalid shipping provider response") from e

        # A single service can come back as an object instead of a list
        services = data if isinstance(data, list) else [data]
        options = [
            option
            for option in (_parse_service(s) for s in services if isinstance(s, dict))
            if option is not None
        ]
        return sorted(options, key=lambda o: (o.price, o.delivery_max))


def get_melhor_envio_client() -> MelhorEnvioClient:
    """Get a MelhorEnvioClient instance."""
    return MelhorEnvioClient()
