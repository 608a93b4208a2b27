"""Per-store shipping quotes for a multi-seller cart."""

import asyncio
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from libs.common.logging import get_logger
from services.store_service.melhor_envio_client import (
    MelhorEnvioClient,
    PackageDescriptor,
    ShippingOption,
    ShippingProviderError,
)
from services.store_service.services.cart import CartLine, CartSummary

logger = get_logger(__name__)

# Fallbacks when a product has no physical attributes
DEFAULT_WEIGHT_KG = 0.5
DEFAULT_HEIGHT_CM = 10
DEFAULT_WIDTH_CM = 15
DEFAULT_LENGTH_CM = 20

# Carrier limits
MIN_DIMENSION_CM = 1
MAX_DIMENSION_CM = 105
MIN_WEIGHT_KG = 0.1
MAX_WEIGHT_KG = 30.0


@dataclass
class StoreShippingGroup:
    store_id: uuid.UUID
    store_name: str
    lines: list[CartLine] = field(default_factory=list)
    options: list[ShippingOption] = field(default_factory=list)
    has_error: bool = False
    error_message: Optional[str] = None

    @property
    def subtotal(self) -> int:
        return sum(line.subtotal for line in self.lines)

    def find_option(self, option_id: str) -> Optional[ShippingOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


def _clamp_dimension(value: float) -> int:
    return max(MIN_DIMENSION_CM, min(math.ceil(value), MAX_DIMENSION_CM))


def build_package(lines: list[CartLine]) -> PackageDescriptor:
    """
    Aggregate one store's lines into a single parcel.

    Items are placed side by side: width and weight add up, height and
    length take the largest item.
    """
    weight = 0.0
    height = 0.0
    width = 0.0
    length = 0.0
    for line in lines:
        weight += (line.weight_kg or DEFAULT_WEIGHT_KG) * line.quantity
        height = max(height, line.height_cm or DEFAULT_HEIGHT_CM)
        width += (line.width_cm or DEFAULT_WIDTH_CM) * line.quantity
        length = max(length, line.length_cm or DEFAULT_LENGTH_CM)

    return PackageDescriptor(
        height=_clamp_dimension(height),
        width=_clamp_dimension(width),
        length=_clamp_dimension(length),
        weight=round(max(MIN_WEIGHT_KG, min(weight, MAX_WEIGHT_KG)), 3),
        insurance_value=sum(line.subtotal for line in lines),
    )


def group_by_store(cart: CartSummary) -> dict[uuid.UUID, list[CartLine]]:
    groups: dict[uuid.UUID, list[CartLine]] = defaultdict(list)
    for line in cart.lines:
        groups[line.store_id].append(line)
    return groups


class ShippingQuoteAggregator:
    """Fans out one shipping quote per store and collects the results.

    A failing store never affects the others: its group comes back with
    ``has_error`` set and a message for the buyer.
    """

    def __init__(self, provider: MelhorEnvioClient):
        self.provider = provider

    async def quote(self, destination, cart: CartSummary) -> list[StoreShippingGroup]:
        """Quote every store in ``cart`` for delivery to ``destination``."""
        groups = group_by_store(cart)
        results = await asyncio.gather(
            *(
                self._quote_store(destination.postal_code, lines)
                for lines in groups.values()
            )
        )
        return sorted(results, key=lambda g: str(g.store_id))

    async def _quote_store(
        self, destination_postal_code: str, lines: list[CartLine]
    ) -> StoreShippingGroup:
        first = lines[0]
        group = StoreShippingGroup(
            store_id=first.store_id, store_name=first.store_name, lines=lines
        )

        if not first.store_origin_postal_code:
            group.has_error = True
            group.error_message = "Store has no shipping origin address"
            logger.warning(f"Store {first.store_id} has no origin postal code")
            return group

        try:
            options = await self.provider.calculate(
                first.store_origin_postal_code,
                destination_postal_code,
                build_package(lines),
            )
        except ShippingProviderError as e:
            logger.warning(
                f"Shipping quote failed for store {first.store_id}: {e.message}"
            )
            group.has_error = True
            group.error_message = "Could not calculate shipping for this store"
            return group
        except Exception:
            logger.exception(f"Unexpected shipping error for store {first.store_id}")
            group.has_error = True
            group.error_message = "Could not calculate shipping for this store"
            return group

        if not options:
            group.has_error = True
            group.error_message = "No shipping service available for this address"
            return group

        group.options = options
        return group
