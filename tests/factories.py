"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    store = StoreProfileFactory.create(owner_user_id="seller-1")
    db_session.add(store)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timezone

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_user_id(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Payments Service
# ---------------------------------------------------------------------------


class AccountGatewayFactory:
    @staticmethod
    def create(**overrides):
        from services.payments_service.models import (
            AccountGateway,
            AffiliationStatus,
            PaymentGatewayType,
        )

        defaults = {
            "id": _uuid(),
            "user_id": _unique_user_id("seller"),
            "payment_gateway": PaymentGatewayType.PAGARME,
            "external_id": f"rp_{uuid.uuid4().hex[:16]}",
            "status": AffiliationStatus.PENDING,
            "affiliation_url": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return AccountGateway(**defaults)


# ---------------------------------------------------------------------------
# Store Service
# ---------------------------------------------------------------------------


class StoreProfileFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import StoreProfile

        defaults = {
            "id": _uuid(),
            "owner_user_id": _unique_user_id("seller"),
            "name": "Loja Teste",
            "origin_postal_code": "01310100",
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return StoreProfile(**defaults)


class ProductFactory:
    @staticmethod
    def create(store_id=None, **overrides):
        from services.store_service.models import Product

        defaults = {
            "id": _uuid(),
            "store_id": store_id or _uuid(),
            "name": f"Produto {uuid.uuid4().hex[:4]}",
            "price": 5000,  # R$ 50,00
            "stock": 10,
            "is_available": True,
            "weight_kg": 0.3,
            "height_cm": 5,
            "width_cm": 10,
            "length_cm": 15,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Product(**defaults)


class CartItemFactory:
    @staticmethod
    def create(buyer_id: str, product_id, **overrides):
        from services.store_service.models import CartItem

        defaults = {
            "id": _uuid(),
            "buyer_id": buyer_id,
            "product_id": product_id,
            "quantity": 1,
            "purchase_id": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return CartItem(**defaults)


class UserAddressFactory:
    @staticmethod
    def create(user_id: str, **overrides):
        from services.store_service.models import UserAddress

        defaults = {
            "id": _uuid(),
            "user_id": user_id,
            "recipient_name": "Maria Silva",
            "street": "Rua das Flores",
            "number": "123",
            "neighborhood": "Centro",
            "city": "Campinas",
            "state": "SP",
            "postal_code": "13010000",
            "complement": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return UserAddress(**defaults)


class CustomerProfileFactory:
    @staticmethod
    def create(user_id: str, **overrides):
        from services.store_service.models import CustomerProfile

        defaults = {
            "id": _uuid(),
            "user_id": user_id,
            "full_name": "Maria Silva",
            "email": "maria@example.com",
            "document": "12345678909",
            "phone_area_code": "19",
            "phone_number": "991234567",
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return CustomerProfile(**defaults)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


def registration_payload(**overrides) -> dict:
    """Valid individual ``register_information`` for the affiliation endpoint."""
    payload = {
        "type": "individual",
        "email": "seller@example.com",
        "document": "123.456.789-09",
        "name": "João Vendedor",
        "mother_name": "Maria Vendedora",
        "birthdate": "1990-05-20",
        "monthly_income": 500000,
        "professional_occupation": "Comerciante",
        "phone_numbers": [{"ddd": "11", "number": "987654321"}],
        "address": {
            "street": "Av. Paulista",
            "street_number": "1000",
            "neighborhood": "Bela Vista",
            "city": "São Paulo",
            "state": "SP",
            "zip_code": "01310-100",
        },
        "default_bank_account": {
            "holder_name": "João Vendedor",
            "holder_document": "12345678909",
            "bank": "341",
            "branch_number": "1234",
            "account_number": "12345",
            "account_check_digit": "6",
        },
    }
    payload.update(overrides)
    return payload
