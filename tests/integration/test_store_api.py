"""Integration tests for the store service HTTP API: cart to purchase lifecycle."""

import uuid
from types import SimpleNamespace

import pytest
from services.payments_service.models import AffiliationStatus
from services.payments_service.pagarme_client import (
    CardCharge,
    PagarmeError,
    PixCharge,
)
from services.store_service.app.main import app
from services.store_service.melhor_envio_client import (
    ShippingOption,
    ShippingProviderError,
)
from services.store_service.models import Purchase, SaleStatus, StoreSale
from services.store_service.routers._helpers import (
    get_checkout_orchestrator,
    get_shipping_aggregator,
)
from services.store_service.services.checkout import CheckoutOrchestrator
from services.store_service.services.shipping import ShippingQuoteAggregator
from sqlalchemy import func, select
from tests.factories import (
    AccountGatewayFactory,
    CustomerProfileFactory,
    ProductFactory,
    StoreProfileFactory,
    UserAddressFactory,
)

ORIGIN_A = "01310100"
ORIGIN_B = "20040002"
ORIGIN_DOWN = "30110000"


class FakeProvider:
    """Quotes by origin postal code; an origin mapped to None is down."""

    def __init__(self):
        self.fees = {ORIGIN_A: 1500, ORIGIN_B: 2000, ORIGIN_DOWN: None}

    async def calculate(self, from_postal_code, to_postal_code, package):
        fee = self.fees[from_postal_code]
        if fee is None:
            raise ShippingProviderError("Shipping provider returned 503", status_code=503)
        return [
            ShippingOption(
                id="1", company="Correios", name="PAC", price=fee, delivery_min=3, delivery_max=7
            ),
            ShippingOption(
                id="2", company="Correios", name="SEDEX", price=fee * 2, delivery_min=1, delivery_max=2
            ),
        ]


@pytest.fixture
def provider(store_client):
    fake = FakeProvider()
    app.dependency_overrides[get_shipping_aggregator] = lambda: ShippingQuoteAggregator(fake)
    app.dependency_overrides[get_checkout_orchestrator] = lambda: CheckoutOrchestrator()
    return fake


async def _catalog(db, origins=(ORIGIN_A, ORIGIN_B), price=10000):
    """Approved stores with one product each, plus the buyer's address."""
    products = []
    for origin in origins:
        store = StoreProfileFactory.create(origin_postal_code=origin)
        product = ProductFactory.create(store_id=store.id, price=price)
        account = AccountGatewayFactory.create(
            user_id=store.owner_user_id, status=AffiliationStatus.APPROVED
        )
        db.add_all([store, product, account])
        products.append(SimpleNamespace(id=product.id, store_id=store.id, owner=store.owner_user_id))

    address = UserAddressFactory.create("buyer-1")
    db.add(address)
    await db.commit()
    return SimpleNamespace(products=products, address_id=address.id)


async def _fill_cart(client, catalog):
    for product in catalog.products:
        response = await client.post(
            "/store/cart/items", json={"product_id": str(product.id), "quantity": 1}
        )
        assert response.status_code == 200


def _checkout_body(catalog, **overrides):
    body = {
        "address_id": str(catalog.address_id),
        "payment_method": "boleto",
        "shipping_selections": {str(p.store_id): "1" for p in catalog.products},
    }
    body.update(overrides)
    return body


async def _count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Cart and addresses
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_lifecycle(store_client, db_session):
    catalog = await _catalog(db_session)
    product = catalog.products[0]

    added = await store_client.post(
        "/store/cart/items", json={"product_id": str(product.id), "quantity": 2}
    )
    assert added.status_code == 200
    assert added.json()["total_items"] == 2
    assert added.json()["total_value"] == 20000
    assert added.json()["total_value_formatted"] == "R$ 200,00"

    line_id = added.json()["lines"][0]["id"]
    updated = await store_client.patch(f"/store/cart/items/{line_id}", json={"quantity": 1})
    assert updated.json()["total_items"] == 1

    removed = await store_client.delete(f"/store/cart/items/{line_id}")
    assert removed.json()["lines"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_errors(store_client, db_session):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))

    unknown = await store_client.post(
        "/store/cart/items", json={"product_id": str(uuid.uuid4()), "quantity": 1}
    )
    too_many = await store_client.post(
        "/store/cart/items",
        json={"product_id": str(catalog.products[0].id), "quantity": 50},
    )
    missing_line = await store_client.delete(f"/store/cart/items/{uuid.uuid4()}")

    assert unknown.status_code == 404
    assert too_many.status_code == 422
    assert missing_line.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_clear_cart(store_client, db_session):
    catalog = await _catalog(db_session)
    await _fill_cart(store_client, catalog)

    response = await store_client.delete("/store/cart")

    assert response.status_code == 200
    assert response.json()["total_items"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_addresses(store_client):
    created = await store_client.post(
        "/store/addresses",
        json={
            "recipient_name": "Maria Silva",
            "street": "Rua das Flores",
            "number": "10",
            "neighborhood": "Centro",
            "city": "Campinas",
            "state": "sp",
            "postal_code": "13010-000",
        },
    )
    listed = await store_client.get("/store/addresses")

    assert created.status_code == 201
    assert created.json()["state"] == "SP"
    assert created.json()["postal_code"] == "13010000"
    assert [a["id"] for a in listed.json()] == [created.json()["id"]]


# ---------------------------------------------------------------------------
# Shipping quote
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_quote_returns_one_group_per_store(store_client, db_session, provider):
    catalog = await _catalog(db_session, origins=(ORIGIN_A, ORIGIN_DOWN))
    await _fill_cart(store_client, catalog)

    response = await store_client.post(
        "/store/shipping/quote", json={"address_id": str(catalog.address_id)}
    )

    assert response.status_code == 200
    groups = {g["store_id"]: g for g in response.json()}
    ok = groups[str(catalog.products[0].store_id)]
    down = groups[str(catalog.products[1].store_id)]
    assert ok["has_error"] is False
    assert ok["subtotal"] == 10000
    assert [o["price"] for o in ok["options"]] == [1500, 3000]
    assert down["has_error"] is True
    assert down["options"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_quote_with_unknown_address_is_404(store_client, provider):
    response = await store_client.post(
        "/store/shipping/quote", json={"address_id": str(uuid.uuid4())}
    )
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_two_store_checkout(store_client, db_session, provider):
    catalog = await _catalog(db_session)
    await _fill_cart(store_client, catalog)

    response = await store_client.post("/store/purchases", json=_checkout_body(catalog))

    assert response.status_code == 201
    body = response.json()
    assert body["purchase"]["product_amount"] == 20000
    assert body["purchase"]["shipping_fee"] == 3500
    assert body["purchase"]["total_amount"] == 23500
    assert body["purchase"]["status"] == "waiting_payment"
    assert len(body["sales"]) == 2
    assert {s["status"] for s in body["sales"]} == {"waiting_payment"}
    assert sum(s["amount"] for s in body["sales"]) == 20000

    cart = await store_client.get("/store/cart")
    assert cart.json()["lines"] == []

    detail = await store_client.get(f"/store/purchases/{body['purchase']['id']}")
    assert detail.status_code == 200
    assert len(detail.json()["sales"]) == 2

    listed = await store_client.get("/store/purchases")
    assert [p["purchase"]["id"] for p in listed.json()] == [body["purchase"]["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_uses_selected_option_price(store_client, db_session, provider):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))
    await _fill_cart(store_client, catalog)
    selections = {str(catalog.products[0].store_id): "2"}

    response = await store_client.post(
        "/store/purchases", json=_checkout_body(catalog, shipping_selections=selections)
    )

    assert response.status_code == 201
    assert response.json()["purchase"]["shipping_fee"] == 3000


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_missing_selection_is_422(store_client, db_session, provider):
    catalog = await _catalog(db_session)
    await _fill_cart(store_client, catalog)
    selections = {str(catalog.products[0].store_id): "1"}

    response = await store_client.post(
        "/store/purchases", json=_checkout_body(catalog, shipping_selections=selections)
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["kind"] == "validation"
    assert detail["missing_store_ids"] == [str(catalog.products[1].store_id)]
    assert await _count(db_session, Purchase) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_failed_store_quote_is_502(store_client, db_session, provider):
    catalog = await _catalog(db_session, origins=(ORIGIN_A, ORIGIN_DOWN))
    await _fill_cart(store_client, catalog)
    selections = {str(catalog.products[0].store_id): "1"}

    response = await store_client.post(
        "/store/purchases", json=_checkout_body(catalog, shipping_selections=selections)
    )

    assert response.status_code == 502
    assert response.json()["detail"]["store_ids"] == [str(catalog.products[1].store_id)]
    assert await _count(db_session, Purchase) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_empty_cart_is_422(store_client, db_session, provider):
    catalog = await _catalog(db_session)

    response = await store_client.post("/store/purchases", json=_checkout_body(catalog))

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_second_checkout_of_same_cart_finds_it_empty(store_client, db_session, provider):
    catalog = await _catalog(db_session)
    await _fill_cart(store_client, catalog)

    first = await store_client.post("/store/purchases", json=_checkout_body(catalog))
    second = await store_client.post("/store/purchases", json=_checkout_body(catalog))

    assert first.status_code == 201
    assert second.status_code == 422
    assert await _count(db_session, Purchase) == 1
    assert await _count(db_session, StoreSale) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_pix_checkout_without_processor_reports_charge_error(
    store_client, db_session, provider
):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))
    await _fill_cart(store_client, catalog)

    response = await store_client.post(
        "/store/purchases", json=_checkout_body(catalog, payment_method="pix")
    )

    assert response.status_code == 201
    assert response.json()["charge"] is None
    assert response.json()["charge_error"]
    assert response.json()["purchase"]["status"] == "waiting_payment"


# ---------------------------------------------------------------------------
# Purchase lifecycle
# ---------------------------------------------------------------------------


async def _purchase(store_client, db_session):
    catalog = await _catalog(db_session)
    await _fill_cart(store_client, catalog)
    response = await store_client.post("/store/purchases", json=_checkout_body(catalog))
    assert response.status_code == 201
    return catalog, response.json()["purchase"]["id"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_buyer_cancels_then_cannot_cancel_again(store_client, db_session, provider):
    _, purchase_id = await _purchase(store_client, db_session)

    cancel = await store_client.post(f"/store/purchases/{purchase_id}/cancel")
    again = await store_client.post(f"/store/purchases/{purchase_id}/cancel")

    assert cancel.status_code == 200
    assert cancel.json()["purchase"]["status"] == "canceled"
    assert {s["status"] for s in cancel.json()["sales"]} == {"canceled"}
    assert again.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_moves_purchase_and_sales_together(
    store_client, db_session, provider, auth_state, admin_user
):
    _, purchase_id = await _purchase(store_client, db_session)
    auth_state["user"] = admin_user

    paid = await store_client.patch(
        f"/admin/store/purchases/{purchase_id}/status", json={"status": "paid"}
    )
    invalid = await store_client.patch(
        f"/admin/store/purchases/{purchase_id}/status", json={"status": "delivered"}
    )

    assert paid.status_code == 200
    assert paid.json()["purchase"]["status"] == "paid"
    assert {s["status"] for s in paid.json()["sales"]} == {"paid"}
    assert invalid.status_code == 409

    result = await db_session.execute(select(StoreSale.status))
    assert set(result.scalars().all()) == {SaleStatus.PAID}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_change_requires_admin(store_client, db_session, provider):
    _, purchase_id = await _purchase(store_client, db_session)

    response = await store_client.patch(
        f"/admin/store/purchases/{purchase_id}/status", json={"status": "paid"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_buyer_cannot_see_purchase(store_client, db_session, provider, auth_state):
    from libs.auth.models import AuthUser

    _, purchase_id = await _purchase(store_client, db_session)
    auth_state["user"] = AuthUser(user_id="buyer-2")

    response = await store_client.get(f"/store/purchases/{purchase_id}")

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_store_sales_visible_to_owner_only(store_client, db_session, provider, auth_state):
    from libs.auth.models import AuthUser

    catalog, _ = await _purchase(store_client, db_session)
    product = catalog.products[0]

    denied = await store_client.get(f"/store/stores/{product.store_id}/sales")
    auth_state["user"] = AuthUser(user_id=product.owner)
    allowed = await store_client.get(f"/store/stores/{product.store_id}/sales")
    missing = await store_client.get(f"/store/stores/{uuid.uuid4()}/sales")

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert len(allowed.json()) == 1
    assert allowed.json()[0]["amount"] == 10000
    assert missing.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(store_client):
    response = await store_client.get("/health")
    assert response.json()["service"] == "store"


# ---------------------------------------------------------------------------
# Card payments and processor cancellation
# ---------------------------------------------------------------------------


class FakeGateway:
    """Processor double: PIX orders, card orders and order cancellation."""

    def __init__(self, approve_card=True, cancel_error=None):
        self.approve_card = approve_card
        self.cancel_error = cancel_error
        self.orders = 0
        self.cancelled = []

    async def create_pix_order(self, **kwargs):
        self.orders += 1
        return PixCharge(
            order_id=f"or_{self.orders}", status="pending", amount=kwargs["amount"]
        )

    async def create_card_order(self, **kwargs):
        self.orders += 1
        return CardCharge(
            order_id=f"or_{self.orders}",
            status="paid" if self.approve_card else "failed",
            amount=kwargs["amount"],
            installments=kwargs["installments"],
            approved=self.approve_card,
            acquirer_message=None if self.approve_card else "Transacao negada",
        )

    async def cancel_order(self, order_id):
        if self.cancel_error:
            raise self.cancel_error
        self.cancelled.append(order_id)
        return []


@pytest.fixture
def gateway(provider):
    fake = FakeGateway()
    app.dependency_overrides[get_checkout_orchestrator] = lambda: CheckoutOrchestrator(
        payments=fake
    )
    return fake


async def _buyer_profile(db):
    db.add(CustomerProfileFactory.create("buyer-1"))
    await db.commit()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_credit_card_without_card_is_rejected(store_client, db_session, provider):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))
    await _fill_cart(store_client, catalog)

    response = await store_client.post(
        "/store/purchases",
        json=_checkout_body(catalog, payment_method="credit_card", installments=2),
    )

    assert response.status_code == 422
    assert await _count(db_session, Purchase) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_approved_card_checkout_is_paid(store_client, db_session, gateway):
    catalog = await _catalog(db_session)
    await _buyer_profile(db_session)
    await _fill_cart(store_client, catalog)

    response = await store_client.post(
        "/store/purchases",
        json=_checkout_body(
            catalog, payment_method="credit_card", installments=3, card_id="card_ok"
        ),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["charge_error"] is None
    assert body["card_charge"]["approved"] is True
    assert body["card_charge"]["installments"] == 3
    assert body["purchase"]["status"] == "paid"
    assert {s["status"] for s in body["sales"]} == {"paid"}

    retry = await store_client.post(
        f"/store/purchases/{body['purchase']['id']}/card-charge",
        json={"card_id": "card_ok"},
    )
    assert retry.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_declined_card_can_be_retried(store_client, db_session, gateway):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))
    await _buyer_profile(db_session)
    await _fill_cart(store_client, catalog)
    gateway.approve_card = False

    response = await store_client.post(
        "/store/purchases",
        json=_checkout_body(
            catalog, payment_method="credit_card", installments=1, card_id="card_bad"
        ),
    )
    purchase_id = response.json()["purchase"]["id"]

    assert response.status_code == 201
    assert response.json()["purchase"]["status"] == "waiting_payment"
    assert "declined" in response.json()["charge_error"]

    declined = await store_client.post(
        f"/store/purchases/{purchase_id}/card-charge", json={"card_id": "card_bad"}
    )
    assert declined.status_code == 402

    gateway.approve_card = True
    approved = await store_client.post(
        f"/store/purchases/{purchase_id}/card-charge", json={"card_id": "card_new"}
    )
    assert approved.status_code == 200
    assert approved.json()["approved"] is True

    detail = await store_client.get(f"/store/purchases/{purchase_id}")
    assert detail.json()["purchase"]["status"] == "paid"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_closes_pix_order(store_client, db_session, gateway):
    catalog = await _catalog(db_session, origins=(ORIGIN_A,))
    await _buyer_profile(db_session)
    await _fill_cart(store_client, catalog)
    created = await store_client.post(
        "/store/purchases", json=_checkout_body(catalog, payment_method="pix")
    )
    purchase_id = created.json()["purchase"]["id"]

    gateway.cancel_error = PagarmeError("unavailable", status_code=503)
    failed = await store_client.post(f"/store/purchases/{purchase_id}/cancel")
    assert failed.status_code == 502
    assert gateway.cancelled == []

    gateway.cancel_error = None
    cancel = await store_client.post(f"/store/purchases/{purchase_id}/cancel")

    assert created.json()["purchase"]["gateway_order_id"] == "or_1"
    assert cancel.status_code == 200
    assert cancel.json()["purchase"]["status"] == "canceled"
    assert gateway.cancelled == ["or_1"]
