import json
import time

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture
from storefront.config import reset_settings
from storefront.inventory.product import Product
from storefront.notification import reset_sink, set_sink
from storefront.notification.fake_sink import FakeNotificationSink
from storefront.payment.gateway import FakeGateway, reset_gateway, set_gateway
from storefront.promotion.promo_code import PromoCode


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(scope="session", autouse=True)
def setup_db(storefront_bed):
    from storefront.domain import storefront
    from storefront.utils.db import drop_db, setup_db

    setup_db(storefront)

    yield

    drop_db(storefront)


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def gateway():
    reset_settings()
    fake = FakeGateway(webhook_secret="whsec_test_secret")
    set_gateway(fake)
    yield fake
    reset_gateway()
    reset_settings()


@pytest.fixture(autouse=True)
def sink():
    fake = FakeNotificationSink()
    set_sink(fake)
    yield fake
    reset_sink()


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    def _make(product_id="prod-rose", price=20.0, quantity=10, name=None):
        product = Product(
            id=product_id,
            slug=product_id,
            name=name or product_id.replace("prod-", "").replace("-", " ").title(),
            price=price,
            available_quantity=quantity,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_promo():
    def _make(code="SAVE10", discount_type="percent", value=10.0, **kwargs):
        promo = PromoCode.create(code=code, discount_type=discount_type, value=value, **kwargs)
        current_domain.repository_for(PromoCode).add(promo)
        return promo

    return _make


@pytest.fixture()
def uk_address():
    return {
        "street": "221B Baker Street",
        "city": "London",
        "state": None,
        "postal_code": "NW1 6XE",
        "country": "United Kingdom",
    }


@pytest.fixture()
def contact():
    return {"email": "sam@example.com", "first_name": "Sam", "last_name": "Rivera"}


@pytest.fixture()
def place(contact, uk_address):
    """Place an order straight from ``{product_id: quantity}``."""
    from storefront.order.placement import PlaceOrder, place_order

    def _place(quantities, customer_id="cust-001", session_id=None, promo_code=None, address=None):
        return place_order(
            PlaceOrder(
                customer_id=customer_id,
                session_id=session_id,
                lines=json.dumps([{"product_id": pid, "quantity": qty} for pid, qty in quantities.items()]),
                delivery_address=json.dumps(address or uk_address),
                promo_code=promo_code,
                **contact,
            )
        )

    return _place


# ---------------------------------------------------------------------------
# Webhook fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def webhook_body():
    """Build a raw processor notification body."""

    def _build(event_type, order_id=None, intent_id="pi_fake_0001", event_id=None, **obj_fields):
        if event_type == "charge.refunded":
            obj = {"id": "ch_fake_0001", "object": "charge", "payment_intent": intent_id}
        else:
            obj = {"id": intent_id, "object": "payment_intent"}
        if order_id is not None:
            obj["metadata"] = {"order_id": order_id}
        obj.update(obj_fields)
        event = {
            "id": event_id or f"evt_{time.time_ns()}",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        }
        return json.dumps(event).encode()

    return _build
