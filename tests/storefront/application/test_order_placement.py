"""Application tests for order placement: validation first, then one atomic commit."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.exceptions import EmptyCartError, InsufficientStockError, ProductNotFoundError
from storefront.inventory.product import Product
from storefront.order.order import Order, OrderStatus
from storefront.order.placement import PlaceOrder, lock_keys_for, place_order, requested_quantities
from storefront.promotion.promo_code import PromoCode


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).available_quantity


def _orders():
    return current_domain.repository_for(Order)._dao.query.all().items


@pytest.fixture(autouse=True)
def catalog(make_product):
    make_product("prod-rose", price=22.50, quantity=10)
    make_product("prod-tulip", price=12.00, quantity=1)


class TestPlaceOrder:
    def test_order_is_pending_with_number(self, place):
        result = place({"prod-rose": 2})
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.status == OrderStatus.PENDING.value
        assert order.order_number == result["order_number"]

    def test_totals_are_snapshotted(self, place):
        result = place({"prod-rose": 2})
        pricing = current_domain.repository_for(Order).get(result["order_id"]).pricing
        assert pricing.subtotal == 45.00
        assert pricing.tax_total == 9.00
        assert pricing.shipping_cost == 4.99
        assert pricing.grand_total == 58.99
        assert pricing.currency == "gbp"

    def test_stock_is_reserved(self, place):
        place({"prod-rose": 3})
        assert _stock("prod-rose") == 7

    def test_line_carries_product_name(self, place):
        result = place({"prod-rose": 1})
        line = current_domain.repository_for(Order).get(result["order_id"]).lines[0]
        assert line.product_name == "Rose"
        assert line.unit_price == 22.50

    def test_currency_follows_destination(self, place, uk_address):
        result = place({"prod-rose": 1}, address={**uk_address, "country": "Canada"})
        assert current_domain.repository_for(Order).get(result["order_id"]).pricing.currency == "cad"

    def test_duplicate_lines_are_combined(self):
        assert requested_quantities(
            [{"product_id": "prod-rose", "quantity": 1}, {"product_id": "prod-rose", "quantity": 2}]
        ) == {"prod-rose": 3}

    def test_gift_details(self, contact, uk_address):
        result = place_order(
            PlaceOrder(
                customer_id="cust-001",
                lines=json.dumps([{"product_id": "prod-rose", "quantity": 1}]),
                delivery_address=json.dumps(uk_address),
                gift_occasion="Birthday",
                gift_message="Happy birthday!",
                **contact,
            )
        )
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.gift.message == "Happy birthday!"


class TestLivePrice:
    def test_catalog_price_at_checkout_wins(self, place):
        product = current_domain.repository_for(Product).get("prod-rose")
        product.price = 25.00
        current_domain.repository_for(Product).add(product)

        result = place({"prod-rose": 2})
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.lines[0].unit_price == 25.00
        assert order.pricing.subtotal == 50.00

    def test_order_is_not_repriced_later(self, place):
        result = place({"prod-rose": 1})
        product = current_domain.repository_for(Product).get("prod-rose")
        product.price = 99.00
        current_domain.repository_for(Product).add(product)

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.lines[0].unit_price == 22.50


class TestPlacementAtomicity:
    def test_one_short_line_rejects_the_whole_order(self, place):
        with pytest.raises(InsufficientStockError) as exc:
            place({"prod-rose": 2, "prod-tulip": 2})
        assert exc.value.product_id == "prod-tulip"
        assert exc.value.available == 1
        assert _stock("prod-rose") == 10
        assert _stock("prod-tulip") == 1
        assert _orders() == []

    def test_unknown_product_rejects_the_order(self, place):
        with pytest.raises(ProductNotFoundError):
            place({"prod-rose": 1, "prod-missing": 1})
        assert _stock("prod-rose") == 10
        assert _orders() == []

    def test_empty_lines(self, place):
        with pytest.raises(EmptyCartError):
            place({})

    def test_missing_email_is_rejected(self, uk_address):
        with pytest.raises(ValidationError):
            PlaceOrder(
                lines=json.dumps([{"product_id": "prod-rose", "quantity": 1}]),
                delivery_address=json.dumps(uk_address),
            )

    def test_last_unit_goes_once(self, place):
        place({"prod-tulip": 1})
        with pytest.raises(InsufficientStockError):
            place({"prod-tulip": 1}, customer_id="cust-002")
        assert _stock("prod-tulip") == 0


class TestPromoRedemption:
    def test_discounting_promo_is_redeemed(self, place, make_promo):
        make_promo("SAVE10")
        result = place({"prod-rose": 4}, promo_code="save10")

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.promo_code == "SAVE10"
        assert order.pricing.discount_total == 9.00
        assert current_domain.repository_for(PromoCode).get("SAVE10").used_count == 1

    def test_promo_below_minimum_is_not_redeemed(self, place, make_promo):
        make_promo("BIGSPEND", min_order=500.0)
        result = place({"prod-rose": 1}, promo_code="BIGSPEND")

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.promo_code is None
        assert order.pricing.discount_total == 0.0
        assert current_domain.repository_for(PromoCode).get("BIGSPEND").used_count == 0

    def test_unknown_promo_is_ignored(self, place):
        result = place({"prod-rose": 1}, promo_code="NOPE")
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.promo_code is None

    def test_exhausted_promo_gives_no_discount(self, place, make_promo):
        make_promo("ONCE", discount_type="fixed", value=5.0, max_uses=1)
        place({"prod-rose": 1}, promo_code="ONCE")
        result = place({"prod-rose": 1}, customer_id="cust-002", promo_code="ONCE")

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.pricing.discount_total == 0.0
        assert current_domain.repository_for(PromoCode).get("ONCE").used_count == 1

    def test_lock_keys_cover_products_and_promo(self, contact, uk_address):
        command = PlaceOrder(
            customer_id="cust-001",
            lines=json.dumps([{"product_id": "prod-rose", "quantity": 1}]),
            delivery_address=json.dumps(uk_address),
            promo_code="save10",
            **contact,
        )
        assert lock_keys_for(command) == ["product:prod-rose", "promo:SAVE10"]
