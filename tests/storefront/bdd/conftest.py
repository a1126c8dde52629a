"""Shared BDD fixtures and step definitions for the Storefront."""

import pytest
from protean import current_domain
from storefront.cart.cart import Cart
from storefront.cart.lines import AddCartLine
from storefront.cart.promo import ApplyPromoCode
from storefront.checkout.flow import checkout
from storefront.exceptions import GatewayError
from storefront.inventory.product import Product
from storefront.order.order import Order
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the exception a When step raised."""
    return {"exc": None}


@pytest.fixture()
def placed():
    """The order the scenario is about: ``order_id`` and ``intent_id``."""
    return {}


def _capture(error, func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001
        error["exc"] = exc
        return None


def _add_to_cart(quantity, product_id, **owner):
    current_domain.process(AddCartLine(product_id=product_id, quantity=quantity, **owner), asynchronous=False)


def _checkout(session_id, country, contact, uk_address, placed):
    try:
        result = checkout(contact=contact, delivery_address={**uk_address, "country": country}, session_id=session_id)
    except GatewayError as exc:
        placed["order_id"] = exc.order_id
        raise
    placed.update(result)
    return result


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{product_id}" priced {price:f} with {quantity:d} in stock'))
def _(make_product, product_id, price, quantity):
    make_product(product_id, price=price, quantity=quantity)


@given(parsers.cfparse('a percent promo code "{code}" worth {value:d}'))
def _(make_promo, code, value):
    make_promo(code, discount_type="percent", value=float(value))


@given(parsers.cfparse('the guest "{session_id}" has {quantity:d} of "{product_id}" in the cart'))
def _(session_id, quantity, product_id):
    _add_to_cart(quantity, product_id, session_id=session_id)


@given(parsers.cfparse('the customer "{customer_id}" has {quantity:d} of "{product_id}" in the cart'))
def _(customer_id, quantity, product_id):
    _add_to_cart(quantity, product_id, customer_id=customer_id)


@given(parsers.cfparse('the guest "{session_id}" applies promo code "{code}"'))
def _(session_id, code):
    current_domain.process(ApplyPromoCode(session_id=session_id, code=code), asynchronous=False)


@given("the payment processor is unavailable")
def _(gateway):
    gateway.configure(should_time_out=True)


@given(parsers.cfparse('the guest "{session_id}" has checked out to "{country}"'))
def _(session_id, country, contact, uk_address, placed):
    _checkout(session_id, country, contact, uk_address, placed)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the guest "{session_id}" adds {quantity:d} of "{product_id}"'))
def _(error, session_id, quantity, product_id):
    _capture(error, _add_to_cart, quantity, product_id, session_id=session_id)


@when(parsers.cfparse('the guest "{session_id}" checks out to "{country}"'))
def _(error, session_id, country, contact, uk_address, placed):
    _capture(error, _checkout, session_id, country, contact, uk_address, placed)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request fails with "{error_name}"'))
def _(error, error_name):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_name


@then(parsers.cfparse('the stock of "{product_id}" is {quantity:d}'))
def _(product_id, quantity):
    assert current_domain.repository_for(Product).get(product_id).available_quantity == quantity


@then(parsers.cfparse('the order status is "{status}"'))
def _(placed, status):
    assert current_domain.repository_for(Order).get(placed["order_id"]).status == status


@then(parsers.cfparse('the guest "{session_id}" has an empty cart'))
def _(session_id):
    cart = current_domain.repository_for(Cart).for_owner(session_id=session_id)
    assert cart is None or not cart.lines


@then(parsers.cfparse('the guest "{session_id}" still has a cart'))
def _(session_id):
    cart = current_domain.repository_for(Cart).for_owner(session_id=session_id)
    assert cart is not None and cart.lines
