"""Read-side view of a cart: lines plus indicative totals.

Totals here use the snapshot prices stored on the lines, so they are a
preview; checkout re-prices every line from the live catalog.
"""

from decimal import Decimal

from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.exceptions import EmptyCartError, PromoCodeNotFoundError
from storefront.inventory import guard
from storefront.pricing.engine import PricedLine, Totals, compute_totals
from storefront.pricing.rates import currency_for_country
from storefront.promotion.promo_code import find_promo_code


def priced_lines(cart: Cart) -> list[PricedLine]:
    return [
        PricedLine(product_id=str(line.product_id), quantity=line.quantity, unit_price=Decimal(str(line.price)))
        for line in cart.lines
    ]


def promo_terms_for(code):
    if not code:
        return None
    try:
        return find_promo_code(code).terms()
    except PromoCodeNotFoundError:
        return None


def preview_totals(cart: Cart | None, country: str) -> Totals:
    currency = currency_for_country(country)
    if cart is None:
        return compute_totals([], country, currency=currency)
    return compute_totals(priced_lines(cart), country, promo=promo_terms_for(cart.promo_code), currency=currency)


def cart_view(customer_id=None, session_id=None, country: str = "United Kingdom") -> dict:
    cart = current_domain.repository_for(Cart).for_owner(customer_id, session_id)
    totals = preview_totals(cart, country)
    lines = []
    if cart is not None:
        lines = [
            {
                "line_id": str(line.id),
                "product_id": str(line.product_id),
                "quantity": line.quantity,
                "price": str(Decimal(str(line.price)).quantize(Decimal("0.01"))),
            }
            for line in cart.lines
        ]
    return {
        "cart_id": str(cart.id) if cart else None,
        "promo_code": cart.promo_code if cart else None,
        "lines": lines,
        "totals": totals.as_dict(),
    }


def checkout_preview(customer_id=None, session_id=None, country: str = "United Kingdom") -> dict:
    """Cart view that fails the way checkout would.

    Raises ``EmptyCartError`` for a missing or empty cart, and the
    inventory errors for any line the catalog can no longer cover.
    Nothing is reserved.
    """
    view = cart_view(customer_id, session_id, country)
    if not view["lines"]:
        raise EmptyCartError()
    for line in view["lines"]:
        guard.check(line["product_id"], line["quantity"])
    return view
