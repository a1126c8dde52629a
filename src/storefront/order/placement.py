"""Order placement: command, handler and the locked entry point.

Placement is all-or-nothing. The handler first validates every line
against the live catalog (existence, stock, current price) and the promo
code, and only then mutates: the order is recorded Pending, stock is
reserved and the promo redeemed, all in one unit of work. ``place_order``
holds the product and promo locks around the whole unit of work so two
checkouts can never both take the last units.
"""

import json
from decimal import Decimal

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import EmptyCartError, PromoCodeNotFoundError
from storefront.inventory import guard
from storefront.order.order import Order
from storefront.pricing.engine import PricedLine, compute_totals
from storefront.pricing.rates import currency_for_country
from storefront.promotion.promo_code import PromoCode, find_promo_code
from storefront.utils import locks

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier()
    session_id = String(max_length=255)
    email = String(required=True, max_length=254)
    first_name = String(max_length=100)
    last_name = String(max_length=100)
    lines = Text(required=True)  # JSON: list of {product_id, quantity}
    delivery_address = Text(required=True)  # JSON: address dict
    promo_code = String(max_length=50)
    gift_occasion = String(max_length=100)
    gift_message = Text()


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


def requested_quantities(lines) -> dict:
    """Collapse lines to ``{product_id: quantity}``, preserving first-seen order."""
    requested = {}
    for line in lines:
        product_id = str(line["product_id"])
        requested[product_id] = requested.get(product_id, 0) + int(line["quantity"])
    return requested


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        requested = requested_quantities(_loads(command.lines) or [])
        if not requested:
            raise EmptyCartError()

        address = _loads(command.delivery_address)

        # Validate everything before touching anything
        products = {product_id: guard.check(product_id, quantity) for product_id, quantity in requested.items()}

        promo = None
        if command.promo_code:
            try:
                promo = find_promo_code(command.promo_code)
            except PromoCodeNotFoundError:
                logger.info("Ignoring unknown promo code at checkout", code=command.promo_code)

        priced = [
            PricedLine(
                product_id=product_id,
                quantity=quantity,
                unit_price=Decimal(str(products[product_id].price)),
            )
            for product_id, quantity in requested.items()
        ]
        totals = compute_totals(
            priced,
            address["country"],
            promo=promo.terms() if promo else None,
            currency=currency_for_country(address["country"]),
        )

        gift = None
        if command.gift_occasion or command.gift_message:
            gift = {"occasion": command.gift_occasion, "message": command.gift_message}

        order = Order.place(
            owner={"customer_id": command.customer_id, "session_id": command.session_id},
            contact={
                "email": command.email,
                "first_name": command.first_name,
                "last_name": command.last_name,
            },
            lines=[
                {
                    "product_id": line.product_id,
                    "product_name": products[line.product_id].name,
                    "quantity": line.quantity,
                    "unit_price": float(line.unit_price),
                }
                for line in priced
            ],
            delivery_address=address,
            totals=totals,
            promo_code=totals.promo_code,
            gift=gift,
        )

        # Mutations
        for product_id, quantity in requested.items():
            guard.reserve(product_id, quantity)

        if totals.promo_code:
            promo.redeem(order.id)
            current_domain.repository_for(PromoCode).add(promo)

        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            grand_total=str(totals.total),
            currency=totals.currency,
        )
        return {"order_id": str(order.id), "order_number": order.order_number}


def lock_keys_for(command: PlaceOrder) -> list[str]:
    keys = [locks.product_key(product_id) for product_id in requested_quantities(_loads(command.lines) or [])]
    if command.promo_code:
        keys.append(locks.promo_key(command.promo_code))
    return keys


def place_order(command: PlaceOrder) -> dict:
    """Place an order atomically with respect to concurrent checkouts.

    Returns ``{"order_id": ..., "order_number": ...}``.
    """
    return locks.process_locked(command, *lock_keys_for(command))
