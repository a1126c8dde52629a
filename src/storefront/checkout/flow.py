"""Checkout: cart → order → payment intent → cart discarded.

The order is placed from the cart's products and quantities (prices are
re-read from the catalog). The caller's cart lock is held from reading
the cart until it is discarded, so a double-submitted checkout finds the
cart gone and places nothing.

If the processor then refuses to create an intent, the order is abandoned
in its own unit of work: stock and promo redemption are handed back and
the cart is left as it was, so checking out again is safe.
"""

import json

import structlog
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.lines import DiscardCart
from storefront.exceptions import EmptyCartError, GatewayError
from storefront.order.cancellation import abandon_order
from storefront.order.placement import PlaceOrder, place_order
from storefront.payment.intents import create_payment_intent
from storefront.utils import locks

logger = structlog.get_logger(__name__)


def checkout(contact: dict, delivery_address: dict, customer_id=None, session_id=None, gift: dict | None = None) -> dict:
    """Run the checkout for the caller's cart.

    Args:
        contact: Dict with email, first_name, last_name.
        delivery_address: Dict with street, city, state, postal_code, country.
        gift: Optional dict with occasion and message.

    Returns:
        Dict with order_id, order_number, intent_id, client_secret.
    """
    with locks.hold(locks.cart_key(customer_id, session_id)):
        cart = current_domain.repository_for(Cart).for_owner(customer_id, session_id)
        if cart is None or not cart.lines:
            raise EmptyCartError()

        gift = gift or {}
        placed = place_order(
            PlaceOrder(
                customer_id=customer_id,
                session_id=session_id,
                email=contact["email"],
                first_name=contact.get("first_name"),
                last_name=contact.get("last_name"),
                lines=json.dumps([{"product_id": str(line.product_id), "quantity": line.quantity} for line in cart.lines]),
                delivery_address=json.dumps(delivery_address),
                promo_code=cart.promo_code,
                gift_occasion=gift.get("occasion"),
                gift_message=gift.get("message"),
            )
        )

        try:
            intent = create_payment_intent(placed["order_id"])
        except GatewayError as exc:
            logger.warning(
                "Abandoning order after gateway failure",
                order_id=placed["order_id"],
                order_number=placed["order_number"],
                reason=exc.gateway_message,
            )
            abandon_order(placed["order_id"], f"Payment processor error: {exc.gateway_message}"[:500])
            exc.order_id = placed["order_id"]
            exc.order_number = placed["order_number"]
            raise

        current_domain.process(DiscardCart(cart_id=str(cart.id)), asynchronous=False)

    logger.info(
        "Checkout complete",
        order_id=placed["order_id"],
        order_number=placed["order_number"],
        intent_id=intent["intent_id"],
    )
    return {
        "order_id": placed["order_id"],
        "order_number": placed["order_number"],
        "intent_id": intent["intent_id"],
        "client_secret": intent["client_secret"],
    }
