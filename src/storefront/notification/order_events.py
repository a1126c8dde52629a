"""Order confirmation: reacts to OrderPaid by messaging the customer.

Delivery is best effort: a sink failure is logged and never undoes or
blocks the payment that triggered it.
"""

import structlog
from protean import handle

from storefront.domain import storefront
from storefront.notification import get_sink
from storefront.order.events import OrderPaid
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


def confirmation_message(event: OrderPaid) -> tuple[str, str]:
    subject = f"Order {event.order_number} confirmed"
    body = (
        f"Thank you for your order {event.order_number}.\n"
        f"We have received your payment of {event.grand_total:.2f} {event.currency.upper()}."
    )
    return subject, body


@storefront.event_handler(part_of=Order)
class OrderConfirmationHandler:
    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        subject, body = confirmation_message(event)
        try:
            result = get_sink().send(to=event.email, subject=subject, body=body)
        except Exception:
            logger.exception("Order confirmation could not be sent", order_id=str(event.order_id))
            return
        logger.info(
            "Order confirmation sent",
            order_id=str(event.order_id),
            message_id=result.get("message_id"),
        )
