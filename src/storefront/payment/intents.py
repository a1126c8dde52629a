"""Payment intent creation: command, handler and status refresh.

Amounts are converted to minor units here, once, rounding half-up. A
processor failure raises ``GatewayError`` before anything is written, so
the order stays Pending with its previous intent (if any) untouched. A
new intent replaces an open one only once the processor reports the old
one canceled.
"""

from decimal import ROUND_HALF_UP, Decimal

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import ConflictError, GatewayError
from storefront.order.order import Order, OrderStatus
from storefront.payment.gateway import get_gateway
from storefront.payment.payment import Payment, PaymentStatus
from storefront.utils import locks

logger = structlog.get_logger(__name__)

_AWAITING_CUSTOMER = {
    PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
    PaymentStatus.REQUIRES_CONFIRMATION.value,
    PaymentStatus.REQUIRES_ACTION.value,
}


def to_minor_units(amount) -> int:
    """12.345 → 1235; works on the decimal value, never on a binary float product."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@storefront.command(part_of="Payment")
class CreatePaymentIntent:
    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Payment)
class CreatePaymentIntentHandler:
    @handle(CreatePaymentIntent)
    def create_payment_intent(self, command):
        """Returns ``{"intent_id", "client_secret", "amount_minor", "currency"}``."""
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)

        order = order_repo.load(command.order_id)
        if order.current_status != OrderStatus.PENDING:
            raise ValidationError({"status": [f"Cannot request payment for a {order.status} order"]})
        payment = payment_repo.for_order(order.id)

        amount = Decimal(str(order.pricing.grand_total))
        amount_minor = to_minor_units(amount)
        currency = order.pricing.currency
        gateway = get_gateway()

        # An open intent stays chargeable, so it is reused unless the processor canceled it
        if payment is not None and payment.is_open:
            existing = gateway.retrieve_payment_intent(payment.intent_id)
            if not existing.success:
                logger.warning(
                    "Could not confirm the open payment intent",
                    order_id=str(order.id),
                    intent_id=payment.intent_id,
                    reason=existing.failure_reason,
                )
                raise GatewayError(existing.failure_reason or "Payment processor unavailable", order_id=str(order.id))
            if existing.status in _AWAITING_CUSTOMER:
                return {
                    "intent_id": existing.intent_id,
                    "client_secret": existing.client_secret,
                    "amount_minor": amount_minor,
                    "currency": currency,
                }
            if existing.status != PaymentStatus.CANCELED.value:
                raise ConflictError({"payment": ["Payment for this order is already being processed"]})

        attempt = (payment.intents_created if payment else 0) + 1
        result = gateway.create_payment_intent(
            amount_minor=amount_minor,
            currency=currency,
            receipt_email=order.email,
            metadata={"order_id": str(order.id), "order_number": order.order_number},
            idempotency_key=f"order-{order.id}-intent-{attempt}",
        )
        if not result.success:
            logger.warning(
                "Payment intent creation failed",
                order_id=str(order.id),
                reason=result.failure_reason,
            )
            raise GatewayError(result.failure_reason or "Payment processor unavailable", order_id=str(order.id))

        if payment is None:
            payment = Payment.open(
                order_id=str(order.id),
                intent_id=result.intent_id,
                amount=float(amount),
                amount_minor=amount_minor,
                currency=currency,
                status=result.status,
            )
        else:
            payment.renew_intent(
                intent_id=result.intent_id,
                amount=float(amount),
                amount_minor=amount_minor,
                currency=currency,
                status=result.status,
            )

        order.attach_payment_intent(result.intent_id)
        payment_repo.add(payment)
        order_repo.add(order)

        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            intent_id=result.intent_id,
            amount_minor=amount_minor,
            currency=currency,
        )
        return {
            "intent_id": result.intent_id,
            "client_secret": result.client_secret,
            "amount_minor": amount_minor,
            "currency": currency,
        }


def create_payment_intent(order_id) -> dict:
    """Create (or hand back) the order's intent while holding the order lock."""
    return locks.process_locked(CreatePaymentIntent(order_id=order_id), locks.order_key(order_id))


def refresh_payment_status(order_id) -> dict:
    """Ask the processor for the intent's current status. Display only; nothing is written."""
    order = current_domain.repository_for(Order).load(order_id)
    payment = current_domain.repository_for(Payment).for_order(order.id)
    if payment is None:
        return {"order_id": str(order.id), "status": None, "processor_status": None}

    result = get_gateway().retrieve_payment_intent(payment.intent_id)
    return {
        "order_id": str(order.id),
        "status": payment.status,
        "processor_status": result.status if result.success else None,
        "amount_minor": payment.amount_minor,
        "currency": payment.currency,
    }
