"""Payment reconciliation: applies verified processor notifications.

Each command carries the processor event id. A redelivered event is
recognised through the ``ProcessedWebhookEvent`` ledger; a repeated *fact*
(a second "succeeded" under a new event id) is recognised through the
current Payment and Order state. Notifications that would move state
backwards (failure after success, success after refund) are logged as
anomalies and not applied. A success for an order that is already Failed
or Cancelled, or for a second intent of a paid order, is also an anomaly:
the ledger entry marks money that has to be refunded by hand.
"""

from enum import Enum

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory import guard
from storefront.order.order import Order, OrderStatus
from storefront.payment.intents import to_minor_units
from storefront.payment.ledger import ProcessedWebhookEvent
from storefront.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)

# Orders in these states still hold their reserved stock on the shelf
_STOCK_HELD = {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.PROCESSING}


class Outcome(Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    DUPLICATE = "duplicate"
    ANOMALY = "anomaly"


@storefront.command(part_of="Payment")
class RecordPaymentSucceeded:
    event_id = String(max_length=255)
    order_id = Identifier(required=True)
    intent_id = String(max_length=255)


@storefront.command(part_of="Payment")
class RecordPaymentFailed:
    event_id = String(max_length=255)
    order_id = Identifier(required=True)
    intent_id = String(max_length=255)
    reason = String(max_length=500)


@storefront.command(part_of="Payment")
class RecordRefund:
    event_id = String(max_length=255)
    order_id = Identifier(required=True)
    intent_id = String(max_length=255)


def _anomaly(message, order, payment, command):
    logger.warning(
        message,
        order_id=str(order.id),
        order_status=order.status,
        payment_status=payment.status,
        event_id=command.event_id,
        intent_id=command.intent_id,
    )
    return Outcome.ANOMALY


def _release_stock(order):
    for line in order.lines:
        guard.release(line.product_id, line.quantity)


@storefront.command_handler(part_of=Payment)
class PaymentReconciliationHandler:
    def _load(self, command):
        order = current_domain.repository_for(Order).load(command.order_id)
        payment = current_domain.repository_for(Payment).for_order(order.id)
        if payment is None:
            # Intent created outside this service; start tracking it now
            payment = Payment.open(
                order_id=str(order.id),
                intent_id=command.intent_id or order.payment_intent_id,
                amount=order.pricing.grand_total,
                amount_minor=to_minor_units(order.pricing.grand_total),
                currency=order.pricing.currency,
                status=PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
            )
        elif command.intent_id and payment.intent_id != command.intent_id:
            logger.info(
                "Notification for a superseded intent",
                order_id=str(order.id),
                current_intent_id=payment.intent_id,
                event_intent_id=command.intent_id,
            )
        return order, payment

    def _reconcile(self, command, event_type, apply):
        ledger = current_domain.repository_for(ProcessedWebhookEvent)
        if ledger.seen(command.event_id):
            logger.info("Skipping redelivered webhook event", event_id=command.event_id, event_type=event_type)
            return Outcome.DUPLICATE.value

        order, payment = self._load(command)
        outcome = apply(order, payment, command)

        if outcome == Outcome.APPLIED:
            current_domain.repository_for(Payment).add(payment)
            current_domain.repository_for(Order).add(order)

        if command.event_id:
            ledger.add(ProcessedWebhookEvent.record(command.event_id, event_type, str(order.id), outcome.value))
        return outcome.value

    # -------------------------------------------------------------------
    # Succeeded
    # -------------------------------------------------------------------
    @handle(RecordPaymentSucceeded)
    def record_payment_succeeded(self, command):
        return self._reconcile(command, "payment_intent.succeeded", self._apply_success)

    def _apply_success(self, order, payment, command):
        status = payment.current_status
        if status == PaymentStatus.SUCCEEDED:
            if command.intent_id and command.intent_id != payment.intent_id:
                return _anomaly("A second payment intent succeeded for a paid order", order, payment, command)
            return Outcome.ALREADY_APPLIED
        if not payment.can_transition_to(PaymentStatus.SUCCEEDED):
            return _anomaly("Payment success arrived after the payment was closed", order, payment, command)

        payment.record_success(event_id=command.event_id, intent_id=command.intent_id)
        if order.current_status != OrderStatus.PENDING:
            # Money was collected for an order that will not ship
            current_domain.repository_for(Payment).add(payment)
            return _anomaly("Payment succeeded for an order that is no longer pending", order, payment, command)

        order.mark_paid()
        return Outcome.APPLIED

    # -------------------------------------------------------------------
    # Failed
    # -------------------------------------------------------------------
    @handle(RecordPaymentFailed)
    def record_payment_failed(self, command):
        return self._reconcile(command, "payment_intent.payment_failed", self._apply_failure)

    def _apply_failure(self, order, payment, command):
        status = payment.current_status
        if status == PaymentStatus.FAILED:
            return Outcome.ALREADY_APPLIED
        if not payment.can_transition_to(PaymentStatus.FAILED):
            return _anomaly("Payment failure arrived after the payment settled", order, payment, command)

        reason = command.reason or "Payment failed"
        payment.record_failure(reason, event_id=command.event_id)
        if order.current_status == OrderStatus.PENDING:
            order.mark_failed(reason)
            _release_stock(order)
        return Outcome.APPLIED

    # -------------------------------------------------------------------
    # Refunded
    # -------------------------------------------------------------------
    @handle(RecordRefund)
    def record_refund(self, command):
        return self._reconcile(command, "charge.refunded", self._apply_refund)

    def _apply_refund(self, order, payment, command):
        status = payment.current_status
        if status == PaymentStatus.REFUNDED:
            return Outcome.ALREADY_APPLIED
        if not payment.can_transition_to(PaymentStatus.REFUNDED):
            return _anomaly("Refund arrived for a payment that cannot be refunded", order, payment, command)

        payment.record_refund(event_id=command.event_id)
        previous = order.current_status
        if order.can_transition_to(OrderStatus.CANCELLED):
            order.record_refund()
            if previous in _STOCK_HELD:
                _release_stock(order)
        elif previous != OrderStatus.CANCELLED:
            logger.warning(
                "Refund recorded; order left in its terminal state",
                order_id=str(order.id),
                order_status=order.status,
                event_id=command.event_id,
            )
        return Outcome.APPLIED
