"""Application tests for webhook reconciliation: verification, idempotency and ordering."""

import json

import pytest
from protean import current_domain
from storefront.inventory.product import Product
from storefront.order.order import Order, OrderStatus
from storefront.payment.intents import create_payment_intent
from storefront.payment.ledger import ProcessedWebhookEvent
from storefront.payment.payment import Payment, PaymentStatus
from storefront.payment.webhook import (
    CHARGE_REFUNDED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    RejectReason,
    WebhookReconciler,
    WebhookStatus,
)


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _payment(order_id):
    return current_domain.repository_for(Payment).for_order(order_id)


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).available_quantity


@pytest.fixture(autouse=True)
def catalog(make_product):
    make_product("prod-rose", price=22.50, quantity=10)


@pytest.fixture()
def pending(place):
    """A placed order with an open payment intent: ``(order_id, intent_id)``."""
    order_id = place({"prod-rose": 2})["order_id"]
    intent_id = create_payment_intent(order_id)["intent_id"]
    return order_id, intent_id


@pytest.fixture()
def deliver(gateway):
    def _deliver(body):
        return WebhookReconciler(gateway).handle(body, gateway.sign(body))

    return _deliver


class TestSignature:
    def test_invalid_signature_is_rejected(self, pending, gateway, webhook_body):
        order_id, intent_id = pending
        body = webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id)

        result = WebhookReconciler(gateway).handle(body, "t=1,v1=deadbeef")

        assert result.status == WebhookStatus.REJECTED
        assert result.reason == RejectReason.INVALID_SIGNATURE
        assert result.http_status == 400
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_missing_signature_is_rejected(self, pending, gateway, webhook_body):
        order_id, intent_id = pending
        result = WebhookReconciler(gateway).handle(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id), None)
        assert result.http_status == 400

    def test_signature_must_match_raw_bytes(self, pending, gateway, webhook_body):
        order_id, intent_id = pending
        body = webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id)
        signature = gateway.sign(body)
        reserialized = json.dumps(json.loads(body), separators=(",", ":")).encode()

        result = WebhookReconciler(gateway).handle(reserialized, signature)

        assert result.reason == RejectReason.INVALID_SIGNATURE


class TestPaymentSucceeded:
    def test_marks_order_paid(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        result = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1"))

        assert result.status == WebhookStatus.ACCEPTED
        assert result.reason == "applied"
        assert result.http_status == 200
        assert _order(order_id).status == OrderStatus.PAID.value
        payment = _payment(order_id)
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.last_event_id == "evt_1"

    def test_redelivered_event_is_a_duplicate(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        body = webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1")

        deliver(body)
        result = deliver(body)

        assert result.status == WebhookStatus.ACCEPTED
        assert result.reason == "duplicate"
        assert _order(order_id).status == OrderStatus.PAID.value

    def test_second_success_event_is_already_applied(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1"))
        result = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_2"))
        assert result.reason == "already_applied"

    def test_event_is_recorded_in_ledger(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1"))
        entry = current_domain.repository_for(ProcessedWebhookEvent).get("evt_1")
        assert entry.order_id == order_id
        assert entry.outcome == "applied"

    def test_confirmation_is_sent(self, pending, webhook_body, deliver, sink):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id))
        assert len(sink.sent) == 1
        assert sink.sent[0]["to"] == "sam@example.com"
        assert _order(order_id).order_number in sink.sent[0]["subject"]

    def test_camel_case_metadata_key(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        body = webhook_body(PAYMENT_SUCCEEDED, None, intent_id, metadata={"orderId": order_id})
        result = deliver(body)
        assert result.reason == "applied"
        assert _order(order_id).status == OrderStatus.PAID.value

    def test_success_after_customer_cancel_is_an_anomaly(self, pending, webhook_body, deliver):
        from storefront.order.cancellation import CancelOrder, cancel_order

        order_id, intent_id = pending
        cancel_order(CancelOrder(order_id=order_id, customer_id="cust-001"))

        result = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_late"))

        assert result.status == WebhookStatus.ACCEPTED
        assert result.reason == "anomaly"
        assert _order(order_id).status == OrderStatus.CANCELLED.value
        assert _payment(order_id).status == PaymentStatus.SUCCEEDED.value
        assert current_domain.repository_for(ProcessedWebhookEvent).get("evt_late").outcome == "anomaly"

    def test_success_after_failure_is_an_anomaly(self, pending, webhook_body, deliver, sink):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_FAILED, order_id, intent_id, event_id="evt_1"))
        assert _stock("prod-rose") == 10

        result = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_2"))

        assert result.reason == "anomaly"
        assert _order(order_id).status == OrderStatus.FAILED.value
        assert _payment(order_id).status == PaymentStatus.SUCCEEDED.value
        assert _stock("prod-rose") == 10
        assert current_domain.repository_for(ProcessedWebhookEvent).get("evt_2").outcome == "anomaly"
        assert sink.sent == []

    def test_second_paid_intent_is_an_anomaly(self, pending, gateway, webhook_body, deliver):
        order_id, first_intent = pending
        gateway.set_intent_status(first_intent, "canceled")
        second_intent = create_payment_intent(order_id)["intent_id"]

        first = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, first_intent, event_id="evt_1"))
        second = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, second_intent, event_id="evt_2"))

        assert second_intent != first_intent
        assert first.reason == "applied"
        assert second.reason == "anomaly"
        assert _order(order_id).status == OrderStatus.PAID.value
        assert _payment(order_id).intent_id == first_intent


class TestPaymentFailed:
    def test_marks_order_failed_and_releases_stock(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        assert _stock("prod-rose") == 8

        result = deliver(
            webhook_body(
                PAYMENT_FAILED,
                order_id,
                intent_id,
                last_payment_error={"message": "Your card has insufficient funds."},
            )
        )

        assert result.reason == "applied"
        order = _order(order_id)
        assert order.status == OrderStatus.FAILED.value
        assert order.failure_reason == "Your card has insufficient funds."
        assert _stock("prod-rose") == 10

    def test_failure_after_success_is_an_anomaly(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1"))

        result = deliver(webhook_body(PAYMENT_FAILED, order_id, intent_id, event_id="evt_2"))

        assert result.status == WebhookStatus.ACCEPTED
        assert result.reason == "anomaly"
        assert _order(order_id).status == OrderStatus.PAID.value
        assert _payment(order_id).status == PaymentStatus.SUCCEEDED.value
        assert _stock("prod-rose") == 8


class TestRefund:
    def test_refund_cancels_paid_order_and_restocks(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id))

        result = deliver(webhook_body(CHARGE_REFUNDED, order_id, intent_id))

        assert result.reason == "applied"
        order = _order(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "Processor"
        assert _payment(order_id).status == PaymentStatus.REFUNDED.value
        assert _stock("prod-rose") == 10

    def test_refund_found_by_payment_intent(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id))

        result = deliver(webhook_body(CHARGE_REFUNDED, None, intent_id))

        assert result.order_id == order_id
        assert _order(order_id).status == OrderStatus.CANCELLED.value

    def test_refund_after_delivery_keeps_order_delivered(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id))
        order = _order(order_id)
        order.mark_processing()
        order.mark_shipped()
        order.mark_delivered()
        current_domain.repository_for(Order).add(order)

        result = deliver(webhook_body(CHARGE_REFUNDED, order_id, intent_id))

        assert result.reason == "applied"
        assert _order(order_id).status == OrderStatus.DELIVERED.value
        assert _payment(order_id).status == PaymentStatus.REFUNDED.value
        assert _stock("prod-rose") == 8

    def test_success_after_refund_is_an_anomaly(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_1"))
        deliver(webhook_body(CHARGE_REFUNDED, order_id, intent_id, event_id="evt_2"))

        result = deliver(webhook_body(PAYMENT_SUCCEEDED, order_id, intent_id, event_id="evt_3"))

        assert result.reason == "anomaly"
        assert _order(order_id).status == OrderStatus.CANCELLED.value


class TestUnprocessableEvents:
    def test_unknown_order_is_acknowledged(self, webhook_body, deliver):
        result = deliver(webhook_body(PAYMENT_SUCCEEDED, "ord-missing"))
        assert result.status == WebhookStatus.REJECTED
        assert result.reason == RejectReason.ORDER_NOT_FOUND
        assert result.http_status == 200

    def test_missing_order_reference(self, webhook_body, deliver):
        result = deliver(webhook_body(PAYMENT_SUCCEEDED))
        assert result.reason == RejectReason.MISSING_ORDER_REFERENCE
        assert result.http_status == 200

    def test_unhandled_event_type_is_ignored(self, pending, webhook_body, deliver):
        order_id, intent_id = pending
        result = deliver(webhook_body("customer.created", order_id, intent_id))
        assert result.status == WebhookStatus.IGNORED
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_malformed_json(self, deliver):
        result = deliver(b"{not json")
        assert result.reason == RejectReason.MALFORMED_PAYLOAD
        assert result.http_status == 200
