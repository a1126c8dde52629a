"""Webhook Reconciler: the entry point for processor notifications.

The signature is checked against the raw request bytes before anything
else looks at the payload. Only signature failures are reported as
rejections the processor should see (HTTP 400); every business-level
problem (unknown order, missing metadata, unhandled event type) is
acknowledged with 200 and logged, since redelivery would not fix it.
Storage errors propagate so the processor retries.
"""

import json
from dataclasses import dataclass
from enum import Enum

import structlog
from protean.utils.globals import current_domain

from storefront.exceptions import OrderNotFoundError, SignatureError
from storefront.order.order import Order
from storefront.payment.gateway import PaymentGateway, get_gateway
from storefront.payment.payment import Payment
from storefront.payment.reconciliation import RecordPaymentFailed, RecordPaymentSucceeded, RecordRefund
from storefront.utils import locks
from storefront.utils.logging import get_security_logger

logger = structlog.get_logger(__name__)
security_logger = get_security_logger()

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"

HANDLED_EVENT_TYPES = (PAYMENT_SUCCEEDED, PAYMENT_FAILED, CHARGE_REFUNDED)


class WebhookStatus(Enum):
    ACCEPTED = "accepted"
    IGNORED = "ignored"
    REJECTED = "rejected"


class RejectReason:
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_ORDER_REFERENCE = "missing_order_reference"
    ORDER_NOT_FOUND = "order_not_found"


@dataclass(frozen=True)
class WebhookResult:
    status: WebhookStatus
    reason: str | None = None
    event_id: str | None = None
    event_type: str | None = None
    order_id: str | None = None

    @property
    def http_status(self) -> int:
        return 400 if self.reason == RejectReason.INVALID_SIGNATURE else 200

    def as_dict(self) -> dict:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "order_id": self.order_id,
        }


def _metadata_order_id(obj: dict) -> str | None:
    metadata = obj.get("metadata") or {}
    return metadata.get("order_id") or metadata.get("orderId")


class WebhookReconciler:
    def __init__(self, gateway: PaymentGateway | None = None):
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    def verify(self, raw_body: bytes, signature: str | None) -> None:
        if not signature or not self.gateway.verify_webhook_signature(raw_body, signature):
            raise SignatureError(RejectReason.INVALID_SIGNATURE)

    def handle(self, raw_body: bytes, signature: str | None) -> WebhookResult:
        try:
            self.verify(raw_body, signature)
        except SignatureError as exc:
            security_logger.warning(
                "Webhook signature verification failed",
                reason=exc.reason,
                signature_present=bool(signature),
                body_length=len(raw_body or b""),
            )
            return WebhookResult(WebhookStatus.REJECTED, exc.reason)

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.warning("Signed webhook payload is not valid JSON", body_length=len(raw_body))
            return WebhookResult(WebhookStatus.REJECTED, RejectReason.MALFORMED_PAYLOAD)
        if not isinstance(event, dict):
            return WebhookResult(WebhookStatus.REJECTED, RejectReason.MALFORMED_PAYLOAD)

        event_id = event.get("id")
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type not in HANDLED_EVENT_TYPES:
            logger.info("Ignoring webhook event type", event_id=event_id, event_type=event_type)
            return WebhookResult(WebhookStatus.IGNORED, "unhandled_event_type", event_id, event_type)

        return self._dispatch(event_id, event_type, obj)

    def _resolve_order_id(self, event_type: str, obj: dict) -> str | None:
        order_id = _metadata_order_id(obj)
        if order_id is None and event_type == CHARGE_REFUNDED:
            payment = current_domain.repository_for(Payment).for_intent(obj.get("payment_intent"))
            order_id = str(payment.order_id) if payment else None
        return order_id

    def _command_for(self, event_id, event_type, order_id, obj):
        if event_type == PAYMENT_SUCCEEDED:
            return RecordPaymentSucceeded(event_id=event_id, order_id=order_id, intent_id=obj.get("id"))
        if event_type == PAYMENT_FAILED:
            error = obj.get("last_payment_error") or {}
            return RecordPaymentFailed(
                event_id=event_id,
                order_id=order_id,
                intent_id=obj.get("id"),
                reason=error.get("message") or "Payment failed",
            )
        return RecordRefund(event_id=event_id, order_id=order_id, intent_id=obj.get("payment_intent"))

    def _dispatch(self, event_id, event_type, obj) -> WebhookResult:
        order_id = self._resolve_order_id(event_type, obj)
        if not order_id:
            logger.warning("Webhook carries no order reference", event_id=event_id, event_type=event_type)
            return WebhookResult(WebhookStatus.REJECTED, RejectReason.MISSING_ORDER_REFERENCE, event_id, event_type)

        try:
            order = current_domain.repository_for(Order).load(order_id)
            keys = [locks.order_key(order.id)] + [locks.product_key(line.product_id) for line in order.lines]
            outcome = locks.process_locked(self._command_for(event_id, event_type, str(order.id), obj), *keys)
        except OrderNotFoundError:
            logger.warning("Webhook references an unknown order", event_id=event_id, order_id=order_id)
            return WebhookResult(WebhookStatus.REJECTED, RejectReason.ORDER_NOT_FOUND, event_id, event_type, order_id)

        logger.info(
            "Webhook reconciled",
            event_id=event_id,
            event_type=event_type,
            order_id=order_id,
            outcome=outcome,
        )
        return WebhookResult(WebhookStatus.ACCEPTED, outcome, event_id, event_type, order_id)
