"""Payment aggregate (CQRS): the local mirror of one processor payment intent.

Exactly one Payment exists per Order. It is created when the first intent
is requested and afterwards changed only by intent renewal and by verified
webhook notifications. ``status`` uses the processor's own vocabulary.

State Machine:
    requires_* / processing → succeeded | failed | refunded | canceled
    failed → succeeded (customer retried the same intent) | refunded
    succeeded → refunded
    refunded, canceled are terminal
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront
from storefront.payment.events import PaymentFailed, PaymentRefunded, PaymentSucceeded


class PaymentStatus(Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELED = "canceled"


_OPEN = {
    PaymentStatus.REQUIRES_PAYMENT_METHOD,
    PaymentStatus.REQUIRES_CONFIRMATION,
    PaymentStatus.REQUIRES_ACTION,
    PaymentStatus.PROCESSING,
}

_VALID_TRANSITIONS = {
    **{
        status: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.REFUNDED, PaymentStatus.CANCELED}
        for status in _OPEN
    },
    PaymentStatus.FAILED: {PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED},
    PaymentStatus.SUCCEEDED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
    PaymentStatus.CANCELED: set(),  # Terminal
}


def coerce_status(raw):
    """Map a processor status string onto ``PaymentStatus``; unknown values count as open."""
    try:
        return PaymentStatus(raw)
    except ValueError:
        return PaymentStatus.REQUIRES_PAYMENT_METHOD


@storefront.aggregate
class Payment:
    order_id = Identifier(required=True, unique=True)
    intent_id = String(max_length=255)
    status = String(choices=PaymentStatus, default=PaymentStatus.REQUIRES_PAYMENT_METHOD.value)
    amount = Float(required=True, min_value=0.0)
    amount_minor = Integer(required=True, min_value=0)
    currency = String(required=True, max_length=3)
    failure_reason = String(max_length=500)
    last_event_id = String(max_length=255)
    intents_created = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, order_id, intent_id, amount, amount_minor, currency, status):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            intent_id=intent_id,
            status=coerce_status(status).value,
            amount=amount,
            amount_minor=amount_minor,
            currency=currency,
            intents_created=1,
            created_at=now,
            updated_at=now,
        )

    @property
    def current_status(self):
        return PaymentStatus(self.status)

    @property
    def is_open(self):
        return self.current_status in _OPEN

    @property
    def is_settled(self):
        """Money has moved (or moved back); no new intent may replace this one."""
        return self.current_status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED)

    def can_transition_to(self, target_status):
        return target_status in _VALID_TRANSITIONS.get(self.current_status, set())

    def _transition_to(self, target_status, event_id=None):
        current = self.current_status
        if not self.can_transition_to(target_status):
            raise ValidationError({"status": [f"Cannot transition payment from {current.value} to {target_status.value}"]})
        self.status = target_status.value
        self.last_event_id = event_id
        self.updated_at = datetime.now(UTC)

    def renew_intent(self, intent_id, amount, amount_minor, currency, status):
        """Point this payment at a new processor intent for the same order."""
        if self.is_settled:
            raise ValidationError({"payment": ["Order has already been paid"]})
        self.intent_id = intent_id
        self.amount = amount
        self.amount_minor = amount_minor
        self.currency = currency
        self.status = coerce_status(status).value
        self.failure_reason = None
        self.intents_created = (self.intents_created or 0) + 1
        self.updated_at = datetime.now(UTC)

    def record_success(self, event_id=None, intent_id=None):
        self._transition_to(PaymentStatus.SUCCEEDED, event_id)
        if intent_id:
            # The intent that collected the money, which may be a superseded one
            self.intent_id = intent_id
        self.failure_reason = None
        self.raise_(
            PaymentSucceeded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                intent_id=self.intent_id,
                amount=self.amount,
                currency=self.currency,
            )
        )

    def record_failure(self, reason, event_id=None):
        self._transition_to(PaymentStatus.FAILED, event_id)
        self.failure_reason = reason
        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                intent_id=self.intent_id,
                reason=reason,
            )
        )

    def record_refund(self, event_id=None):
        self._transition_to(PaymentStatus.REFUNDED, event_id)
        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                intent_id=self.intent_id,
                amount=self.amount,
            )
        )
