"""Configurable fake payment gateway for development and testing.

No network calls. Intents are held in memory and can be driven to a
terminal status to build realistic webhook payloads. Behaviour can be
switched at runtime to succeed, fail with a processor message, or time
out.
"""

from uuid import uuid4

from storefront.payment.gateway import signing
from storefront.payment.gateway.port import IntentResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = "whsec_test_secret", tolerance: int | None = 300) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.should_succeed: bool = True
        self.should_time_out: bool = False
        self.failure_reason: str = "Your card was declined."
        self.calls: list[dict] = []
        self.intents: dict[str, dict] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Your card was declined.",
        should_time_out: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_time_out = should_time_out

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        receipt_email: str | None,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> IntentResult:
        self.calls.append(
            {
                "method": "create_payment_intent",
                "amount_minor": amount_minor,
                "currency": currency,
                "receipt_email": receipt_email,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
            }
        )

        if self.should_time_out:
            return IntentResult(success=False, failure_reason="Payment processor timed out")
        if not self.should_succeed:
            return IntentResult(success=False, status="failed", failure_reason=self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_{uuid4().hex[:10]}",
            "status": "requires_payment_method",
            "amount": amount_minor,
            "currency": currency,
            "metadata": dict(metadata),
        }
        self.intents[intent_id] = intent
        return self._result(intent)

    def retrieve_payment_intent(self, intent_id: str) -> IntentResult:
        self.calls.append({"method": "retrieve_payment_intent", "intent_id": intent_id})
        intent = self.intents.get(intent_id)
        if intent is None:
            return IntentResult(success=False, failure_reason=f"No such payment_intent: '{intent_id}'")
        return self._result(intent)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        return signing.verify(payload, signature, self.webhook_secret, self.tolerance)

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def sign(self, payload: bytes, timestamp: int | None = None) -> str:
        return signing.sign(payload, self.webhook_secret, timestamp)

    def set_intent_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id]["status"] = status

    def reset(self) -> None:
        self.configure()
        self.calls.clear()
        self.intents.clear()

    @staticmethod
    def _result(intent: dict) -> IntentResult:
        return IntentResult(
            success=True,
            intent_id=intent["id"],
            client_secret=intent["client_secret"],
            status=intent["status"],
            amount_minor=intent["amount"],
            currency=intent["currency"],
            metadata=dict(intent["metadata"]),
        )
