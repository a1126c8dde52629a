"""Stripe payment gateway adapter.

Talks to the Stripe API through the official SDK with a per-client
request timeout and the SDK's own network retries. Processor failures are
returned as unsuccessful ``IntentResult``s carrying Stripe's message;
nothing is raised across the port.
"""

import stripe
import structlog

from storefront.payment.gateway import signing
from storefront.payment.gateway.port import IntentResult, PaymentGateway

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        tolerance: int | None = 300,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.client = stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=max_retries,
        )

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        receipt_email: str | None,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> IntentResult:
        params = {
            "amount": amount_minor,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}

        try:
            intent = self.client.payment_intents.create(params=params, options=options)
        except stripe.StripeError as exc:
            logger.warning(
                "Stripe rejected payment intent",
                error=exc.user_message or str(exc),
                http_status=exc.http_status,
                metadata=metadata,
            )
            return IntentResult(success=False, failure_reason=exc.user_message or str(exc))

        return self._result(intent)

    def retrieve_payment_intent(self, intent_id: str) -> IntentResult:
        try:
            intent = self.client.payment_intents.retrieve(intent_id)
        except stripe.StripeError as exc:
            return IntentResult(success=False, failure_reason=exc.user_message or str(exc))
        return self._result(intent)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        return signing.verify(payload, signature, self.webhook_secret, self.tolerance)

    @staticmethod
    def _result(intent) -> IntentResult:
        return IntentResult(
            success=True,
            intent_id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            amount_minor=intent.amount,
            currency=intent.currency,
            metadata=dict(intent.metadata or {}),
        )
