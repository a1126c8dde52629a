"""Payment gateway port (abstract interface).

The contract every processor adapter implements: create and retrieve a
payment intent, and authenticate webhook deliveries. Amounts cross this
boundary in minor units (cents/pence) only.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class IntentResult:
    """Outcome of a payment intent call."""

    success: bool
    intent_id: str | None = None
    client_secret: str | None = None
    status: str | None = None
    amount_minor: int | None = None
    currency: str | None = None
    metadata: dict = field(default_factory=dict)
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        receipt_email: str | None,
        metadata: dict,
        idempotency_key: str | None = None,
    ) -> IntentResult:
        """Ask the processor for an intent to collect ``amount_minor`` of ``currency``."""
        ...

    @abstractmethod
    def retrieve_payment_intent(self, intent_id: str) -> IntentResult: ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Check ``signature`` against the exact bytes the processor sent."""
        ...
