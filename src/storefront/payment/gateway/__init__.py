"""Payment gateway factory.

get_gateway() builds the adapter named by ``PAYMENT_GATEWAY`` on first
use: ``fake`` (default, development and tests) or ``stripe``.
set_gateway() / reset_gateway() swap it, mainly for tests.
"""

from storefront.config import get_settings
from storefront.payment.gateway.fake_adapter import FakeGateway
from storefront.payment.gateway.port import IntentResult, PaymentGateway

__all__ = ["FakeGateway", "IntentResult", "PaymentGateway", "get_gateway", "reset_gateway", "set_gateway"]

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.payment_gateway == "stripe":
        from storefront.payment.gateway.stripe_adapter import StripeGateway

        return StripeGateway(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            timeout=settings.gateway_timeout_seconds,
            max_retries=settings.gateway_max_retries,
            tolerance=settings.webhook_tolerance_seconds,
        )
    return FakeGateway(
        webhook_secret=settings.stripe_webhook_secret,
        tolerance=settings.webhook_tolerance_seconds,
    )


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
