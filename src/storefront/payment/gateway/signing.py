"""Webhook signatures in the processor's ``t=<unix>,v1=<hmac-sha256>`` scheme.

Verification is delegated to ``stripe.WebhookSignature`` for every
adapter, so the fake gateway exercises the same raw-body check production
uses. ``sign`` produces headers for local tooling and tests.
"""

import hashlib
import hmac
import time

import stripe


def sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    message = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def verify(payload: bytes, header: str, secret: str, tolerance: int | None) -> bool:
    """True only if ``header`` signs exactly ``payload`` within ``tolerance`` seconds."""
    if not header or not secret:
        return False
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return False
    try:
        return stripe.WebhookSignature.verify_header(text, header, secret, tolerance)
    except stripe.SignatureVerificationError:
        return False
