"""Runtime settings read from the environment.

``PROTEAN_ENV`` still selects the Protean configuration overlay in
``domain.toml``; the values here cover the payment processor and cart
policy knobs that live outside Protean.
"""

import os

from pydantic import BaseModel, Field


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


class Settings(BaseModel):
    # Payment processor
    payment_gateway: str = Field(default_factory=lambda: _env("PAYMENT_GATEWAY", "fake"))
    stripe_secret_key: str = Field(default_factory=lambda: _env("STRIPE_SECRET_KEY", ""))
    stripe_webhook_secret: str = Field(default_factory=lambda: _env("STRIPE_WEBHOOK_SECRET", "whsec_test_secret"))
    gateway_timeout_seconds: float = Field(default_factory=lambda: float(_env("GATEWAY_TIMEOUT_SECONDS", "10")))
    gateway_max_retries: int = Field(default_factory=lambda: int(_env("GATEWAY_MAX_RETRIES", "2")))
    webhook_tolerance_seconds: int = Field(default_factory=lambda: int(_env("WEBHOOK_TOLERANCE_SECONDS", "300")))

    # Cart policy
    cart_ttl_days: int = Field(default_factory=lambda: int(_env("CART_TTL_DAYS", "30")))
    guest_cart_ttl_days: int = Field(default_factory=lambda: int(_env("GUEST_CART_TTL_DAYS", "7")))

    default_currency: str = Field(default_factory=lambda: _env("DEFAULT_CURRENCY", "gbp"))


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
