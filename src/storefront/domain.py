"""Storefront bounded context: Cart, Checkout, Orders and Payments.

A single domain so that stock reservation, promo redemption and order
creation commit in one unit of work.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
