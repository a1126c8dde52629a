"""Pricing Engine: pure, deterministic order totals.

Every amount is a ``Decimal`` rounded half-up to two places at each step:

    subtotal  = sum(price * quantity)
    discount  = promo discount on the subtotal, capped at the subtotal
    tax       = country rate * (subtotal - discount)
    shipping  = country fee, or 0 once the subtotal reaches the threshold
    total     = subtotal - discount + tax + shipping

Nothing here touches storage or the clock unless ``as_of`` is omitted.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from storefront.pricing.rates import shipping_fee_for, tax_rate_for

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
FREE_SHIPPING_THRESHOLD = Decimal("50.00")


class DiscountType(Enum):
    PERCENT = "percent"
    FIXED = "fixed"


def to_money(value) -> Decimal:
    """Coerce a number to a 2dp Decimal without going through binary float noise."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return to_money(to_money(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class PromoTerms:
    """The parts of a promo code the engine needs.

    ``exhausted`` covers everything decided outside pricing (inactive,
    redemption cap reached); expiry and minimum order are evaluated here.
    """

    code: str
    discount_type: DiscountType
    value: Decimal
    min_order: Decimal | None = None
    expires_at: datetime | None = None
    exhausted: bool = False

    def applies_to(self, subtotal: Decimal, as_of: datetime) -> bool:
        if self.exhausted:
            return False
        if self.expires_at is not None and _aware(self.expires_at) <= as_of:
            return False
        if self.min_order is not None and subtotal < to_money(self.min_order):
            return False
        return True


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    shipping: Decimal = ZERO
    total: Decimal = ZERO
    currency: str = "gbp"
    promo_code: str | None = None

    def as_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "shipping": str(self.shipping),
            "total": str(self.total),
            "currency": self.currency,
            "promo_code": self.promo_code,
        }


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def compute_discount(subtotal: Decimal, promo: PromoTerms | None, as_of: datetime) -> Decimal:
    if promo is None or subtotal <= ZERO or not promo.applies_to(subtotal, as_of):
        return ZERO

    if promo.discount_type == DiscountType.PERCENT:
        discount = to_money(subtotal * Decimal(str(promo.value)) / Decimal("100"))
    else:
        discount = to_money(promo.value)

    return min(discount, subtotal)


def compute_shipping(subtotal: Decimal, destination_country: str) -> Decimal:
    if subtotal >= FREE_SHIPPING_THRESHOLD:
        return ZERO
    return to_money(shipping_fee_for(destination_country))


def compute_totals(
    lines,
    destination_country: str,
    promo: PromoTerms | None = None,
    as_of: datetime | None = None,
    currency: str = "gbp",
) -> Totals:
    """Price ``lines`` (anything with ``quantity`` and ``unit_price``) for a destination."""
    lines = list(lines)
    if not lines:
        return Totals(currency=currency)

    as_of = _aware(as_of) if as_of is not None else datetime.now(UTC)

    subtotal = to_money(sum((to_money(to_money(line.unit_price) * line.quantity) for line in lines), ZERO))
    discount = compute_discount(subtotal, promo, as_of)
    tax = to_money((subtotal - discount) * tax_rate_for(destination_country))
    shipping = compute_shipping(subtotal, destination_country)
    total = to_money(subtotal - discount + tax + shipping)

    return Totals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        shipping=shipping,
        total=total,
        currency=currency,
        promo_code=promo.code if promo is not None and discount > ZERO else None,
    )
