"""PromoCode aggregate: discount codes and their redemption counter."""

from datetime import UTC, datetime
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import ConflictError, PromoCodeNotFoundError
from storefront.pricing.engine import DiscountType, PromoTerms
from storefront.promotion.events import PromoCodeRedeemed, PromoCodeReleased


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


@storefront.aggregate
class PromoCode:
    code = Identifier(identifier=True)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    min_order = Float(min_value=0.0)
    expires_at = DateTime()
    max_uses = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    active = Boolean(default=True)

    @classmethod
    def create(cls, code, discount_type, value, min_order=None, expires_at=None, max_uses=None):
        if DiscountType(discount_type) == DiscountType.PERCENT and not 0 < value <= 100:
            raise ValidationError({"value": ["Percent discounts must be between 0 and 100"]})
        return cls(
            code=normalize_code(code),
            discount_type=DiscountType(discount_type).value,
            value=value,
            min_order=min_order,
            expires_at=expires_at,
            max_uses=max_uses,
            used_count=0,
            active=True,
        )

    def unusable_reason(self, now=None):
        """Why the code cannot be applied right now, or None if it can."""
        now = now or datetime.now(UTC)
        if not self.active:
            return "Promo code is not active"
        if self.expires_at is not None:
            expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
            if expires_at <= now:
                return "Promo code has expired"
        if self.is_exhausted:
            return "Promo code usage limit reached"
        return None

    @property
    def is_exhausted(self):
        return self.max_uses is not None and (self.used_count or 0) >= self.max_uses

    def terms(self) -> PromoTerms:
        return PromoTerms(
            code=self.code,
            discount_type=DiscountType(self.discount_type),
            value=Decimal(str(self.value)),
            min_order=Decimal(str(self.min_order)) if self.min_order is not None else None,
            expires_at=self.expires_at,
            exhausted=not self.active or self.is_exhausted,
        )

    def redeem(self, order_id):
        if self.is_exhausted:
            raise ConflictError({"promo_code": [f"Promo code {self.code} usage limit reached"]})

        self.used_count = (self.used_count or 0) + 1
        self.raise_(
            PromoCodeRedeemed(
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
            )
        )

    def release(self, order_id):
        self.used_count = max((self.used_count or 0) - 1, 0)
        self.raise_(
            PromoCodeReleased(
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
            )
        )

    def deactivate(self):
        self.active = False


def find_promo_code(code) -> PromoCode:
    """Look a code up case-insensitively."""
    normalized = normalize_code(code)
    if not normalized:
        raise PromoCodeNotFoundError(code)
    try:
        return current_domain.repository_for(PromoCode).get(normalized)
    except ObjectNotFoundError as exc:
        raise PromoCodeNotFoundError(normalized) from exc
