"""Domain events for promo codes."""

from protean.fields import Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="PromoCode")
class PromoCodeRedeemed:
    """A placed order consumed one use of a promo code."""

    __version__ = 1

    code = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)


@storefront.event(part_of="PromoCode")
class PromoCodeReleased:
    """An abandoned order handed its use of a promo code back."""

    __version__ = 1

    code = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
