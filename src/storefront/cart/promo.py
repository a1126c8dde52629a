"""Promo code application: command and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.promotion.promo_code import find_promo_code


@storefront.command(part_of="Cart")
class ApplyPromoCode:
    customer_id = Identifier()
    session_id = String(max_length=255)
    code = String(required=True, max_length=50)


@storefront.command(part_of="Cart")
class RemovePromoCode:
    customer_id = Identifier()
    session_id = String(max_length=255)


@storefront.command_handler(part_of=Cart)
class CartPromoCodeHandler:
    @handle(ApplyPromoCode)
    def apply_promo_code(self, command):
        """Attach a usable code to the cart. Minimum order is judged at pricing time."""
        promo = find_promo_code(command.code)
        reason = promo.unusable_reason()
        if reason:
            raise ValidationError({"promo_code": [reason]})

        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner_or_new(command.customer_id, command.session_id)
        cart.apply_promo_code(promo.code)
        repo.add(cart)
        return promo.code

    @handle(RemovePromoCode)
    def remove_promo_code(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner(command.customer_id, command.session_id)
        if cart is None or not cart.promo_code:
            return
        cart.remove_promo_code()
        repo.add(cart)
