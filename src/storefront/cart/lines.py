"""Cart line management: commands and handler.

Every handler resolves the caller's cart from ``customer_id`` or
``session_id``. Stock is checked read-only against the quantity the line
would end up with; nothing is reserved until checkout.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.exceptions import CartLineNotFoundError
from storefront.inventory import guard


@storefront.command(part_of="Cart")
class AddCartLine:
    customer_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class UpdateCartLine:
    customer_id = Identifier()
    session_id = String(max_length=255)
    line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class RemoveCartLine:
    customer_id = Identifier()
    session_id = String(max_length=255)
    line_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier()
    session_id = String(max_length=255)


@storefront.command_handler(part_of=Cart)
class ManageCartLinesHandler:
    @handle(AddCartLine)
    def add_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner_or_new(command.customer_id, command.session_id)

        merged_quantity = cart.quantity_of(command.product_id) + command.quantity
        product = guard.check(command.product_id, merged_quantity)

        line = cart.add_line(command.product_id, command.quantity, product.price)
        repo.add(cart)
        return str(line.id)

    @handle(UpdateCartLine)
    def update_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner(command.customer_id, command.session_id)
        line = cart.find_line(command.line_id) if cart else None
        if line is None:
            raise CartLineNotFoundError(command.line_id)

        guard.check(line.product_id, command.quantity)

        cart.set_line_quantity(command.line_id, command.quantity)
        repo.add(cart)

    @handle(RemoveCartLine)
    def remove_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner(command.customer_id, command.session_id)
        if cart is None:
            return False

        removed = cart.remove_line(command.line_id)
        if removed:
            repo.add(cart)
        return removed

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.for_owner(command.customer_id, command.session_id)
        if cart is None:
            return
        cart.clear()
        repo.add(cart)


@storefront.command(part_of="Cart")
class DiscardCart:
    cart_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class DiscardCartHandler:
    @handle(DiscardCart)
    def discard_cart(self, command):
        repo = current_domain.repository_for(Cart)
        repo.discard(repo.get(command.cart_id))
