"""Domain events for the Cart aggregate."""

from protean.fields import Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartLineAdded:
    """A product was put in the cart, or its existing line grew."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartLineQuantityChanged:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartLineRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartPromoCodeApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@storefront.event(part_of="Cart")
class GuestCartMerged:
    """A guest cart's lines were folded into an account cart after login."""

    __version__ = 1

    cart_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)
    lines_merged = Integer(required=True)
