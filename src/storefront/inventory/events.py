"""Domain events for the Product stock counter."""

from protean.fields import Identifier, Integer

from storefront.domain import storefront


@storefront.event(part_of="Product")
class StockReserved:
    """Units were taken from a product's available stock for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@storefront.event(part_of="Product")
class StockReleased:
    """Previously reserved units were returned to available stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
