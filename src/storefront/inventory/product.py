"""Product aggregate: the catalog record as seen from checkout.

Name, slug and price are owned by the catalog and only read here. The
``available_quantity`` counter is the one field this subsystem mutates,
and only through ``reserve`` / ``release`` (see ``inventory.guard``).
"""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, Integer, String

from storefront.domain import storefront
from storefront.exceptions import InsufficientStockError
from storefront.inventory.events import StockReleased, StockReserved


@storefront.aggregate
class Product:
    slug = String(required=True, max_length=255)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    available_quantity = Integer(default=0, min_value=0)

    @invariant.post
    def stock_is_never_negative(self):
        if self.available_quantity is not None and self.available_quantity < 0:
            raise ValidationError({"available_quantity": ["Stock cannot go negative"]})

    def can_supply(self, quantity):
        return quantity <= self.available_quantity

    def reserve(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if not self.can_supply(quantity):
            raise InsufficientStockError(self.id, quantity, self.available_quantity)

        self.available_quantity -= quantity
        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.available_quantity,
            )
        )

    def release(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        self.available_quantity += quantity
        self.raise_(
            StockReleased(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.available_quantity,
            )
        )
