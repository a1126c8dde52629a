"""Cart repository: owner lookups on top of the standard CRUD."""

import structlog
from protean.exceptions import ValidationError

from storefront.cart.cart import Cart
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


def owner_criteria(customer_id=None, session_id=None) -> dict:
    if bool(customer_id) == bool(session_id):
        raise ValidationError({"owner": ["Exactly one of customer_id or session_id is required"]})
    if customer_id:
        return {"customer_id": str(customer_id)}
    return {"session_id": session_id}


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_owner(self, customer_id=None, session_id=None) -> Cart | None:
        """The owner's live cart. Expired carts are discarded and treated as absent."""
        records = self._dao.query.filter(**owner_criteria(customer_id, session_id)).all().items
        live = None
        for record in records:
            if record.is_expired():
                logger.info("Discarding expired cart", cart_id=str(record.id))
                self._dao.delete(record)
            elif live is None:
                live = self.get(record.id)
        return live

    def for_owner_or_new(self, customer_id=None, session_id=None) -> Cart:
        return self.for_owner(customer_id, session_id) or Cart.create(
            customer_id=customer_id,
            session_id=session_id,
        )

    def discard(self, cart: Cart) -> None:
        self._dao.delete(cart)
