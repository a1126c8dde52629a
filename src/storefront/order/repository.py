"""Order repository: lookups by number, payment intent and owner."""

from protean.exceptions import ObjectNotFoundError

from storefront.cart.repository import owner_criteria
from storefront.domain import storefront
from storefront.exceptions import OrderNotFoundError
from storefront.order.order import Order


@storefront.repository(part_of=Order)
class OrderRepository:
    def load(self, order_id) -> Order:
        try:
            return self.get(order_id)
        except ObjectNotFoundError as exc:
            raise OrderNotFoundError(order_id) from exc

    def _first(self, **criteria) -> Order | None:
        records = self._dao.query.filter(**criteria).all().items
        return self.get(records[0].id) if records else None

    def by_number(self, order_number) -> Order:
        order = self._first(order_number=order_number)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def by_payment_intent(self, payment_intent_id) -> Order | None:
        if not payment_intent_id:
            return None
        return self._first(payment_intent_id=payment_intent_id)

    def for_owner(self, customer_id=None, session_id=None) -> list[Order]:
        """Newest first."""
        records = self._dao.query.filter(**owner_criteria(customer_id, session_id)).order_by("-created_at").all().items
        return [self.get(record.id) for record in records]
