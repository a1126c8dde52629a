"""Payment repository: one payment per order, also reachable by intent id."""

from storefront.domain import storefront
from storefront.payment.payment import Payment


@storefront.repository(part_of=Payment)
class PaymentRepository:
    def _first(self, **criteria) -> Payment | None:
        records = self._dao.query.filter(**criteria).all().items
        return self.get(records[0].id) if records else None

    def for_order(self, order_id) -> Payment | None:
        return self._first(order_id=str(order_id))

    def for_intent(self, intent_id) -> Payment | None:
        if not intent_id:
            return None
        return self._first(intent_id=intent_id)
