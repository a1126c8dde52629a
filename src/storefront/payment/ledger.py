"""Processed webhook events: the deduplication ledger.

A row per processor event id, written in the same unit of work as the
state change it records, so a redelivered event is recognised and skipped.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String

from storefront.domain import storefront


@storefront.aggregate
class ProcessedWebhookEvent:
    event_id = Identifier(identifier=True)
    event_type = String(required=True, max_length=100)
    order_id = Identifier()
    outcome = String(required=True, max_length=50)
    processed_at = DateTime()

    @classmethod
    def record(cls, event_id, event_type, order_id, outcome):
        return cls(
            event_id=event_id,
            event_type=event_type,
            order_id=order_id,
            outcome=outcome,
            processed_at=datetime.now(UTC),
        )


@storefront.repository(part_of=ProcessedWebhookEvent)
class ProcessedWebhookEventRepository:
    def seen(self, event_id) -> bool:
        if not event_id:
            return False
        return bool(self._dao.query.filter(event_id=event_id).all().items)
