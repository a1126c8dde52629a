"""Fulfilment status transitions: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order


@storefront.command(part_of="Order")
class MarkProcessing:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class MarkShipped:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=255)


@storefront.command(part_of="Order")
class MarkDelivered:
    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(MarkProcessing)
    def mark_processing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.load(command.order_id)
        order.mark_processing()
        repo.add(order)

    @handle(MarkShipped)
    def mark_shipped(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.load(command.order_id)
        order.mark_shipped(tracking_number=command.tracking_number)
        repo.add(order)

    @handle(MarkDelivered)
    def mark_delivered(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.load(command.order_id)
        order.mark_delivered()
        repo.add(order)
