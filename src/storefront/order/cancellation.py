"""Order cancellation: by the customer, or by the system when checkout cannot
finish.

Only Pending orders can be cancelled this way; their reserved stock goes
back on the shelf in the same unit of work. An abandoned order also hands
back its promo code redemption.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import OrderNotFoundError
from storefront.inventory import guard
from storefront.order.order import CancellationActor, Order
from storefront.promotion.promo_code import PromoCode, find_promo_code
from storefront.utils import locks

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    customer_id = Identifier()
    session_id = String(max_length=255)
    reason = String(max_length=500, default="Cancelled by customer")


@storefront.command(part_of="Order")
class AbandonOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500, default="Checkout could not be completed")


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.load(command.order_id)
        if not order.owned_by(command.customer_id, command.session_id):
            # Someone else's order is indistinguishable from a missing one
            raise OrderNotFoundError(command.order_id)

        order.cancel(command.reason, CancellationActor.CUSTOMER.value)
        for line in order.lines:
            guard.release(line.product_id, line.quantity)
        repo.add(order)

        logger.info("Order cancelled", order_id=str(order.id), reason=command.reason)

    @handle(AbandonOrder)
    def abandon_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.load(command.order_id)

        order.cancel(command.reason, CancellationActor.SYSTEM.value)
        for line in order.lines:
            guard.release(line.product_id, line.quantity)
        if order.promo_code:
            promo = find_promo_code(order.promo_code)
            promo.release(order.id)
            current_domain.repository_for(PromoCode).add(promo)
        repo.add(order)

        logger.info("Order abandoned", order_id=str(order.id), reason=command.reason)


def cancel_order(command: CancelOrder) -> None:
    order = current_domain.repository_for(Order).load(command.order_id)
    keys = [locks.order_key(order.id)] + [locks.product_key(line.product_id) for line in order.lines]
    locks.process_locked(command, *keys)


def abandon_order(order_id, reason: str) -> None:
    """Cancel an unpaid order on the system's behalf and undo its reservations."""
    order = current_domain.repository_for(Order).load(order_id)
    keys = [locks.order_key(order.id)] + [locks.product_key(line.product_id) for line in order.lines]
    if order.promo_code:
        keys.append(locks.promo_key(order.promo_code))
    locks.process_locked(AbandonOrder(order_id=order_id, reason=reason), *keys)
