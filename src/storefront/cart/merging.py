"""Guest cart merge on login: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class MergeGuestCart:
    customer_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@storefront.command_handler(part_of=Cart)
class MergeGuestCartHandler:
    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        """Fold the session's cart into the customer's, then delete it.

        Quantities are summed without a stock check; checkout re-validates.
        Returns the number of guest lines merged (0 when there was no guest cart).
        """
        repo = current_domain.repository_for(Cart)
        guest_cart = repo.for_owner(session_id=command.session_id)
        if guest_cart is None:
            return 0

        cart = repo.for_owner_or_new(customer_id=command.customer_id)
        merged = cart.absorb(guest_cart)
        repo.add(cart)
        repo.discard(guest_cart)

        logger.info(
            "Merged guest cart",
            cart_id=str(cart.id),
            session_id=command.session_id,
            lines_merged=merged,
        )
        return merged
