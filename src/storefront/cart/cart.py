"""Cart aggregate (CQRS): one mutable cart per customer or guest session.

A cart belongs to exactly one owner: an account (``customer_id``) or an
anonymous browser session (``session_id``). Each product appears on at
most one line; adding a product that is already present grows its line.
Line prices are a snapshot taken when the line was added and are only
used for display; orders are priced from the live catalog.
"""

from datetime import UTC, datetime, timedelta

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartCleared,
    CartLineAdded,
    CartLineQuantityChanged,
    CartLineRemoved,
    CartPromoCodeApplied,
    GuestCartMerged,
)
from storefront.config import get_settings
from storefront.domain import storefront
from storefront.exceptions import CartLineNotFoundError


def cart_ttl(customer_id=None):
    settings = get_settings()
    return timedelta(days=settings.cart_ttl_days if customer_id else settings.guest_cart_ttl_days)


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    lines = HasMany(CartLine)
    promo_code = String(max_length=50)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_has_exactly_one_owner(self):
        if bool(self.customer_id) == bool(self.session_id):
            raise ValidationError({"owner": ["A cart belongs to either a customer or a guest session"]})

    @invariant.post
    def one_line_per_product(self):
        product_ids = [str(line.product_id) for line in self.lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A product may appear on only one cart line"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            expires_at=now + cart_ttl(customer_id),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return expires_at <= now

    def line_for_product(self, product_id):
        return next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

    def find_line(self, line_id):
        return next((line for line in self.lines if str(line.id) == str(line_id)), None)

    def quantity_of(self, product_id):
        line = self.line_for_product(product_id)
        return line.quantity if line else 0

    def owned_by(self, customer_id=None, session_id=None):
        if customer_id:
            return str(self.customer_id) == str(customer_id)
        return bool(session_id) and self.session_id == session_id

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def _touch(self):
        now = datetime.now(UTC)
        self.updated_at = now
        self.expires_at = now + cart_ttl(self.customer_id)

    def add_line(self, product_id, quantity, price):
        """Add ``quantity`` of a product, merging into its existing line."""
        existing = self.line_for_product(product_id)
        if existing:
            existing.quantity += quantity
            existing.price = price
            line = existing
        else:
            line = CartLine(
                product_id=product_id,
                quantity=quantity,
                price=price,
                added_at=datetime.now(UTC),
            )
            self.add_lines(line)

        self._touch()
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                line_id=str(line.id),
                product_id=str(product_id),
                quantity=line.quantity,
            )
        )
        return line

    def set_line_quantity(self, line_id, quantity):
        line = self.find_line(line_id)
        if line is None:
            raise CartLineNotFoundError(line_id)

        previous_quantity = line.quantity
        line.quantity = quantity
        self._touch()
        self.raise_(
            CartLineQuantityChanged(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return line

    def remove_line(self, line_id):
        """Remove a line; returns False when there was nothing to remove."""
        line = self.find_line(line_id)
        if line is None:
            return False

        self.remove_lines(line)
        self._touch()
        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                line_id=str(line_id),
                product_id=str(line.product_id),
            )
        )
        return True

    def clear(self):
        for line in list(self.lines):
            self.remove_lines(line)
        self.promo_code = None
        self._touch()
        self.raise_(CartCleared(cart_id=str(self.id)))

    # -------------------------------------------------------------------
    # Promo codes
    # -------------------------------------------------------------------
    def apply_promo_code(self, code):
        self.promo_code = code
        self._touch()
        self.raise_(CartPromoCodeApplied(cart_id=str(self.id), code=code))

    def remove_promo_code(self):
        self.promo_code = None
        self._touch()

    # -------------------------------------------------------------------
    # Guest → account merge
    # -------------------------------------------------------------------
    def absorb(self, guest_cart):
        """Fold a guest cart's lines into this cart, summing shared products."""
        merged = 0
        for guest_line in guest_cart.lines:
            existing = self.line_for_product(guest_line.product_id)
            if existing:
                existing.quantity += guest_line.quantity
            else:
                self.add_lines(
                    CartLine(
                        product_id=guest_line.product_id,
                        quantity=guest_line.quantity,
                        price=guest_line.price,
                        added_at=guest_line.added_at or datetime.now(UTC),
                    )
                )
            merged += 1

        if guest_cart.promo_code and not self.promo_code:
            self.promo_code = guest_cart.promo_code

        self._touch()
        self.raise_(
            GuestCartMerged(
                cart_id=str(self.id),
                session_id=guest_cart.session_id,
                lines_merged=merged,
            )
        )
        return merged
