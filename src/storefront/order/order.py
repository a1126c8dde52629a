"""Order aggregate (CQRS): the immutable record of a checkout.

Lines, address, contact and pricing are frozen when the order is placed.
Afterwards only ``status`` (with its cancellation details) and
``payment_intent_id`` change.

State Machine:
    PENDING → PAID → PROCESSING → SHIPPED → DELIVERED
    PENDING, PAID, PROCESSING, SHIPPED → CANCELLED | FAILED
    DELIVERED, CANCELLED, FAILED are terminal

Customers may only cancel while the order is PENDING; later
cancellations arrive as refunds from the payment processor.
"""

import secrets
import string
import time
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.domain import storefront
from storefront.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPaymentFailed,
    OrderPlaced,
    OrderProcessing,
    OrderShipped,
    PaymentIntentAttached,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


class CancellationActor(Enum):
    CUSTOMER = "Customer"
    SYSTEM = "System"
    PROCESSOR = "Processor"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number):
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number():
    """``ORD-<ms timestamp base36>-<6 random base36>``, e.g. ``ORD-M1X2Y3Z4-8KQ2ZD``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"ORD-{_to_base36(int(time.time() * 1000))}-{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class DeliveryAddress:
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@storefront.value_object(part_of="Order")
class GiftDetails:
    occasion = String(max_length=100)
    message = Text()


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Totals computed once at placement and never recomputed."""

    subtotal = Float(default=0.0)
    discount_total = Float(default=0.0)
    tax_total = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="gbp")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier()
    session_id = String(max_length=255)
    email = String(required=True, max_length=254)
    first_name = String(max_length=100)
    last_name = String(max_length=100)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    lines = HasMany(OrderLine)
    delivery_address = ValueObject(DeliveryAddress)
    gift = ValueObject(GiftDetails)
    pricing = ValueObject(OrderPricing)
    promo_code = String(max_length=50)
    payment_intent_id = String(max_length=255)
    failure_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    tracking_number = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def grand_total_is_sum_of_parts(self):
        if self.pricing is None:
            return
        p = self.pricing
        expected = p.subtotal - p.discount_total + p.tax_total + p.shipping_cost
        if abs(expected - p.grand_total) >= 0.005:
            raise ValidationError({"pricing": ["Grand total does not match its components"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, owner, contact, lines, delivery_address, totals, promo_code=None, gift=None):
        """Build a Pending order.

        Args:
            owner: Dict with customer_id or session_id.
            contact: Dict with email, first_name, last_name.
            lines: Iterable of dicts with product_id, product_name, quantity, unit_price.
            delivery_address: Dict with street, city, state, postal_code, country.
            totals: ``pricing.engine.Totals`` for the lines.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(),
            customer_id=owner.get("customer_id"),
            session_id=owner.get("session_id"),
            email=contact["email"],
            first_name=contact.get("first_name"),
            last_name=contact.get("last_name"),
            status=OrderStatus.PENDING.value,
            delivery_address=DeliveryAddress(**delivery_address),
            gift=GiftDetails(**gift) if gift else None,
            pricing=OrderPricing(
                subtotal=float(totals.subtotal),
                discount_total=float(totals.discount),
                tax_total=float(totals.tax),
                shipping_cost=float(totals.shipping),
                grand_total=float(totals.total),
                currency=totals.currency,
            ),
            promo_code=promo_code,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_lines(OrderLine(**line))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                email=order.email,
                grand_total=order.pricing.grand_total,
                currency=order.pricing.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self):
        return OrderStatus(self.status)

    def can_transition_to(self, target_status):
        return target_status in _VALID_TRANSITIONS.get(self.current_status, set())

    def _transition_to(self, target_status):
        """The only place ``status`` changes."""
        current = self.current_status
        if not self.can_transition_to(target_status):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})
        self.status = target_status.value
        self.updated_at = datetime.now(UTC)

    def owned_by(self, customer_id=None, session_id=None):
        if customer_id:
            return str(self.customer_id) == str(customer_id)
        return bool(session_id) and self.session_id == session_id

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def attach_payment_intent(self, payment_intent_id):
        if self.current_status != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payment can only be requested for a Pending order"]})
        self.payment_intent_id = payment_intent_id
        self.updated_at = datetime.now(UTC)
        self.raise_(PaymentIntentAttached(order_id=str(self.id), payment_intent_id=payment_intent_id))

    def mark_paid(self):
        self._transition_to(OrderStatus.PAID)
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                email=self.email,
                grand_total=self.pricing.grand_total,
                currency=self.pricing.currency,
                paid_at=self.updated_at,
            )
        )

    def mark_failed(self, reason=None):
        self._transition_to(OrderStatus.FAILED)
        self.failure_reason = reason
        self.raise_(OrderPaymentFailed(order_id=str(self.id), reason=reason))

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by=CancellationActor.CUSTOMER.value):
        """Cancel before payment. Paid orders are only cancelled through a refund."""
        if self.current_status != OrderStatus.PENDING:
            raise ValidationError({"status": ["Only Pending orders can be cancelled"]})
        self._cancel(reason, cancelled_by)

    def record_refund(self, reason="Payment refunded"):
        self._cancel(reason, CancellationActor.PROCESSOR.value)

    def _cancel(self, reason, cancelled_by):
        self._transition_to(OrderStatus.CANCELLED)
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def mark_processing(self):
        self._transition_to(OrderStatus.PROCESSING)
        self.raise_(OrderProcessing(order_id=str(self.id)))

    def mark_shipped(self, tracking_number=None):
        self._transition_to(OrderStatus.SHIPPED)
        self.tracking_number = tracking_number
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=tracking_number,
                shipped_at=self.updated_at,
            )
        )

    def mark_delivered(self):
        self._transition_to(OrderStatus.DELIVERED)
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=self.updated_at))
