"""Storefront error taxonomy.

Domain failures extend Protean's exceptions so that
``protean.integrations.fastapi`` and the API error handlers map them to
HTTP statuses. Every error carries a ``messages`` dict keyed by field.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError


class EmptyCartError(ValidationError):
    def __init__(self):
        super().__init__({"cart": ["Cart is empty"]})


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds what is on hand for a product."""

    def __init__(self, product_id, requested, available):
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        super().__init__(
            {
                "quantity": [
                    f"Insufficient stock for product {product_id}: {available} available, {requested} requested"
                ]
            }
        )


class _NotFoundError(ObjectNotFoundError):
    def __init__(self, messages):
        super().__init__(messages)
        self.messages = messages


class ProductNotFoundError(_NotFoundError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {product_id} does not exist"]})


class CartLineNotFoundError(_NotFoundError):
    def __init__(self, line_id):
        self.line_id = str(line_id)
        super().__init__({"line_id": [f"Cart line {line_id} not found"]})


class OrderNotFoundError(_NotFoundError):
    def __init__(self, reference):
        self.reference = str(reference)
        super().__init__({"order": [f"Order {reference} not found"]})


class PromoCodeNotFoundError(_NotFoundError):
    def __init__(self, code):
        self.code = str(code)
        super().__init__({"promo_code": [f"Promo code {code} not found"]})


class ConflictError(InvalidOperationError):
    """The operation raced with, or contradicts, the current state."""

    def __init__(self, messages):
        self.messages = messages
        super().__init__(messages)


class GatewayError(Exception):
    """The payment processor rejected the request or could not be reached."""

    def __init__(self, gateway_message, order_id=None, order_number=None):
        self.gateway_message = gateway_message
        self.order_id = order_id
        self.order_number = order_number
        self.messages = {"payment": [gateway_message]}
        super().__init__(gateway_message)


class SignatureError(Exception):
    """A webhook payload did not carry a valid processor signature."""

    def __init__(self, reason="invalid_signature"):
        self.reason = reason
        self.messages = {"signature": [reason]}
        super().__init__(reason)
