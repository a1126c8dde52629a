"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = None
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)


class GiftSchema(BaseModel):
    occasion: str | None = Field(default=None, max_length=100)
    message: str | None = None


class TotalsSchema(BaseModel):
    subtotal: str
    discount: str
    tax: str
    shipping: str
    total: str
    currency: str
    promo_code: str | None = None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-rose-bouquet",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartLineRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyPromoCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class MergeGuestCartRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=255)


class CartLineSchema(BaseModel):
    line_id: str
    product_id: str
    quantity: int
    price: str


class CartResponse(BaseModel):
    cart_id: str | None = None
    promo_code: str | None = None
    lines: list[CartLineSchema] = []
    totals: TotalsSchema


class LineIdResponse(BaseModel):
    line_id: str


class MergeResponse(BaseModel):
    lines_merged: int


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    delivery_address: AddressSchema
    gift: GiftSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "email": "sam@example.com",
                    "first_name": "Sam",
                    "last_name": "Rivera",
                    "delivery_address": {
                        "street": "221B Baker Street",
                        "city": "London",
                        "state": None,
                        "postal_code": "NW1 6XE",
                        "country": "United Kingdom",
                    },
                    "gift": {"occasion": "Birthday", "message": "Happy birthday!"},
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    intent_id: str
    client_secret: str


class PaymentIntentResponse(BaseModel):
    intent_id: str
    client_secret: str
    amount_minor: int
    currency: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CancelOrderRequest(BaseModel):
    reason: str = Field(default="Cancelled by customer", max_length=500)


class MarkShippedRequest(BaseModel):
    tracking_number: str | None = Field(default=None, max_length=255)


class OrderLineSchema(BaseModel):
    product_id: str
    product_name: str | None = None
    quantity: int
    unit_price: float


class OrderPricingSchema(BaseModel):
    subtotal: float
    discount_total: float
    tax_total: float
    shipping_cost: float
    grand_total: float
    currency: str


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    email: str
    lines: list[OrderLineSchema]
    delivery_address: AddressSchema
    pricing: OrderPricingSchema
    promo_code: str | None = None
    payment_intent_id: str | None = None
    created_at: str | None = None


class PaymentStatusResponse(BaseModel):
    order_id: str
    status: str | None = None
    processor_status: str | None = None
    amount_minor: int | None = None
    currency: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"
