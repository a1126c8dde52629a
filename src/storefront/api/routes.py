"""FastAPI routes for the Storefront: cart, checkout, orders and webhooks.

Callers identify themselves with exactly one of the ``X-Customer-Id``
(signed-in account) or ``X-Session-Id`` (guest) headers.
"""

from dataclasses import dataclass

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddCartLineRequest,
    ApplyPromoCodeRequest,
    CancelOrderRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    LineIdResponse,
    MarkShippedRequest,
    MergeGuestCartRequest,
    MergeResponse,
    OrderResponse,
    PaymentIntentResponse,
    PaymentStatusResponse,
    StatusResponse,
    UpdateCartLineRequest,
)
from storefront.cart.lines import AddCartLine, ClearCart, RemoveCartLine, UpdateCartLine
from storefront.cart.merging import MergeGuestCart
from storefront.cart.preview import cart_view, checkout_preview
from storefront.cart.promo import ApplyPromoCode, RemovePromoCode
from storefront.checkout.flow import checkout
from storefront.exceptions import OrderNotFoundError
from storefront.order.cancellation import CancelOrder, cancel_order
from storefront.order.fulfillment import MarkDelivered, MarkProcessing, MarkShipped
from storefront.order.order import Order
from storefront.payment.intents import create_payment_intent, refresh_payment_status
from storefront.payment.webhook import WebhookReconciler
from storefront.utils import locks


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Caller:
    customer_id: str | None = None
    session_id: str | None = None

    @property
    def owner(self) -> dict:
        return {"customer_id": self.customer_id, "session_id": self.session_id}


def current_caller(
    x_customer_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> Caller:
    if bool(x_customer_id) == bool(x_session_id):
        raise ValidationError({"owner": ["Send exactly one of X-Customer-Id or X-Session-Id"]})
    return Caller(customer_id=x_customer_id, session_id=x_session_id)


def current_customer(x_customer_id: str | None = Header(default=None)) -> str:
    if not x_customer_id:
        raise ValidationError({"owner": ["X-Customer-Id is required"]})
    return x_customer_id


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        email=order.email,
        lines=[
            {
                "product_id": str(line.product_id),
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
            }
            for line in order.lines
        ],
        delivery_address=order.delivery_address.to_dict(),
        pricing=order.pricing.to_dict(),
        promo_code=order.promo_code,
        payment_intent_id=order.payment_intent_id,
        created_at=order.created_at.isoformat() if order.created_at else None,
    )


def _owned_order(order: Order, caller: Caller) -> Order:
    if not order.owned_by(caller.customer_id, caller.session_id):
        raise OrderNotFoundError(order.id)
    return order


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(country: str = "United Kingdom", caller: Caller = Depends(current_caller)) -> CartResponse:
    return CartResponse(**cart_view(caller.customer_id, caller.session_id, country))


@cart_router.get("/preview", response_model=CartResponse)
async def preview_checkout(country: str = "United Kingdom", caller: Caller = Depends(current_caller)) -> CartResponse:
    return CartResponse(**checkout_preview(caller.customer_id, caller.session_id, country))


@cart_router.post("/lines", status_code=201, response_model=LineIdResponse)
async def add_cart_line(body: AddCartLineRequest, caller: Caller = Depends(current_caller)) -> LineIdResponse:
    command = AddCartLine(product_id=body.product_id, quantity=body.quantity, **caller.owner)
    line_id = current_domain.process(command, asynchronous=False)
    return LineIdResponse(line_id=line_id)


@cart_router.put("/lines/{line_id}", response_model=StatusResponse)
async def update_cart_line(
    line_id: str, body: UpdateCartLineRequest, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = UpdateCartLine(line_id=line_id, quantity=body.quantity, **caller.owner)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/lines/{line_id}", response_model=StatusResponse)
async def remove_cart_line(line_id: str, caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(RemoveCartLine(line_id=line_id, **caller.owner), asynchronous=False)
    return StatusResponse()


@cart_router.delete("", response_model=StatusResponse)
async def clear_cart(caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(ClearCart(**caller.owner), asynchronous=False)
    return StatusResponse()


@cart_router.post("/promo", response_model=StatusResponse)
async def apply_promo_code(body: ApplyPromoCodeRequest, caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(ApplyPromoCode(code=body.code, **caller.owner), asynchronous=False)
    return StatusResponse(status="applied")


@cart_router.delete("/promo", response_model=StatusResponse)
async def remove_promo_code(caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(RemovePromoCode(**caller.owner), asynchronous=False)
    return StatusResponse()


@cart_router.post("/merge", response_model=MergeResponse)
async def merge_guest_cart(
    body: MergeGuestCartRequest, customer_id: str = Depends(current_customer)
) -> MergeResponse:
    merged = current_domain.process(
        MergeGuestCart(customer_id=customer_id, session_id=body.session_id),
        asynchronous=False,
    )
    return MergeResponse(lines_merged=merged)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def run_checkout(body: CheckoutRequest, caller: Caller = Depends(current_caller)) -> CheckoutResponse:
    result = checkout(
        contact={"email": body.email, "first_name": body.first_name, "last_name": body.last_name},
        delivery_address=body.delivery_address.model_dump(),
        gift=body.gift.model_dump() if body.gift else None,
        **caller.owner,
    )
    return CheckoutResponse(**result)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(caller: Caller = Depends(current_caller)) -> list[OrderResponse]:
    orders = current_domain.repository_for(Order).for_owner(caller.customer_id, caller.session_id)
    return [_order_response(order) for order in orders]


@order_router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str, caller: Caller = Depends(current_caller)) -> OrderResponse:
    order = current_domain.repository_for(Order).by_number(order_number)
    return _order_response(_owned_order(order, caller))


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel(order_id: str, body: CancelOrderRequest, caller: Caller = Depends(current_caller)) -> StatusResponse:
    cancel_order(CancelOrder(order_id=order_id, reason=body.reason, **caller.owner))
    return StatusResponse(status="cancelled")


@order_router.post("/{order_id}/payment-intent", response_model=PaymentIntentResponse)
async def retry_payment_intent(order_id: str, caller: Caller = Depends(current_caller)) -> PaymentIntentResponse:
    _owned_order(current_domain.repository_for(Order).load(order_id), caller)
    return PaymentIntentResponse(**create_payment_intent(order_id))


@order_router.get("/{order_id}/payment", response_model=PaymentStatusResponse)
async def payment_status(order_id: str, caller: Caller = Depends(current_caller)) -> PaymentStatusResponse:
    _owned_order(current_domain.repository_for(Order).load(order_id), caller)
    return PaymentStatusResponse(**refresh_payment_status(order_id))


# ---------------------------------------------------------------------------
# Fulfilment Router (back office)
# ---------------------------------------------------------------------------
fulfillment_router = APIRouter(prefix="/fulfillment/orders", tags=["fulfillment"])


@fulfillment_router.post("/{order_id}/processing", response_model=StatusResponse)
async def mark_processing(order_id: str) -> StatusResponse:
    locks.process_locked(MarkProcessing(order_id=order_id), locks.order_key(order_id))
    return StatusResponse(status="processing")


@fulfillment_router.post("/{order_id}/shipped", response_model=StatusResponse)
async def mark_shipped(order_id: str, body: MarkShippedRequest) -> StatusResponse:
    locks.process_locked(
        MarkShipped(order_id=order_id, tracking_number=body.tracking_number),
        locks.order_key(order_id),
    )
    return StatusResponse(status="shipped")


@fulfillment_router.post("/{order_id}/delivered", response_model=StatusResponse)
async def mark_delivered(order_id: str) -> StatusResponse:
    locks.process_locked(MarkDelivered(order_id=order_id), locks.order_key(order_id))
    return StatusResponse(status="delivered")


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/payments")
async def payment_webhook(request: Request) -> JSONResponse:
    """Processor notifications. The body is read raw; it must not be re-serialized before verification."""
    signature = request.headers.get("stripe-signature")
    raw_body = await request.body()

    if not signature:
        return JSONResponse(status_code=400, content={"status": "rejected", "reason": "missing_signature"})
    if not raw_body:
        return JSONResponse(status_code=400, content={"status": "rejected", "reason": "empty_body"})

    result = WebhookReconciler().handle(raw_body, signature)
    return JSONResponse(status_code=result.http_status, content=result.as_dict())
