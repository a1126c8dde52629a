import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from storefront.api import (
    cart_router,
    checkout_router,
    fulfillment_router,
    order_router,
    register_error_handlers,
    webhook_router,
)


@pytest.fixture()
def client(storefront_bed):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with storefront_bed.domain.domain_context():
            return await call_next(request)

    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    app.include_router(fulfillment_router)
    app.include_router(webhook_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def guest():
    return {"X-Session-Id": "sess-api-001"}


@pytest.fixture()
def customer():
    return {"X-Customer-Id": "cust-api-001"}


@pytest.fixture()
def checkout_body():
    return {
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
    }
