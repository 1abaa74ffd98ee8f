import os

# Must be set before any project module reads the environment
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["TRACING_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PAYMENT_GATEWAY"] = "fake"
os.environ["ORDER_TIMEOUT_SWEEP_ENABLED"] = "false"
os.environ["STRIPE_PUBLIC_KEY"] = "pk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"

import json

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from main import app
from services.address_service.models import Address
from services.cart_service.models import Cart, CartItem
from services.order_service.main import order_app
from services.order_service.models import Order
from services.payment_service.gateway import FakeGateway, reset_gateway, set_gateway
from services.payment_service.main import payment_app
from services.product_service.models import Product
from shared.config.database import build_engine, create_all, get_db
from shared.security import create_access_token


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_all(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def gateway():
    fake = FakeGateway(webhook_secret="whsec_test")
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    for sub_app in (order_app, payment_app):
        sub_app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    for sub_app in (order_app, payment_app):
        sub_app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(user_id: int = 1, role: str = "owner") -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return _headers


@pytest.fixture
def seed(session_factory):
    async def _seed(*objects):
        async with session_factory() as db, db.begin():
            db.add_all(objects)
        return objects
    return _seed


@pytest.fixture
def fetch(session_factory):
    async def _fetch(model, pk):
        async with session_factory() as db:
            return await db.get(model, pk)
    return _fetch


@pytest.fixture
async def catalog(seed):
    """Two USD products with five units each, plus user 1's address and cart (A x2, B x1)."""
    product_a = Product(name="Alpha", images=["a.png"], price=10.0, currency="USD", stock_qty=5)
    product_b = Product(name="Beta", images=[], price=20.0, currency="USD", stock_qty=5)
    address = Address(
        user_id=1, full_name="Sam Doe", phone="+96500000000", line1="Block 1",
        city="Kuwait City", country="KW",
    )
    await seed(product_a, product_b, address)
    cart = Cart(user_id=1, items=[
        CartItem(product_id=product_a.id, quantity=2, currency="USD"),
        CartItem(product_id=product_b.id, quantity=1, currency="USD"),
    ])
    await seed(cart)
    return {"a": product_a, "b": product_b, "address": address, "cart": cart}


@pytest.fixture
def checkout(client, auth, catalog):
    async def _checkout(user_id: int = 1) -> dict:
        response = await client.post(
            "/orders/checkout",
            json={"addressId": catalog["address"].id, "paymentMethod": "card"},
            headers=auth(user_id),
        )
        assert response.status_code == 201, response.text
        return response.json()["order"]
    return _checkout


@pytest.fixture
def post_event(client, gateway):
    async def _post(event: dict):
        body = json.dumps(event).encode()
        return await client.post(
            "/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": gateway.sign(body), "Content-Type": "application/json"},
        )
    return _post


def succeeded_event(order_id, intent_id="pi_test", event_id="evt_paid_1"):
    return {
        "id": event_id,
        "type": "payment_intent.succeeded",
        "data": {"object": {
            "id": intent_id,
            "latest_charge": "ch_test",
            "metadata": {"orderId": str(order_id)},
        }},
    }


def refunded_event(intent_id, event_id="evt_refund_1"):
    return {
        "id": event_id,
        "type": "charge.refunded",
        "data": {"object": {"id": "ch_test", "payment_intent": intent_id}},
    }


@pytest.fixture
def pay(client, auth, post_event, fetch):
    """Create a payment intent for the order and deliver its success event."""
    async def _pay(order_id: int, user_id: int = 1, event_id: str = "evt_paid_1") -> Order:
        response = await client.post(f"/orders/{order_id}/paymentIntent", headers=auth(user_id))
        assert response.status_code == 200, response.text
        order = await fetch(Order, order_id)
        await post_event(succeeded_event(order_id, order.payment_intent_id, event_id))
        return await fetch(Order, order_id)
    return _pay
