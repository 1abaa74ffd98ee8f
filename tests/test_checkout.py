from services.cart_service.models import Cart
from services.product_service.models import Product


async def test_checkout_creates_pending_order_without_touching_stock(client, auth, catalog, fetch):
    response = await client.post(
        "/orders/checkout",
        json={"addressId": catalog["address"].id, "paymentMethod": "card", "notes": "ring twice"},
        headers=auth(1),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["publicKey"] == "pk_test_123"
    order = body["order"]
    assert order["subtotal"] == 40.0
    assert order["total"] == 40.0
    assert order["status"] == "pending"
    assert order["paymentStatus"] == "pending"
    assert order["stockReleased"] is False
    assert order["reservedUntil"] is not None
    assert order["shippingAddress"]["fullName"] == "Sam Doe"
    assert order["notes"] == "ring twice"
    assert [(i["productName"], i["quantity"], i["lineTotal"]) for i in order["items"]] == [
        ("Alpha", 2, 20.0),
        ("Beta", 1, 20.0),
    ]
    assert order["items"][0]["productImage"] == "a.png"

    # Stock is only taken when the payment is confirmed
    assert (await fetch(Product, catalog["a"].id)).stock_qty == 5
    assert (await fetch(Product, catalog["b"].id)).stock_qty == 5
    cart = await fetch(Cart, catalog["cart"].id)
    assert cart.items == []


async def test_checkout_total_is_sum_of_lines(checkout):
    order = await checkout()
    assert order["total"] == sum(i["unitPrice"] * i["quantity"] for i in order["items"])


async def test_checkout_with_empty_cart(client, auth, catalog):
    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(1)
    )
    assert response.status_code == 201

    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(1)
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CART_EMPTY"


async def test_checkout_rejects_foreign_address(client, auth, catalog):
    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(2)
    )
    assert response.status_code == 404
    assert response.json()["error"] == {
        "code": "ADDRESS_NOT_FOUND",
        "message": "Address not found",
        "status": 404,
    }


async def test_checkout_insufficient_stock_keeps_cart(client, auth, catalog, session_factory, fetch):
    async with session_factory() as db, db.begin():
        product = await db.get(Product, catalog["a"].id)
        product.stock_qty = 1

    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(1)
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"
    assert len((await fetch(Cart, catalog["cart"].id)).items) == 2


async def test_checkout_inactive_product_is_out_of_stock(client, auth, catalog, session_factory):
    async with session_factory() as db, db.begin():
        product = await db.get(Product, catalog["b"].id)
        product.is_active = False

    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(1)
    )
    assert response.status_code == 409


async def test_checkout_currency_mismatch(client, auth, catalog, session_factory):
    async with session_factory() as db, db.begin():
        product = await db.get(Product, catalog["b"].id)
        product.currency = "KWD"

    response = await client.post(
        "/orders/checkout", json={"addressId": catalog["address"].id}, headers=auth(1)
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CART_CURRENCY_MISMATCH"


async def test_checkout_requires_a_token(client, catalog):
    response = await client.post("/orders/checkout", json={"addressId": catalog["address"].id})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Could not validate credentials", "status": 401},
    }


async def test_checkout_rejects_unknown_payment_method(client, auth, catalog):
    response = await client.post(
        "/orders/checkout",
        json={"addressId": catalog["address"].id, "paymentMethod": "barter"},
        headers=auth(1),
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


async def test_buy_single_leaves_cart_alone(client, auth, catalog, fetch):
    response = await client.post(
        "/orders/buySingle",
        json={"productId": catalog["b"].id, "quantity": 3, "addressId": catalog["address"].id},
        headers=auth(1),
    )

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["total"] == 60.0
    assert order["paymentMethod"] == "card"
    assert len(order["items"]) == 1
    assert len((await fetch(Cart, catalog["cart"].id)).items) == 2
    assert (await fetch(Product, catalog["b"].id)).stock_qty == 5


async def test_buy_single_more_than_stock(client, auth, catalog):
    response = await client.post(
        "/orders/buySingle",
        json={"productId": catalog["b"].id, "quantity": 6, "addressId": catalog["address"].id},
        headers=auth(1),
    )
    assert response.status_code == 409


async def test_buy_single_zero_quantity_rejected_at_boundary(client, auth, catalog):
    response = await client.post(
        "/orders/buySingle",
        json={"productId": catalog["b"].id, "quantity": 0, "addressId": catalog["address"].id},
        headers=auth(1),
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


async def test_single_summary(client, auth, catalog):
    response = await client.post(
        "/orders/summary/single",
        json={"productId": catalog["a"].id, "quantity": 3},
        headers=auth(1),
    )
    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["total"] == 30.0
    assert summary["currency"] == "USD"
    assert summary["items"][0]["name"] == "Alpha"


async def test_single_summary_errors(client, auth, catalog):
    missing = await client.post(
        "/orders/summary/single", json={"productId": 9999, "quantity": 1}, headers=auth(1)
    )
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "PRODUCT_NOT_FOUND"

    zero = await client.post(
        "/orders/summary/single", json={"productId": catalog["a"].id, "quantity": 0}, headers=auth(1)
    )
    assert zero.status_code == 400
    assert zero.json()["error"]["code"] == "INVALID_QUANTITY"

    too_many = await client.post(
        "/orders/summary/single", json={"productId": catalog["a"].id, "quantity": 6}, headers=auth(1)
    )
    assert too_many.status_code == 409


async def test_cart_summary_does_not_create_an_order(client, auth, catalog):
    response = await client.get("/orders/summary/cart", headers=auth(1))
    assert response.status_code == 200
    assert response.json()["summary"]["subtotal"] == 40.0

    listing = await client.get("/orders/", headers=auth(1))
    assert listing.json()["total"] == 0


async def test_cart_summary_without_cart(client, auth, catalog):
    response = await client.get("/orders/summary/cart", headers=auth(2))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CART_EMPTY"


async def test_error_messages_follow_accept_language(client, auth, catalog):
    response = await client.post(
        "/orders/checkout",
        json={"addressId": catalog["address"].id},
        headers={**auth(2), "Accept-Language": "ar-KW,ar;q=0.9,en;q=0.8"},
    )
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "العنوان غير موجود"
