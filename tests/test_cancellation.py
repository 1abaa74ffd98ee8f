from conftest import refunded_event
from services.order_service.models import Order
from services.product_service.models import Product


async def test_cancel_unpaid_order(client, auth, checkout, gateway, fetch):
    order = await checkout()

    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Order cancelled successfully"}
    stored = await fetch(Order, order["id"])
    assert (stored.status, stored.payment_status) == ("cancelled", "failed")
    assert gateway.refunds == []


async def test_cancel_twice_is_a_successful_no_op(client, auth, checkout):
    order = await checkout()
    await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    assert response.status_code == 200
    assert response.json()["message"] == "Order already cancelled"


async def test_cancel_someone_elses_order(client, auth, checkout):
    order = await checkout()
    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(2))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"


async def test_cancel_after_pay_refunds_then_restocks_once(client, auth, pay, post_event, checkout, catalog, gateway, fetch):
    order = await checkout()
    paid = await pay(order["id"])
    assert (await fetch(Product, catalog["a"].id)).stock_qty == 3

    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    assert response.status_code == 200
    assert gateway.refunds == [{
        "method": "create_refund",
        "payment_intent_id": paid.payment_intent_id,
        "idempotency_key": f"refund_order_{order['id']}",
    }]
    stored = await fetch(Order, order["id"])
    assert (stored.status, stored.payment_status, stored.stock_released) == ("cancelled", "succeeded", False)
    # Restocking waits for the provider's confirmation
    assert (await fetch(Product, catalog["a"].id)).stock_qty == 3

    await post_event(refunded_event(paid.payment_intent_id))

    stored = await fetch(Order, order["id"])
    assert (stored.status, stored.payment_status, stored.stock_released) == ("refunded", "refunded", True)
    assert (await fetch(Product, catalog["a"].id)).stock_qty == 5
    assert (await fetch(Product, catalog["b"].id)).stock_qty == 5

    await post_event(refunded_event(paid.payment_intent_id, event_id="evt_refund_2"))

    assert (await fetch(Product, catalog["a"].id)).stock_qty == 5
    assert (await fetch(Product, catalog["b"].id)).stock_qty == 5


async def test_refund_failure_keeps_order_paid(client, auth, pay, checkout, gateway, fetch):
    order = await checkout()
    await pay(order["id"])
    gateway.configure(should_succeed=False)

    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "PAYMENT_PROVIDER_ERROR"
    assert (await fetch(Order, order["id"])).status == "paid"


async def test_shipped_order_cannot_be_cancelled(client, auth, pay, checkout):
    order = await checkout()
    await pay(order["id"])
    admin = auth(99, "admin")
    for target in ("processing", "shipped"):
        response = await client.patch(f"/orders/{order['id']}/status", json={"status": target}, headers=admin)
        assert response.status_code == 200

    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth(1))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ORDER_CANNOT_BE_CANCELLED"


async def test_refund_of_delivered_order_restocks(client, auth, pay, post_event, checkout, catalog, fetch):
    order = await checkout()
    paid = await pay(order["id"])
    admin = auth(99, "superadmin")
    for target in ("processing", "shipped", "delivered"):
        await client.patch(f"/orders/{order['id']}/status", json={"status": target}, headers=admin)

    await post_event(refunded_event(paid.payment_intent_id))

    stored = await fetch(Order, order["id"])
    assert (stored.status, stored.payment_status) == ("refunded", "refunded")
    assert (await fetch(Product, catalog["a"].id)).stock_qty == 5
