from datetime import timedelta

import pytest

from services.order_service import state_machine
from services.order_service.models import Order, OrderStatus, PaymentStatus
from shared.clock import utcnow
from shared.errors import InvalidTransition

ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PAID, OrderStatus.PROCESSING),
    (OrderStatus.PAID, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
}


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_admin_transition_table_is_closed(current, target):
    if (current, target) in ALLOWED:
        state_machine.check_admin_transition(current, target)
    else:
        with pytest.raises(InvalidTransition):
            state_machine.check_admin_transition(current, target)


@pytest.mark.parametrize("current", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
def test_finalized_orders_report_already_finalized(current):
    with pytest.raises(InvalidTransition) as exc:
        state_machine.check_admin_transition(current, OrderStatus.PROCESSING)
    assert exc.value.code == "ORDER_ALREADY_FINALIZED"


def test_delivered_orders_cannot_change():
    with pytest.raises(InvalidTransition) as exc:
        state_machine.check_admin_transition(OrderStatus.DELIVERED, OrderStatus.SHIPPED)
    assert exc.value.code == "DELIVERED_ORDER_CANNOT_CHANGE"


def test_paid_is_never_an_admin_target():
    with pytest.raises(InvalidTransition) as exc:
        state_machine.check_admin_transition(OrderStatus.PENDING, OrderStatus.PAID)
    assert exc.value.code == "INVALID_ORDER_STATUS_TRANSITION"


def _order(**overrides) -> Order:
    values = dict(
        user_id=1, subtotal=10.0, shipping_fee=0.0, tax_amount=0.0, total=10.0,
        currency="USD", status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value, payment_method="card",
        reserved_until=utcnow() + timedelta(minutes=15), stock_released=False,
        shipping_address={"full_name": "x"},
    )
    values.update(overrides)
    return Order(**values)


async def test_mark_paid_applies_once_per_event(session_factory, seed, fetch):
    (order,) = await seed(_order())
    async with session_factory() as db, db.begin():
        assert await state_machine.mark_paid(db, order.id, charge_id="ch_1", event_id="evt_1")
    async with session_factory() as db, db.begin():
        assert not await state_machine.mark_paid(db, order.id, charge_id="ch_1", event_id="evt_1")

    stored = await fetch(Order, order.id)
    assert (stored.status, stored.payment_status) == ("paid", "succeeded")
    assert stored.payment_last_event_id == "evt_1"
    assert stored.payment_charge_id == "ch_1"


async def test_mark_paid_loses_to_a_cancelled_order(session_factory, seed):
    (order,) = await seed(_order(status="cancelled", payment_status="failed"))
    async with session_factory() as db, db.begin():
        assert not await state_machine.mark_paid(db, order.id, charge_id=None, event_id="evt_late")


async def test_expire_only_touches_elapsed_reservations(session_factory, seed, fetch):
    now = utcnow()
    fresh, stale = await seed(
        _order(reserved_until=now + timedelta(minutes=5)),
        _order(reserved_until=now - timedelta(minutes=5)),
    )
    async with session_factory() as db, db.begin():
        assert not await state_machine.expire(db, fresh.id, now)
        assert await state_machine.expire(db, stale.id, now)
        assert not await state_machine.expire(db, stale.id, now)

    stored = await fetch(Order, stale.id)
    assert (stored.status, stored.payment_status) == ("cancelled", "failed")
    assert stored.stock_released is False


async def test_mark_refunded_flips_stock_released_exactly_once(session_factory, seed, fetch):
    (order,) = await seed(_order(status="cancelled", payment_status="succeeded"))
    async with session_factory() as db, db.begin():
        assert await state_machine.mark_refunded(db, order.id, event_id="evt_r1")
    async with session_factory() as db, db.begin():
        assert not await state_machine.mark_refunded(db, order.id, event_id="evt_r2")

    stored = await fetch(Order, order.id)
    assert (stored.status, stored.payment_status) == ("refunded", "refunded")
    assert stored.stock_released is True
    assert stored.payment_last_event_id == "evt_r1"


async def test_mark_refunded_ignores_unpaid_orders(session_factory, seed):
    (order,) = await seed(_order())
    async with session_factory() as db, db.begin():
        assert not await state_machine.mark_refunded(db, order.id, event_id="evt_r1")


async def test_apply_admin_transition_moves_status_only(session_factory, seed, fetch):
    (order,) = await seed(_order(status="paid", payment_status="succeeded"))
    async with session_factory() as db, db.begin():
        stored = await db.get(Order, order.id)
        await state_machine.apply_admin_transition(db, stored, OrderStatus.PROCESSING)

    stored = await fetch(Order, order.id)
    assert (stored.status, stored.payment_status) == ("processing", "succeeded")
