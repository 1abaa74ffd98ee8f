"""
Order state machine.

`status` (fulfilment) and `payment_status` (provider) are two independent axes.
Only this module writes them. Admins move `status` through ADMIN_TRANSITIONS;
the reconciler, reaper and compensator use the named system transitions below.

Every write is a single guarded UPDATE: the precondition lives in the WHERE
clause and `rowcount` reports whether this caller won. Two racing writers (a
webhook and the reaper, or two deliveries of one event) therefore never both
apply; the loser gets False and must leave everything else untouched.
"""
from datetime import datetime

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import InvalidTransition

from .models import Order, OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)

ADMIN_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

FINALIZED = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Orders a provider refund may still be applied to; delivered included, since
# only admin transitions treat it as terminal
REFUNDABLE = frozenset({
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})


def check_admin_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise InvalidTransition unless an admin may move current -> target."""
    if current in FINALIZED:
        raise InvalidTransition("ORDER_ALREADY_FINALIZED", f"order is {current.value}")
    if current is OrderStatus.DELIVERED:
        raise InvalidTransition("DELIVERED_ORDER_CANNOT_CHANGE")
    if target not in ADMIN_TRANSITIONS[current]:
        raise InvalidTransition(
            "INVALID_ORDER_STATUS_TRANSITION",
            f"cannot change status from {current.value} to {target.value}",
        )


async def _guarded_update(db: AsyncSession, order_id: int, conditions, values: dict) -> bool:
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def apply_admin_transition(db: AsyncSession, order: Order, target: OrderStatus) -> None:
    """Move `status` only; `payment_status` is never touched by an admin."""
    current = OrderStatus(order.status)
    check_admin_transition(current, target)
    applied = await _guarded_update(
        db,
        order.id,
        [Order.status == current.value],
        {"status": target.value},
    )
    if not applied:
        # Someone else moved the order between our read and write
        raise InvalidTransition(
            "INVALID_ORDER_STATUS_TRANSITION",
            f"order {order.id} is no longer {current.value}",
        )
    logger.info("order.status_changed", order_id=order.id, source=current.value, target=target.value)


async def mark_paid(db: AsyncSession, order_id: int, *, charge_id: str | None, event_id: str) -> bool:
    """pending/pending -> paid/succeeded, recording the provider event once."""
    return await _guarded_update(
        db,
        order_id,
        [
            Order.status == OrderStatus.PENDING.value,
            Order.payment_status == PaymentStatus.PENDING.value,
            or_(Order.payment_last_event_id.is_(None), Order.payment_last_event_id != event_id),
        ],
        {
            "status": OrderStatus.PAID.value,
            "payment_status": PaymentStatus.SUCCEEDED.value,
            "payment_charge_id": charge_id,
            "payment_last_event_id": event_id,
        },
    )


async def expire(db: AsyncSession, order_id: int, now: datetime) -> bool:
    """Abandoned reservation: pending -> cancelled/failed."""
    return await _guarded_update(
        db,
        order_id,
        [
            Order.status == OrderStatus.PENDING.value,
            Order.reserved_until < now,
            Order.stock_released.is_(False),
        ],
        {
            "status": OrderStatus.CANCELLED.value,
            "payment_status": PaymentStatus.FAILED.value,
        },
    )


async def cancel_unpaid(db: AsyncSession, order_id: int) -> bool:
    return await _guarded_update(
        db,
        order_id,
        [
            Order.status == OrderStatus.PENDING.value,
            Order.payment_status == PaymentStatus.PENDING.value,
        ],
        {
            "status": OrderStatus.CANCELLED.value,
            "payment_status": PaymentStatus.FAILED.value,
        },
    )


async def cancel_paid(db: AsyncSession, order_id: int) -> bool:
    """paid -> cancelled; payment_status follows later via charge.refunded."""
    return await _guarded_update(
        db,
        order_id,
        [
            Order.status == OrderStatus.PAID.value,
            Order.payment_status == PaymentStatus.SUCCEEDED.value,
        ],
        {"status": OrderStatus.CANCELLED.value},
    )


async def mark_refunded(db: AsyncSession, order_id: int, *, event_id: str) -> bool:
    """Provider confirmed a refund: claim the one-time stock restoration."""
    return await _guarded_update(
        db,
        order_id,
        [
            Order.stock_released.is_(False),
            Order.payment_status == PaymentStatus.SUCCEEDED.value,
            Order.status.in_([s.value for s in REFUNDABLE]),
        ],
        {
            "status": OrderStatus.REFUNDED.value,
            "payment_status": PaymentStatus.REFUNDED.value,
            "stock_released": True,
            "payment_last_event_id": event_id,
        },
    )
