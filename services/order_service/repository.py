from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Order, OrderItem, OrderStatus
from .schemas import OrderFilters, OrderSort

_SORTS = {
    OrderSort.DATE_LATEST: Order.created_at.desc(),
    OrderSort.DATE_OLDEST: Order.created_at.asc(),
    OrderSort.TOTAL_HIGH_TO_LOW: Order.total.desc(),
    OrderSort.TOTAL_LOW_TO_HIGH: Order.total.asc(),
}


class OrderRepository:
    """Order persistence. Callers own the transaction; nothing here commits."""

    @staticmethod
    async def add_order(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_owned_order(db: AsyncSession, order_id: int, user_id: int) -> Optional[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id, Order.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_by_payment_intent(db: AsyncSession, intent_id: str) -> Optional[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.payment_intent_id == intent_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def record_payment_intent(db: AsyncSession, order_id: int, provider: str, intent_id: str) -> None:
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(payment_provider=provider, payment_intent_id=intent_id)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def find_expired_ids(db: AsyncSession, now: datetime) -> list[int]:
        result = await db.execute(
            select(Order.id).where(
                Order.status == OrderStatus.PENDING.value,
                Order.reserved_until < now,
                Order.stock_released.is_(False),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_orders(db: AsyncSession, filters: OrderFilters) -> tuple[list[Order], int]:
        conditions = []
        if filters.user_id is not None:
            conditions.append(Order.user_id == filters.user_id)
        if filters.status is not None:
            conditions.append(Order.status == filters.status.value)
        if filters.payment_status is not None:
            conditions.append(Order.payment_status == filters.payment_status.value)
        if filters.payment_method is not None:
            conditions.append(Order.payment_method == filters.payment_method.value)
        if filters.currency:
            conditions.append(Order.currency == filters.currency.upper())
        if filters.min_total is not None:
            conditions.append(Order.total >= filters.min_total)
        if filters.max_total is not None:
            conditions.append(Order.total <= filters.max_total)
        if filters.from_date is not None:
            conditions.append(Order.created_at >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(Order.created_at <= filters.to_date)
        if filters.product_id is not None:
            conditions.append(
                Order.items.any(OrderItem.product_id == filters.product_id)
            )
        if filters.search:
            term = filters.search.strip()
            matches = [Order.items.any(OrderItem.product_name.ilike(f"%{term}%"))]
            if term.isdigit():
                matches.append(Order.id == int(term))
            conditions.append(or_(*matches))

        total = await db.scalar(select(func.count(Order.id)).where(*conditions))

        result = await db.execute(
            select(Order)
            .where(*conditions)
            .order_by(_SORTS[filters.sort], Order.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), int(total or 0)
