"""
Stock ledger: the only code allowed to change Product.stock_qty.

Each operation is one conditional UPDATE statement so concurrent callers on the
same product are serialized by the database, never by a read in Python. Both
functions run inside the caller's transaction; commit/rollback is theirs.
"""
import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product

logger = structlog.get_logger(__name__)


class StockLedger:

    @staticmethod
    async def try_reserve(db: AsyncSession, product_id: int, qty: int) -> bool:
        """Decrement stock by qty if the product is active and has enough."""
        if qty < 1:
            raise ValueError("quantity must be >= 1")
        result = await db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.is_active.is_(True),
                Product.stock_qty >= qty,
            )
            .values(stock_qty=Product.stock_qty - qty)
            .execution_options(synchronize_session=False)
        )
        reserved = result.rowcount == 1
        logger.debug("stock.try_reserve", product_id=product_id, qty=qty, reserved=reserved)
        return reserved

    @staticmethod
    async def release(db: AsyncSession, product_id: int, qty: int) -> None:
        """Credit qty back to the product, unconditionally."""
        if qty < 1:
            raise ValueError("quantity must be >= 1")
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_qty=Product.stock_qty + qty)
            .execution_options(synchronize_session=False)
        )
        logger.debug("stock.release", product_id=product_id, qty=qty)
