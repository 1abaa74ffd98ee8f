from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .models import Product

class ProductRepository:

    @staticmethod
    async def get_active_product(db: AsyncSession, product_id: int):
        result = await db.execute(
            select(Product).where(Product.id == product_id, Product.is_active.is_(True))
        )
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids):
        if not product_ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(set(product_ids))))
        return {p.id: p for p in result.scalars().all()}
