from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from .models import Cart, CartItem

class CartRepository:
    """Read and clear access to carts; filling a cart happens elsewhere."""

    @staticmethod
    async def get_cart(db: AsyncSession, user_id: int):
        result = await db.execute(select(Cart).where(Cart.user_id == user_id))
        return result.scalars().first()

    @staticmethod
    async def clear_cart(db: AsyncSession, cart_id: int):
        """Deletes all items of the cart inside the caller's transaction."""
        await db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
