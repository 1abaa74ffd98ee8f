from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Address


class AddressRepository:

    @staticmethod
    async def get_owned(db: AsyncSession, address_id: int, user_id: int) -> Optional[Address]:
        result = await db.execute(
            select(Address).where(Address.id == address_id, Address.user_id == user_id)
        )
        return result.scalars().first()
