"""
Repositorios async de miembros y staff.

Ambos se buscan por user_id, el subject que entrega el colaborador de identidad.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.models.member import Member, Staff
from gymcore.repositories.async_base import AsyncBaseRepository


class AsyncMemberRepository(AsyncBaseRepository[Member]):

    async def get_by_user_id(self, db: AsyncSession, user_id: str) -> Optional[Member]:
        result = await db.execute(select(Member).where(Member.user_id == user_id))
        return result.scalar_one_or_none()


class AsyncStaffRepository(AsyncBaseRepository[Staff]):

    async def get_by_user_id(self, db: AsyncSession, user_id: str) -> Optional[Staff]:
        result = await db.execute(select(Staff).where(Staff.user_id == user_id))
        return result.scalar_one_or_none()


member_repository = AsyncMemberRepository(Member)
staff_repository = AsyncStaffRepository(Staff)
