"""
Repositorios async de suscripciones y acceso de miembros.

Las transiciones de morosidad son UPDATE condicionales sobre el estado actual:
si otro proceso ya avanzó la fila, la transición afecta 0 filas y no se aplica.
"""
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.models.billing import Subscription, MemberAccess, DelinquencyState, AccessState
from gymcore.repositories.async_base import AsyncBaseRepository


class AsyncSubscriptionRepository(AsyncBaseRepository[Subscription]):

    async def get_expiring(
        self,
        db: AsyncSession,
        *,
        now: datetime,
        until: datetime,
        limit: int
    ) -> List[Subscription]:
        """Suscripciones en PENDING_RETRY cuya gracia termina en [now, until]."""
        stmt = (
            select(Subscription)
            .where(
                Subscription.delinquency_state == DelinquencyState.PENDING_RETRY,
                Subscription.grace_period_until >= now,
                Subscription.grace_period_until <= until,
            )
            .order_by(Subscription.grace_period_until, Subscription.id)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_expired(
        self,
        db: AsyncSession,
        *,
        now: datetime,
        limit: int
    ) -> List[Subscription]:
        """Suscripciones en PENDING_RETRY cuya gracia ya terminó."""
        stmt = (
            select(Subscription)
            .where(
                Subscription.delinquency_state == DelinquencyState.PENDING_RETRY,
                Subscription.grace_period_until < now,
            )
            .order_by(Subscription.grace_period_until, Subscription.id)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def transition(
        self,
        db: AsyncSession,
        subscription_id: int,
        *,
        from_states: Sequence[DelinquencyState],
        to_state: DelinquencyState,
        grace_period_until: Optional[datetime],
        now: datetime
    ) -> bool:
        """
        Cambia el estado de morosidad solo si la fila sigue en alguno de from_states.

        Returns:
            True si la fila fue actualizada por esta llamada
        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.delinquency_state.in_(list(from_states)),
            )
            .values(
                delinquency_state=to_state,
                grace_period_until=grace_period_until,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1


class AsyncMemberAccessRepository(AsyncBaseRepository[MemberAccess]):

    async def get_by_member(self, db: AsyncSession, member_id: int) -> Optional[MemberAccess]:
        stmt = (
            select(MemberAccess)
            .where(MemberAccess.member_id == member_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def set_access_state(
        self,
        db: AsyncSession,
        member_id: int,
        access_state: AccessState,
        now: datetime
    ) -> None:
        """Actualiza el acceso del miembro, creando la fila si todavía no existe."""
        stmt = (
            update(MemberAccess)
            .where(MemberAccess.member_id == member_id)
            .values(access_state=access_state, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            db.add(MemberAccess(member_id=member_id, access_state=access_state, updated_at=now))
        await db.flush()


subscription_repository = AsyncSubscriptionRepository(Subscription)
member_access_repository = AsyncMemberAccessRepository(MemberAccess)
