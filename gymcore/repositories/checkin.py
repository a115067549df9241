"""
AsyncCheckinTokenRepository - almacén de tokens de check-in.

El consumo del token es un único UPDATE condicional (used = false AND no expirado):
dos redenciones concurrentes del mismo token producen exactamente una fila afectada.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.models.checkin import CheckinToken, CheckinEvent
from gymcore.repositories.async_base import AsyncBaseRepository


class AsyncCheckinTokenRepository(AsyncBaseRepository[CheckinToken]):

    async def get_by_token(self, db: AsyncSession, token: str) -> Optional[CheckinToken]:
        stmt = (
            select(CheckinToken)
            .where(CheckinToken.token == token)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def consume(self, db: AsyncSession, token_id: int, now: datetime) -> bool:
        """
        Marca el token como usado solo si sigue sin usar y vigente.

        Args:
            db: Sesión async de base de datos
            token_id: ID del token
            now: Instante de la redención

        Returns:
            True si esta llamada ganó el token, False si otro lo consumió antes
        """
        stmt = (
            update(CheckinToken)
            .where(
                CheckinToken.id == token_id,
                CheckinToken.used == False,  # noqa: E712
                CheckinToken.expires_at >= now,
            )
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1


class AsyncCheckinEventRepository(AsyncBaseRepository[CheckinEvent]):
    pass


checkin_token_repository = AsyncCheckinTokenRepository(CheckinToken)
checkin_event_repository = AsyncCheckinEventRepository(CheckinEvent)
