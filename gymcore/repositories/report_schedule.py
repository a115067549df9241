"""
AsyncReportScheduleRepository - programaciones recurrentes de reportes.

El avance del reloj de una programación es un compare-and-set sobre next_run_at:
dos sweeps solapados no pueden procesar la misma ejecución dos veces.
"""
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.models.report import ReportSchedule
from gymcore.repositories.async_base import AsyncBaseRepository


class AsyncReportScheduleRepository(AsyncBaseRepository[ReportSchedule]):

    async def get_due(self, db: AsyncSession, *, now: datetime, limit: int) -> List[ReportSchedule]:
        stmt = (
            select(ReportSchedule)
            .where(
                ReportSchedule.is_active == True,  # noqa: E712
                ReportSchedule.next_run_at <= now,
            )
            .order_by(ReportSchedule.next_run_at, ReportSchedule.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def advance(
        self,
        db: AsyncSession,
        schedule_id: int,
        *,
        expected_next_run_at: datetime,
        last_run_at: datetime,
        next_run_at: datetime
    ) -> bool:
        """
        Avanza la programación si next_run_at no cambió desde que se leyó.

        Returns:
            True si esta llamada avanzó la programación
        """
        stmt = (
            update(ReportSchedule)
            .where(
                ReportSchedule.id == schedule_id,
                ReportSchedule.next_run_at == expected_next_run_at,
            )
            .values(last_run_at=last_run_at, next_run_at=next_run_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1


report_schedule_repository = AsyncReportScheduleRepository(ReportSchedule)
