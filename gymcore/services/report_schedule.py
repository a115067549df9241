"""
ReportScheduleService - sweep de programaciones recurrentes de reportes.

Cada programación vencida (next_run_at <= now) avanza su reloj un período de
calendario en su zona horaria local. El avance es un compare-and-set sobre el
next_run_at leído: dos sweeps solapados procesan cada ejecución una sola vez.
Tras el commit se dispara la generación y entrega del reporte (fire-and-forget).
"""

from datetime import datetime
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.clock import Clock
from gymcore.core.timezone_utils import add_local_interval
from gymcore.models.report import ReportCadence
from gymcore.repositories.report_schedule import report_schedule_repository
from gymcore.schemas.report import ReportSweepResult
from gymcore.services.report_delivery import ReportDeliveryClient

logger = logging.getLogger(__name__)


CADENCE_INTERVALS = {
    ReportCadence.DAILY: relativedelta(days=1),
    ReportCadence.WEEKLY: relativedelta(weeks=1),
    # Fin de mes: se ajusta al último día válido del mes destino
    ReportCadence.MONTHLY: relativedelta(months=1),
}


def advance(cadence: ReportCadence, now: datetime, tz_name: str = "UTC") -> datetime:
    """
    Calcula la siguiente ejecución: now más un día, siete días o un mes de calendario.

    La aritmética se hace en la hora local de la programación, así que la hora de
    reloj se conserva a través de cambios de horario.

    Example:
        advance(ReportCadence.MONTHLY, datetime(2024, 1, 31, 9, tzinfo=timezone.utc))
        -> 2024-02-29 09:00 UTC
    """
    return add_local_interval(now, tz_name, CADENCE_INTERVALS[ReportCadence(cadence)])


class ReportScheduleService:

    def __init__(self, clock: Clock, delivery: ReportDeliveryClient, batch_size: int = 100):
        self.clock = clock
        self.delivery = delivery
        self.batch_size = batch_size

    async def run_sweep(self, db: AsyncSession) -> ReportSweepResult:
        """
        Avanza las programaciones vencidas.

        Una programación cuyo avance falla (o lo gana otro sweep) queda fuera de
        processed; si falló, su next_run_at no cambió y se reintenta en la siguiente pasada.
        """
        now = self.clock.now()
        due = await report_schedule_repository.get_due(db, now=now, limit=self.batch_size)
        # Un rollback expira las instancias cargadas: copiar lo necesario antes del bucle
        candidates = [
            (s.id, s.cadence, s.timezone, s.next_run_at, s.report_id, s.format, list(s.delivery_emails or []))
            for s in due
        ]
        result = ReportSweepResult(scanned=len(candidates))

        for schedule_id, cadence, tz_name, expected_next_run_at, report_id, report_format, emails in candidates:
            try:
                next_run_at = advance(cadence, now, tz_name)
                won = await report_schedule_repository.advance(
                    db,
                    schedule_id,
                    expected_next_run_at=expected_next_run_at,
                    last_run_at=now,
                    next_run_at=next_run_at,
                )
                if not won:
                    await db.rollback()
                    logger.info(f"Programación {schedule_id} ya avanzada por otro sweep")
                    continue
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error avanzando la programación {schedule_id}: {e}", exc_info=True)
                continue

            result.processed.append(schedule_id)
            self.delivery.trigger(
                schedule_id=schedule_id,
                report_id=report_id,
                report_format=report_format,
                delivery_emails=emails,
            )

        logger.info(f"Sweep de reportes: {len(result.processed)} procesados de {result.scanned} vencidos")
        return result
