from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import timezone
import logging

from gymcore.core.async_utils import run_with_budget, SweepTimeout
from gymcore.core.config import get_settings
from gymcore.core.dependencies import (
    get_delinquency_service,
    get_waitlist_service,
    get_report_schedule_service,
)
from gymcore.db.session import get_async_db_for_jobs

logger = logging.getLogger(__name__)

# Variable global para mantener referencia al scheduler
_scheduler = None


async def _run_sweep_job(job_name: str, service) -> None:
    """
    Ejecuta un sweep con su propia sesión y dentro del presupuesto de tiempo.

    Los errores se registran y no se propagan: APScheduler seguirá disparando
    el job en el siguiente intervalo.
    """
    settings = get_settings()
    logger.info(f"Running scheduled task: {job_name}")
    try:
        async with get_async_db_for_jobs() as db:
            result = await run_with_budget(
                service.run_sweep(db),
                timeout=settings.SWEEP_TIMEOUT_SECONDS,
                job_name=job_name,
            )
        logger.info(f"{job_name} completed: {result.model_dump()}")
    except SweepTimeout:
        # El sweep interrumpido deja sus filas sin avanzar; la siguiente pasada las retoma
        pass
    except Exception as e:
        logger.error(f"Error in {job_name} task: {str(e)}", exc_info=True)


async def run_delinquency_sweep() -> None:
    await _run_sweep_job("delinquency_sweep", get_delinquency_service())


async def run_waitlist_sweep() -> None:
    await _run_sweep_job("waitlist_sweep", get_waitlist_service())


async def run_report_sweep() -> None:
    await _run_sweep_job("report_sweep", get_report_schedule_service())


def init_scheduler():
    """
    Inicializa el programador de tareas
    """
    global _scheduler

    logger.info("Initializing scheduler with UTC timezone")
    _scheduler = AsyncIOScheduler(timezone=timezone.utc)

    # Morosidad: avisos de gracia y paso a past_due cada hora
    _scheduler.add_job(
        run_delinquency_sweep,
        trigger=CronTrigger(minute=0),
        id='delinquency_sweep',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    # Lista de espera cada 5 minutos
    _scheduler.add_job(
        run_waitlist_sweep,
        trigger=CronTrigger(minute='*/5'),
        id='waitlist_sweep',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    # Programaciones de reportes cada 15 minutos
    _scheduler.add_job(
        run_report_sweep,
        trigger=CronTrigger(minute='*/15'),
        id='report_sweep',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    _scheduler.start()
    logger.info("Scheduler started with UTC timezone - delinquency, waitlist and report sweeps")
    return _scheduler


def get_scheduler():
    return _scheduler
