"""
Worker Endpoints - disparadores protegidos de sweeps y eventos de pago.

Solo deben llamarlos el cron externo y el procesador de pagos, autenticados con
la cabecera X-API-Key. Los mismos sweeps corren también desde el scheduler interno.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.async_utils import run_with_budget, SweepTimeout
from gymcore.core.config import Settings, get_settings
from gymcore.core.dependencies import (
    get_delinquency_service,
    get_waitlist_service,
    get_report_schedule_service,
)
from gymcore.core.worker_auth import verify_worker_api_key
from gymcore.db.session import get_async_db
from gymcore.schemas.billing import DelinquencySweepResult, PaymentEventRequest, SubscriptionState
from gymcore.schemas.booking import WaitlistSweepResult
from gymcore.schemas.report import ReportSweepResult
from gymcore.services.delinquency import DelinquencyService
from gymcore.services.report_schedule import ReportScheduleService
from gymcore.services.waitlist import WaitlistService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_worker_api_key)])


async def _run_sweep(job_name: str, sweep, settings: Settings):
    try:
        return await run_with_budget(sweep, timeout=settings.SWEEP_TIMEOUT_SECONDS, job_name=job_name)
    except SweepTimeout:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"El sweep {job_name} excedió su presupuesto de tiempo"
        )


@router.post("/sweeps/delinquency", response_model=DelinquencySweepResult)
async def run_delinquency_sweep(
    db: AsyncSession = Depends(get_async_db),
    settings: Settings = Depends(get_settings),
    service: DelinquencyService = Depends(get_delinquency_service)
):
    """
    Avisa de períodos de gracia por vencer y pasa a past_due los vencidos.
    Recomendado: cada hora.
    """
    return await _run_sweep("delinquency_sweep", service.run_sweep(db), settings)


@router.post("/sweeps/waitlist", response_model=WaitlistSweepResult)
async def run_waitlist_sweep(
    db: AsyncSession = Depends(get_async_db),
    settings: Settings = Depends(get_settings),
    service: WaitlistService = Depends(get_waitlist_service)
):
    return await _run_sweep("waitlist_sweep", service.run_sweep(db), settings)


@router.post("/sweeps/reports", response_model=ReportSweepResult)
async def run_report_sweep(
    db: AsyncSession = Depends(get_async_db),
    settings: Settings = Depends(get_settings),
    service: ReportScheduleService = Depends(get_report_schedule_service)
):
    return await _run_sweep("report_sweep", service.run_sweep(db), settings)


@router.post("/billing/payment-failed", response_model=SubscriptionState)
async def payment_failed(
    request: PaymentEventRequest,
    db: AsyncSession = Depends(get_async_db),
    service: DelinquencyService = Depends(get_delinquency_service)
):
    """Pago fallido informado por el procesador: la suscripción entra en período de gracia."""
    return await service.record_payment_failed(db, request.subscription_id)


@router.post("/billing/payment-recovered", response_model=SubscriptionState)
async def payment_recovered(
    request: PaymentEventRequest,
    db: AsyncSession = Depends(get_async_db),
    service: DelinquencyService = Depends(get_delinquency_service)
):
    """Pago recuperado: la suscripción vuelve a current y el acceso se reactiva."""
    return await service.record_payment_recovered(db, request.subscription_id)
