"""
Construcción de los servicios a partir de Settings.

Los servicios no leen el entorno: reciben aquí valores explícitos, validados una
sola vez por get_settings(). Cada factoría se cachea para que el proceso comparta
una instancia (y sus tareas de envío en segundo plano).

En tests se reemplazan con app.dependency_overrides.
"""
from functools import lru_cache

from gymcore.core.clock import Clock, SystemClock
from gymcore.core.config import get_settings
from gymcore.services.booking import BookingService
from gymcore.services.checkin_token import CheckinTokenService
from gymcore.services.delinquency import DelinquencyService
from gymcore.services.notification_gateway import NotificationGateway
from gymcore.services.report_delivery import ReportDeliveryClient
from gymcore.services.report_schedule import ReportScheduleService
from gymcore.services.waitlist import WaitlistService


@lru_cache()
def get_clock() -> Clock:
    return SystemClock()


@lru_cache()
def get_notification_gateway() -> NotificationGateway:
    settings = get_settings()
    return NotificationGateway(
        base_url=settings.NOTIFICATION_GATEWAY_URL,
        api_token=settings.NOTIFICATION_GATEWAY_TOKEN,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_report_delivery() -> ReportDeliveryClient:
    settings = get_settings()
    return ReportDeliveryClient(
        base_url=settings.REPORT_DELIVERY_URL,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_checkin_token_service() -> CheckinTokenService:
    settings = get_settings()
    return CheckinTokenService(get_clock(), token_ttl_seconds=settings.CHECKIN_TOKEN_TTL_SECONDS)


@lru_cache()
def get_delinquency_service() -> DelinquencyService:
    settings = get_settings()
    return DelinquencyService(
        get_clock(),
        get_notification_gateway(),
        grace_period_days=settings.GRACE_PERIOD_DAYS,
        expiry_notice_hours=settings.GRACE_EXPIRY_NOTICE_HOURS,
        batch_size=settings.DELINQUENCY_SWEEP_BATCH_SIZE,
    )


@lru_cache()
def get_waitlist_service() -> WaitlistService:
    settings = get_settings()
    return WaitlistService(
        get_clock(),
        get_notification_gateway(),
        batch_size=settings.WAITLIST_SWEEP_BATCH_SIZE,
    )


@lru_cache()
def get_report_schedule_service() -> ReportScheduleService:
    settings = get_settings()
    return ReportScheduleService(
        get_clock(),
        get_report_delivery(),
        batch_size=settings.REPORT_SWEEP_BATCH_SIZE,
    )


@lru_cache()
def get_booking_service() -> BookingService:
    return BookingService(get_clock(), get_waitlist_service())
