"""
Services module for GymAccessCore

Los servicios implementan la lógica de negocio: check-in, morosidad, reservas y sweeps.
Reciben su configuración y su reloj en el constructor (ver gymcore/core/dependencies.py).
"""

from gymcore.services.notification_gateway import NotificationGateway, NotificationEvent
from gymcore.services.report_delivery import ReportDeliveryClient
from gymcore.services.checkin_token import CheckinTokenService
from gymcore.services.delinquency import DelinquencyService
from gymcore.services.waitlist import WaitlistService
from gymcore.services.report_schedule import ReportScheduleService, advance
from gymcore.services.booking import BookingService
