# Inicializador del paquete repositories
from gymcore.repositories.async_base import AsyncBaseRepository
from gymcore.repositories.member import member_repository, staff_repository
from gymcore.repositories.checkin import checkin_token_repository, checkin_event_repository
from gymcore.repositories.billing import subscription_repository, member_access_repository
from gymcore.repositories.booking import class_instance_repository, class_booking_repository
from gymcore.repositories.report_schedule import report_schedule_repository
