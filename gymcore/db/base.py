# Importar todos los modelos para que Base.metadata los registre
from gymcore.db.base_class import Base  # noqa
from gymcore.models.facility import Facility  # noqa
from gymcore.models.member import Member, Staff  # noqa
from gymcore.models.checkin import CheckinToken, CheckinEvent  # noqa
from gymcore.models.billing import Subscription, MemberAccess  # noqa
from gymcore.models.schedule import ClassInstance, ClassBooking  # noqa
from gymcore.models.report import ReportSchedule  # noqa
