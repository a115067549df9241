from gymcore.models.facility import Facility
from gymcore.models.member import Member, MemberStatus, Staff, StaffRole
from gymcore.models.checkin import CheckinToken, CheckinEvent
from gymcore.models.billing import Subscription, MemberAccess, DelinquencyState, AccessState
from gymcore.models.schedule import ClassInstance, ClassBooking, ClassInstanceStatus, BookingStatus
from gymcore.models.report import ReportSchedule, ReportCadence, ReportFormat
