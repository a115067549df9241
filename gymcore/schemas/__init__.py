from gymcore.schemas.checkin import (
    CheckinTokenIssueRequest,
    CheckinTokenIssued,
    CheckinRedeemRequest,
    CheckinRecord
)
from gymcore.schemas.billing import DelinquencySweepResult, PaymentEventRequest, SubscriptionState
from gymcore.schemas.booking import (
    ClassInstanceRequest,
    CancelBookingRequest,
    Booking,
    RosterEntry,
    Roster,
    WaitlistSweepResult
)
from gymcore.schemas.report import ReportSweepResult
