from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from gymcore.models.schedule import BookingStatus


class ClassInstanceRequest(BaseModel):
    class_instance_id: int = Field(..., gt=0)


class CancelBookingRequest(BaseModel):
    booking_id: int = Field(..., gt=0)


class Booking(BaseModel):
    id: int
    class_instance_id: int
    member_id: int
    status: BookingStatus
    booked_at: datetime
    canceled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RosterEntry(BaseModel):
    booking_id: int
    member_id: int
    member_name: str
    status: BookingStatus
    booked_at: datetime


class Roster(BaseModel):
    class_instance_id: int
    roster: List[RosterEntry]


class WaitlistSweepResult(BaseModel):
    promoted: int = 0
    scanned: int = 0
