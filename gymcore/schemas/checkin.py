from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CheckinTokenIssueRequest(BaseModel):
    # Si se omite se usa la sede principal del miembro; otra sede se rechaza
    facility_id: Optional[int] = Field(None, gt=0)


class CheckinTokenIssued(BaseModel):
    token: str
    expires_at: datetime
    member_id: int
    facility_id: int

    model_config = {"from_attributes": True}


class CheckinRedeemRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class CheckinRecord(BaseModel):
    checkin_id: int
    member_id: int
    facility_id: int
    staff_id: int
    checked_in_at: datetime
