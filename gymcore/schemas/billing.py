from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from gymcore.models.billing import DelinquencyState


class DelinquencySweepResult(BaseModel):
    notified: int = 0
    transitioned: int = 0
    scanned: int = 0


class PaymentEventRequest(BaseModel):
    subscription_id: int = Field(..., gt=0)


class SubscriptionState(BaseModel):
    id: int
    member_id: int
    delinquency_state: DelinquencyState
    grace_period_until: Optional[datetime] = None

    model_config = {"from_attributes": True}
