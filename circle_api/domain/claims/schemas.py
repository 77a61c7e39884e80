"""Claim domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

RecurringPattern = Literal["weekly", "monthly"]
ClaimStatus = Literal["active", "completed", "cancelled"]


class ClaimCreate(BaseModel):
    """Schema for requesting a claim; timestamps must carry an offset"""

    model_config = ConfigDict(extra="forbid")

    start_time: AwareDatetime
    end_time: AwareDatetime
    is_recurring: bool = False
    recurring_pattern: Optional[RecurringPattern] = None
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.recurring_pattern and not self.is_recurring:
            raise ValueError("recurring_pattern requires is_recurring")
        return self


class ClaimUpdate(BaseModel):
    """Schema for moving a claim or editing its notes"""

    model_config = ConfigDict(extra="forbid")

    start_time: Optional[AwareDatetime] = None
    end_time: Optional[AwareDatetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    resource_id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    is_recurring: bool
    recurring_pattern: Optional[RecurringPattern] = None
    status: ClaimStatus
    notes: Optional[str] = None
    returned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AvailabilityResponse(BaseModel):
    resource_id: str
    start_time: datetime
    end_time: datetime
    available: bool
    conflicts: list[ClaimResponse]
