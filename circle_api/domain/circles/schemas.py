"""Circle domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_display_name, validate_uuid

CIRCLE_NAME_MAX_LENGTH = 100


class CircleCreate(BaseModel):
    """Schema for creating a new circle"""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_display_name(v, CIRCLE_NAME_MAX_LENGTH)


class JoinCircleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        if not validate_uuid(v):
            raise ValueError("user_id must be a UUID")
        return v


class CircleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    share_url: Optional[str] = None


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    circle_id: str
    user_id: str
    joined_at: datetime
    is_active: bool
