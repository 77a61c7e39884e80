"""User domain schemas - Pydantic models for validation"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from ...shared.validators import validate_display_name

USER_NAME_MAX_LENGTH = 50


class UserCreate(BaseModel):
    """Schema for creating or renaming a user"""

    model_config = ConfigDict(extra="forbid")

    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_display_name(v, USER_NAME_MAX_LENGTH)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
    last_active: datetime
