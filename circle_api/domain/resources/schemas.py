"""Resource domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_display_name

RESOURCE_NAME_MAX_LENGTH = 100


class ResourceCreate(BaseModel):
    """Schema for registering a resource in a circle"""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=50)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_display_name(v, RESOURCE_NAME_MAX_LENGTH)


class ResourceUpdate(BaseModel):
    """Schema for updating an existing resource"""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=50)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        return validate_display_name(v, RESOURCE_NAME_MAX_LENGTH)


class ResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    circle_id: str
    created_by: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    # Derived: no active claim covers the current instant
    is_available_now: Optional[bool] = None
