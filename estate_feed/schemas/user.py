"""
Pydantic schemas for user profiles.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import re
import uuid
from estate_feed.schemas.common import RecordModel


USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.]{3,50}$")


class AuthorRecord(RecordModel):
    """Public identity joined onto comments."""

    id: uuid.UUID
    full_name: str
    username: Optional[str] = None


class ProfileRecord(RecordModel):
    """Profile as stored, without credentials."""

    id: uuid.UUID
    email: str
    full_name: str
    username: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: datetime


class ProfileUpdate(BaseModel):
    """Schema for updating the caller's own profile. Omitted fields are unchanged."""

    full_name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Display name",
        examples=["Ada Obi"]
    )

    username: Optional[str] = Field(
        None,
        description="Public handle (letters, digits, dot, underscore)",
        examples=["ada.obi"]
    )

    bio: Optional[str] = Field(
        None,
        max_length=2000,
        description="Short biography"
    )

    profile_picture: Optional[str] = Field(
        None,
        max_length=500,
        description="Public URL returned by the storage upload endpoint"
    )

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        """Validate and clean full name. It can be changed but never cleared."""
        if v is None:
            raise ValueError("Full name cannot be null")
        if not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must be 3-50 characters of letters, digits, '.' or '_'")
        return v.lower()

    def changes(self) -> dict:
        """Fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)
