"""
Pydantic schemas for authentication requests and responses.
Handles sign-up, login, token refresh and the resolved session.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
import uuid
from estate_feed.schemas.user import ProfileRecord, USERNAME_PATTERN


class AuthSession(BaseModel):
    """
    Authenticated identity for one page load or request.
    Consumers only read it; an absent session means anonymous.
    """

    model_config = {"frozen": True}

    user_id: uuid.UUID
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["ada@example.com"]
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)"
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()


class SignUpRequest(LoginRequest):
    """Sign-up request: credentials plus the initial profile fields."""

    full_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Display name",
        examples=["Ada Obi"]
    )
    username: Optional[str] = Field(
        None,
        description="Optional public handle",
        examples=["ada.obi"]
    )

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must be 3-50 characters of letters, digits, '.' or '_'")
        return v.lower()


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str = Field(..., description="Valid refresh token")


class TokenResponse(BaseModel):
    """Tokens issued on sign-up, login and refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    user: ProfileRecord


class SessionResponse(BaseModel):
    """Current session as seen by the caller."""

    authenticated: bool
    user_id: Optional[uuid.UUID] = None
    email: Optional[str] = None
