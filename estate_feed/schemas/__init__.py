"""
Pydantic schemas for request/response validation and typed store records.
"""

from .auth import (
    AuthSession,
    LoginRequest,
    SignUpRequest,
    RefreshTokenRequest,
    TokenResponse,
    SessionResponse
)

from .user import (
    AuthorRecord,
    ProfileRecord,
    ProfileUpdate
)

from .property import (
    ImageRecord,
    PropertyRecord,
    FilterCriteria,
    PropertyCreate,
    FeedItem,
    FeedResult,
    OwnerSort,
    RentFilter
)

from .comment import (
    CommentRecord,
    CommentCreate,
    LikeRow,
    LikeStateResponse
)

from .error import ErrorBody, ErrorResponse

__all__ = [
    "AuthSession",
    "LoginRequest",
    "SignUpRequest",
    "RefreshTokenRequest",
    "TokenResponse",
    "SessionResponse",
    "AuthorRecord",
    "ProfileRecord",
    "ProfileUpdate",
    "ImageRecord",
    "PropertyRecord",
    "FilterCriteria",
    "PropertyCreate",
    "FeedItem",
    "FeedResult",
    "OwnerSort",
    "RentFilter",
    "CommentRecord",
    "CommentCreate",
    "LikeRow",
    "LikeStateResponse",
    "ErrorBody",
    "ErrorResponse",
]
