"""
Pydantic schemas for comments and likes.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import uuid
from estate_feed.schemas.common import RecordModel
from estate_feed.schemas.user import AuthorRecord


class CommentRecord(RecordModel):
    """Comment joined with its author's display name and username."""

    id: uuid.UUID
    property_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    created_at: datetime
    author: Optional[AuthorRecord] = None


class CommentCreate(BaseModel):
    # Blank content is rejected by the coordinator, not here, so the error
    # carries the same message for every caller
    content: str = Field(..., max_length=5000, description="Comment text")


class LikeRow(RecordModel):
    user_id: uuid.UUID
    property_id: uuid.UUID


class LikeStateResponse(BaseModel):
    """Like state of one property after a toggle."""

    property_id: uuid.UUID
    like_count: int
    liked: bool
