"""
Repository layer for database operations.
"""

from .base import BaseRepository
from .user import UserRepository
from .property import PropertyRepository
from .like import LikeRepository
from .comment import CommentRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PropertyRepository",
    "LikeRepository",
    "CommentRepository",
]
