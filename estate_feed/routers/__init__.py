"""
API route handlers for Estate Feed.
"""

from .auth import router as auth_router
from .properties import router as properties_router
from .likes import router as likes_router
from .comments import router as comments_router
from .profiles import router as profiles_router
from .storage import router as storage_router
from .realtime import router as realtime_router

__all__ = [
    "auth_router",
    "properties_router",
    "likes_router",
    "comments_router",
    "profiles_router",
    "storage_router",
    "realtime_router",
]
