"""
Database models for Estate Feed.
Includes User, Property, PropertyImage, Like and Comment with their relationships.
"""

from estate_feed.models.user import User
from estate_feed.models.property import Property
from estate_feed.models.image import PropertyImage
from estate_feed.models.like import Like
from estate_feed.models.comment import Comment

__all__ = [
    "User",
    "Property",
    "PropertyImage",
    "Like",
    "Comment",
]
