"""
Like model: at most one row per (user, property).
"""

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from estate_feed.database import Base
import uuid


class Like(Base):
    """A user's like on a property."""

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_likes_user_property"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Like(user_id={self.user_id}, property_id={self.property_id})>"
