"""
Comment model for the discussion under a property.
"""

from sqlalchemy import Text, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from estate_feed.database import Base
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from estate_feed.models.user import User
    from estate_feed.models.property import Property


class Comment(Base):
    """
    Free-text comment by one user on one property.
    Displayed in ascending creation order and deletable only by its author.
    """

    __tablename__ = "comments"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    author: Mapped["User"] = relationship(
        "User",
        back_populates="comments",
        lazy="selectin"
    )

    property_rel: Mapped["Property"] = relationship(
        "Property",
        back_populates="comments",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, property_id={self.property_id}, user_id={self.user_id})>"


property_comments_index = Index(
    "idx_comments_property_created",
    Comment.property_id,
    Comment.created_at.asc()
)
