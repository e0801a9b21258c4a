"""
User model holding the account and the public profile.
The profile (display name, username, bio, picture) is mutable only by its owner.
"""

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from estate_feed.database import Base
from estate_feed.utils.auth import hash_password, verify_password
from email_validator import validate_email, EmailNotValidError
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from estate_feed.models.property import Property
    from estate_feed.models.comment import Comment


class User(Base):
    """
    Registered user and their profile.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique and valid"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name"
    )

    username: Mapped[Optional[str]] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
        index=True,
        comment="Public handle shown on comments"
    )

    bio: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    profile_picture: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Public URL of the profile picture"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )

    properties: Mapped[List["Property"]] = relationship(
        "Property",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload"
    )

    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="author",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """
        Validate and normalize an email address.

        Raises:
            ValueError: If email format is invalid
        """
        try:
            valid_email = validate_email(email, check_deliverability=False)
            return valid_email.normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email format: {str(e)}")

    @classmethod
    def hash_password(cls, password: str) -> str:
        return hash_password(password)

    def verify_password(self, password: str) -> bool:
        return verify_password(password, self.hashed_password)
