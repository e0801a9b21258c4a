"""
Property model for rental and sale listings.
Handles listing data, pricing and the image set shown in the feed.
"""

from sqlalchemy import String, Text, Integer, Numeric, Boolean, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from estate_feed.database import Base
from decimal import Decimal
import uuid
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from estate_feed.models.user import User
    from estate_feed.models.image import PropertyImage
    from estate_feed.models.like import Like
    from estate_feed.models.comment import Comment


class Property(Base):
    """
    Property listing posted by a user.
    """

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the user who posted this property"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Property listing title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2),
        nullable=False,
        index=True
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="NGN",
        comment="ISO currency code of the price"
    )

    is_for_rent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True
    )

    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    bathrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    square_feet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    contact_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="properties",
        lazy="noload"
    )

    images: Mapped[List["PropertyImage"]] = relationship(
        "PropertyImage",
        back_populates="property_rel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="PropertyImage.created_at.asc()"
    )

    likes: Mapped[List["Like"]] = relationship(
        "Like",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload"
    )

    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="property_rel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title[:30]}, price={self.price})>"

    @property
    def primary_image(self) -> Optional["PropertyImage"]:
        """Flagged primary image, or the first inserted one when none is flagged."""
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None

    def validate_all(self) -> None:
        """
        Run listing validation checks.

        Raises:
            ValueError: If any value is out of range
        """
        if self.price is None or Decimal(self.price) <= 0:
            raise ValueError("Property price must be greater than 0")
        for name in ("bedrooms", "bathrooms", "square_feet"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name.replace('_', ' ').capitalize()} cannot be negative")


# Feed ordering and the common filter combinations
feed_order_index = Index(
    "idx_properties_created_at_desc",
    Property.created_at.desc()
)

location_price_index = Index(
    "idx_properties_location_price",
    Property.location,
    Property.price
)

owner_created_index = Index(
    "idx_properties_owner_created",
    Property.owner_id,
    Property.created_at.desc()
)
