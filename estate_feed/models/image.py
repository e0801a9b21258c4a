"""
PropertyImage model for the images attached to a listing.
"""

from sqlalchemy import String, Boolean, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from estate_feed.database import Base
import uuid
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from estate_feed.models.property import Property


class PropertyImage(Base):
    """
    Image belonging to exactly one property. Rows are removed with their
    property through the foreign key cascade.
    """

    __tablename__ = "property_images"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    image_url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Public URL of the stored image"
    )

    storage_path: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Bucket-relative path in object storage"
    )

    is_primary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
    )

    property_rel: Mapped["Property"] = relationship(
        "Property",
        back_populates="images",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<PropertyImage(id={self.id}, property_id={self.property_id}, primary={self.is_primary})>"


property_images_index = Index(
    "idx_property_images_property_primary",
    PropertyImage.property_id,
    PropertyImage.is_primary
)
