"""
Pydantic schemas for properties, feed filters and feed results.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
import uuid
from estate_feed.config import settings
from estate_feed.schemas.common import RecordModel, as_utc


class ImageRecord(RecordModel):
    id: uuid.UUID
    image_url: str
    storage_path: Optional[str] = None
    is_primary: bool = False
    created_at: datetime


class PropertyRecord(RecordModel):
    """Property row joined with its ordered image set."""

    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: Optional[str] = None
    price: Decimal
    currency: str = "NGN"
    is_for_rent: bool = False
    location: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[int] = None
    contact_phone: Optional[str] = None
    created_at: datetime
    images: List[ImageRecord] = Field(default_factory=list)

    @property
    def primary_image(self) -> Optional[ImageRecord]:
        """Flagged primary image, else the first inserted one."""
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None


class FilterCriteria(BaseModel):
    """
    Optional feed predicates. An absent field leaves that dimension unconstrained.
    """

    location: Optional[str] = Field(None, description="Exact location match")
    min_price: Optional[Decimal] = Field(None, ge=0, description="Inclusive lower price bound")
    max_price: Optional[Decimal] = Field(None, ge=0, description="Inclusive upper price bound")
    bedrooms: Optional[int] = Field(None, ge=0, description="Exact bedroom count")
    bathrooms: Optional[int] = Field(None, ge=0, description="Exact bathroom count")
    is_for_rent: Optional[bool] = Field(None, description="True for rentals, False for sales")
    min_square_feet: Optional[int] = Field(None, ge=0)
    max_square_feet: Optional[int] = Field(None, ge=0)
    posted_within_days: Optional[int] = Field(
        None,
        ge=1,
        description="Only listings created within the last N days"
    )
    currency: Optional[str] = Field(None, description="Exact currency code")

    @field_validator("location")
    @classmethod
    def clean_location(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if v not in settings.supported_currencies:
            raise ValueError(f"Currency must be one of: {settings.supported_currencies}")
        return v

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price cannot be greater than max_price")
        if (
            self.min_square_feet is not None
            and self.max_square_feet is not None
            and self.min_square_feet > self.max_square_feet
        ):
            raise ValueError("min_square_feet cannot be greater than max_square_feet")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def posted_after(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Cut-off creation time for the recency predicate."""
        if self.posted_within_days is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=self.posted_within_days)

    def matches(self, record: PropertyRecord, now: Optional[datetime] = None) -> bool:
        """Check a record against every present predicate."""
        if self.location is not None and record.location != self.location:
            return False
        if self.min_price is not None and record.price < self.min_price:
            return False
        if self.max_price is not None and record.price > self.max_price:
            return False
        if self.bedrooms is not None and record.bedrooms != self.bedrooms:
            return False
        if self.bathrooms is not None and record.bathrooms != self.bathrooms:
            return False
        if self.is_for_rent is not None and record.is_for_rent != self.is_for_rent:
            return False
        if self.min_square_feet is not None and (
            record.square_feet is None or record.square_feet < self.min_square_feet
        ):
            return False
        if self.max_square_feet is not None and (
            record.square_feet is None or record.square_feet > self.max_square_feet
        ):
            return False
        if self.currency is not None and record.currency != self.currency:
            return False
        cutoff = self.posted_after(now)
        if cutoff is not None and as_utc(record.created_at) < cutoff:
            return False
        return True


class PropertyCreate(BaseModel):
    """Schema for posting a listing. Image URLs come from the storage upload endpoint."""

    title: str = Field(..., min_length=1, max_length=255, examples=["3 bedroom flat in Lekki"])
    description: Optional[str] = Field(None, max_length=5000)
    price: Decimal = Field(..., gt=0, examples=[2500000])
    currency: str = Field("NGN", description="One of the supported currency codes")
    is_for_rent: bool = False
    location: Optional[str] = Field(None, max_length=255, examples=["Lekki"])
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[int] = Field(None, ge=0, le=50)
    square_feet: Optional[int] = Field(None, gt=0, le=1000000)
    contact_phone: Optional[str] = Field(None, max_length=32)
    images: List[str] = Field(
        ...,
        min_length=1,
        description="Public image URLs; the first one becomes the primary image"
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        """Validate and clean title."""
        if not v or not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    @field_validator("location", "description", "contact_phone")
    @classmethod
    def strip_optional(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        v = (v or "").strip().upper()
        if v not in settings.supported_currencies:
            raise ValueError(f"Currency must be one of: {settings.supported_currencies}")
        return v

    @field_validator("images")
    @classmethod
    def validate_images(cls, v):
        urls = [url.strip() for url in v if url and url.strip()]
        if not urls:
            raise ValueError("At least one image is required")
        return urls


class FeedItem(BaseModel):
    """Property annotated with its like count and the caller's like state."""

    property: PropertyRecord
    like_count: int = 0
    liked: bool = False


class FeedResult(BaseModel):
    """One page of the feed."""

    items: List[FeedItem] = Field(default_factory=list)
    page: int = 1
    page_size: int = 20
    total: int = 0
    has_next: bool = False
    likes_degraded: bool = Field(
        False,
        description="Like counts could not be loaded and are shown as zero"
    )
    error: Optional[str] = None


class OwnerSort(str, Enum):
    """Sort options for an owner's listings."""

    CREATED_AT_DESC = "created_at_desc"
    CREATED_AT_ASC = "created_at_asc"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"


class RentFilter(str, Enum):
    ALL = "all"
    RENT = "rent"
    SALE = "sale"
