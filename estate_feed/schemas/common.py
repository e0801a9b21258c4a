"""
Shared pieces for record schemas parsed at the store boundary.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, field_validator


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RecordModel(BaseModel):
    """
    Base for typed rows handed to the core layer.
    Built from ORM instances with ``model_validate(obj)``.
    """

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", check_fields=False)
    @classmethod
    def normalize_created_at(cls, v):
        if isinstance(v, datetime):
            return as_utc(v)
        return v
