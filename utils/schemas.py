"""
Pydantic Schemas - Data Validation Models

Defines the records exchanged with the bookmarking service.

Usage:
    from utils.schemas import Bookmark

    bookmark = Bookmark.model_validate(post)   # post from posts/all or posts/get
    path = output_folder / f"{bookmark.hash}.pdf"
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Bookmark(BaseModel):
    """Bookmark record as returned by the bookmarking service.

    Pinboard names the fields href/hash/time/description; the aliases map
    them onto the names used throughout the archiver. Unknown fields (tags,
    extended, shared, ...) are ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    url: str = Field(..., alias="href", min_length=1, description="Bookmarked URL")
    hash: str = Field(..., min_length=1, description="Content hash, archive filename stem")
    created: datetime = Field(..., alias="time", description="Creation time (UTC)")
    description: str = Field(default="", description="Human-readable title")

    @field_validator("created")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so cursor comparisons never mix kinds."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("hash must be usable as a file name")
        return v
