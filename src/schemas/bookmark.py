"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, computed_field, field_validator

from core.config import get_settings

_http_url = TypeAdapter(HttpUrl)


def is_valid_bookmark_url(url: str) -> bool:
    """True when `url` is an absolute http(s) URL with a host."""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        _http_url.validate_python(url)
    except ValueError:
        return False
    return True


def validate_title_length(title: str) -> str:
    """Validate that title doesn't exceed maximum length."""
    max_length = get_settings().max_title_length
    if len(title) > max_length:
        raise ValueError(
            f"Title exceeds maximum length of {max_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


class BookmarkCreate(BaseModel):
    """
    Schema for creating a new bookmark.

    The URL is only checked for presence here. Format errors are reported by the
    service layer under the storage constraint name so every client sees the same
    message whether the request came over HTTP or in-process.
    """

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str) -> str:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        """Surrounding whitespace is never part of a URL."""
        return v.strip()


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    title: str
    url: str
    created_at: datetime

    @computed_field
    @property
    def hostname(self) -> str:
        """Host part of the URL, as shown under the title."""
        return urlsplit(self.url).hostname or ""


class BookmarkListResponse(BaseModel):
    """Ranged listing with the owner's exact total."""

    items: list[BookmarkResponse]
    total: int
    offset: int
    limit: int
    has_more: bool
