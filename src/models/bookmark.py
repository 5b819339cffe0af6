"""Bookmark model for storing user bookmarks."""
import uuid

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, CreatedAtMixin

# Constraint names surface verbatim in database error messages; clients match on them.
UNIQUE_TITLE_CONSTRAINT = "unique_title_per_user"
URL_FORMAT_CONSTRAINT = "url_format_check"

TITLE_MAX_LENGTH = 50


class Bookmark(Base, CreatedAtMixin):
    """Bookmark model - a titled link owned by a single user."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "title", name=UNIQUE_TITLE_CONSTRAINT),
        CheckConstraint(
            "url LIKE 'http://%' OR url LIKE 'https://%'",
            name=URL_FORMAT_CONSTRAINT,
        ),
        # Serves the recency-ordered ranged reads
        Index("ix_bookmarks_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owner id comes from the auth provider; there is no local users table
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
