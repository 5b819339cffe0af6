"""Service layer for bookmark create/list/delete operations."""
import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import UNIQUE_TITLE_CONSTRAINT, URL_FORMAT_CONSTRAINT, Bookmark
from schemas.bookmark import BookmarkCreate, is_valid_bookmark_url
from services.exceptions import DuplicateTitleError, InvalidUrlError

logger = logging.getLogger(__name__)


def _is_title_collision(message: str) -> bool:
    """
    Recognize a (user_id, title) unique violation across drivers.

    PostgreSQL names the constraint; SQLite names the columns instead
    ("UNIQUE constraint failed: bookmarks.user_id, bookmarks.title").
    """
    lowered = message.lower()
    if UNIQUE_TITLE_CONSTRAINT in lowered:
        return True
    return "unique" in lowered and "bookmarks.title" in lowered


async def _check_title_exists(
    db: AsyncSession,
    user_id: UUID,
    title: str,
) -> Bookmark | None:
    """Return the user's bookmark with this exact title, if any."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.user_id == user_id,
            Bookmark.title == title,
        ),
    )
    return result.scalar_one_or_none()


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark for a user.

    Args:
        db: Database session.
        user_id: Owner of the new bookmark, taken from the caller's session.
        data: Bookmark creation data.

    Returns:
        The created bookmark.

    Raises:
        InvalidUrlError: If the URL is not an absolute http(s) URL.
        DuplicateTitleError: If the user already has a bookmark with this title.

    Note:
        Does not commit. Caller (session generator or gateway) handles commit.
    """
    if not is_valid_bookmark_url(data.url):
        raise InvalidUrlError(data.url)

    if await _check_title_exists(db, user_id, data.title):
        raise DuplicateTitleError(data.title)

    bookmark = Bookmark(user_id=user_id, title=data.title, url=data.url)
    db.add(bookmark)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # Fallback for race condition between the existence check and the insert
        message = str(e.orig)
        if _is_title_collision(message):
            raise DuplicateTitleError(data.title) from e
        if URL_FORMAT_CONSTRAINT in message:
            raise InvalidUrlError(data.url) from e
        raise
    await db.refresh(bookmark)
    logger.debug("bookmark_created user_id=%s bookmark_id=%s", user_id, bookmark.id)
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


async def list_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    offset: int = 0,
    limit: int = 5,
    descending: bool = True,
) -> tuple[list[Bookmark], int]:
    """
    Get one page of a user's bookmarks in recency order, plus the exact total.

    The count and the slice are separate statements. Under READ COMMITTED a
    commit landing between them can make the total disagree with the slice by
    the rows it touched; the change notification for that commit triggers a
    refetch that reconciles them.
    """
    total = await db.scalar(
        select(func.count()).select_from(Bookmark).where(Bookmark.user_id == user_id),
    )
    if descending:
        ordering = (Bookmark.created_at.desc(), Bookmark.id.desc())
    else:
        ordering = (Bookmark.created_at.asc(), Bookmark.id.asc())
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id)
        .order_by(*ordering)
        .offset(offset)
        .limit(limit),
    )
    return list(result.scalars().all()), total or 0


async def delete_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> bool:
    """
    Delete a bookmark. Returns True if deleted, False if not found.

    Note: Does not commit. Caller (session generator or gateway) handles commit.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return False

    await db.delete(bookmark)
    await db.flush()
    logger.debug("bookmark_deleted user_id=%s bookmark_id=%s", user_id, bookmark_id)
    return True
