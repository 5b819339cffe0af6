"""
Write-side entry points: insert and delete bookmarks.

Each call is atomic (own session, own commit) and, on success, announces the change to
subscribers and invalidates the owner's cached listing. Failures come back as a
`MutationResult` carrying a `MutationError`; nothing is raised across this boundary.
"""
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.auth import resolve_identity
from core.config import Settings
from core.realtime import ChangeEvent, ChangePublisher, ChangeType
from core.session_context import SessionContext
from schemas.bookmark import BookmarkCreate, BookmarkResponse
from services import bookmark_service
from services.data_client import BOOKMARKS_TABLE
from services.exceptions import BookmarkNotFoundError, DuplicateTitleError, InvalidUrlError

if TYPE_CHECKING:
    from core.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


class MutationErrorCode(StrEnum):
    """Category of a failed mutation."""

    DUPLICATE_TITLE = "duplicate_title"
    INVALID_URL = "invalid_url"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class MutationError:
    """Structured error; `message` keeps the storage layer's wording."""

    message: str
    code: MutationErrorCode


@dataclass(frozen=True)
class MutationResult:
    """Outcome of an insert or delete."""

    error: MutationError | None = None
    bookmark: BookmarkResponse | None = None

    @property
    def ok(self) -> bool:
        """True when the mutation was applied."""
        return self.error is None

    @classmethod
    def failed(cls, message: str, code: MutationErrorCode) -> "MutationResult":
        """Build a failed result."""
        return cls(error=MutationError(message=message, code=code))


class MutationGateway(Protocol):
    """Contract for the remote create/delete calls."""

    async def insert_bookmark(self, session: SessionContext, title: str, url: str) -> MutationResult:
        """Create a bookmark owned by the session's user."""
        ...

    async def delete_bookmark(self, session: SessionContext, bookmark_id: UUID) -> MutationResult:
        """Delete one of the session user's bookmarks."""
        ...


def validation_message(error: ValidationError) -> str:
    """Flatten pydantic errors into one line, prefixed by the offending field."""
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item.get("loc", ()))
        message = item.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class SqlMutationGateway:
    """MutationGateway that writes through the service layer."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        publisher: ChangePublisher,
        settings: Settings,
        snapshot_cache: "SnapshotCache | None" = None,
    ) -> None:
        self._session_factory = session_factory
        self._publisher = publisher
        self._settings = settings
        self._snapshot_cache = snapshot_cache

    async def insert_bookmark(self, session: SessionContext, title: str, url: str) -> MutationResult:
        """Validate, insert and commit a bookmark; announce it on success."""
        user = resolve_identity(session, self._settings)
        if user is None:
            return MutationResult.failed("Not authenticated", MutationErrorCode.UNAUTHENTICATED)

        try:
            data = BookmarkCreate(title=title, url=url)
        except ValidationError as e:
            return MutationResult.failed(validation_message(e), MutationErrorCode.INVALID_INPUT)

        try:
            async with self._session_factory() as db:
                bookmark = await bookmark_service.create_bookmark(db, user.id, data)
                record = BookmarkResponse.model_validate(bookmark)
                await db.commit()
        except DuplicateTitleError as e:
            return MutationResult.failed(str(e), MutationErrorCode.DUPLICATE_TITLE)
        except InvalidUrlError as e:
            return MutationResult.failed(str(e), MutationErrorCode.INVALID_URL)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Insert for user_id=%s failed: %s", user.id, e)
            return MutationResult.failed(str(e), MutationErrorCode.UNAVAILABLE)

        await self._after_change(user.id, ChangeType.INSERT, record.id)
        return MutationResult(bookmark=record)

    async def delete_bookmark(self, session: SessionContext, bookmark_id: UUID) -> MutationResult:
        """Delete and commit; announce it on success."""
        user = resolve_identity(session, self._settings)
        if user is None:
            return MutationResult.failed("Not authenticated", MutationErrorCode.UNAUTHENTICATED)

        try:
            async with self._session_factory() as db:
                deleted = await bookmark_service.delete_bookmark(db, user.id, bookmark_id)
                if not deleted:
                    raise BookmarkNotFoundError(bookmark_id)
                await db.commit()
        except BookmarkNotFoundError as e:
            return MutationResult.failed(str(e), MutationErrorCode.NOT_FOUND)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Delete of %s for user_id=%s failed: %s", bookmark_id, user.id, e)
            return MutationResult.failed(str(e), MutationErrorCode.UNAVAILABLE)

        await self._after_change(user.id, ChangeType.DELETE, bookmark_id)
        return MutationResult()

    async def _after_change(self, user_id: UUID, change: ChangeType, record_id: UUID) -> None:
        """Invalidate the owner's cached listing, then notify subscribers."""
        if self._snapshot_cache is not None:
            await self._snapshot_cache.invalidate(user_id)
        await self._publisher.publish(
            ChangeEvent(table=BOOKMARKS_TABLE, event=change, owner_id=user_id, record_id=record_id),
        )
