"""
Read-side access to the hosted data service.

`DataServiceClient` is the contract the bookmark list view model consumes: count-aware
ranged reads, identity lookup and change subscriptions. `SqlDataServiceClient` fulfils
it against the application's own database and change broker.
"""
import logging
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.auth import resolve_identity
from core.config import Settings
from core.realtime import ChangeBroker, Subscription
from core.session_context import SessionContext, UserIdentity
from schemas.bookmark import BookmarkResponse
from services import bookmark_service

logger = logging.getLogger(__name__)

BOOKMARKS_TABLE = "bookmarks"
ORDER_COLUMN = "created_at"


@dataclass
class RangedResult:
    """
    Result of a ranged read.

    Either `rows` and `total` describe the same snapshot of the table, or `error`
    says why the read failed. Reads never raise.
    """

    rows: list[BookmarkResponse] = field(default_factory=list)
    total: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when the read succeeded."""
        return self.error is None


class DataServiceClient(Protocol):
    """Contract for reads, identity and change notifications."""

    async def ranged_select(
        self,
        session: SessionContext,
        table: str,
        start: int,
        stop: int,
        order_by: str = ORDER_COLUMN,
        descending: bool = True,
    ) -> RangedResult:
        """Read rows `[start, stop)` of the caller's rows in `table` with an exact total."""
        ...

    async def get_current_user(self, session: SessionContext) -> UserIdentity | None:
        """Return the identity behind `session`, or None when signed out."""
        ...

    def subscribe_to_changes(self, table: str, owner_id: UUID) -> Subscription:
        """Open a change stream for `owner_id`'s rows in `table`."""
        ...


class SqlDataServiceClient:
    """DataServiceClient backed by the SQLAlchemy session factory and a change broker."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        broker: ChangeBroker,
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._broker = broker
        self._settings = settings

    async def ranged_select(
        self,
        session: SessionContext,
        table: str,
        start: int,
        stop: int,
        order_by: str = ORDER_COLUMN,
        descending: bool = True,
    ) -> RangedResult:
        """Read one half-open range of the caller's bookmarks plus the exact total."""
        if table != BOOKMARKS_TABLE:
            return RangedResult(error=f"Unknown table: {table}")
        if order_by != ORDER_COLUMN:
            return RangedResult(error=f"Unsupported order column: {order_by}")
        if start < 0 or stop < start:
            return RangedResult(error=f"Invalid range [{start}, {stop})")

        user = resolve_identity(session, self._settings)
        if user is None:
            return RangedResult(error="Not authenticated")

        try:
            async with self._session_factory() as db:
                bookmarks, total = await bookmark_service.list_bookmarks(
                    db,
                    user.id,
                    offset=start,
                    limit=stop - start,
                    descending=descending,
                )
                rows = [BookmarkResponse.model_validate(b) for b in bookmarks]
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Ranged read of %s [%s, %s) failed: %s", table, start, stop, e)
            return RangedResult(error=str(e))
        return RangedResult(rows=rows, total=total)

    async def get_current_user(self, session: SessionContext) -> UserIdentity | None:
        """Resolve the session's identity from its access token."""
        return resolve_identity(session, self._settings)

    def subscribe_to_changes(self, table: str, owner_id: UUID) -> Subscription:
        """Open a change stream on the shared broker."""
        return self._broker.subscribe(table, owner_id)
