"""
Bookmark list view model.

Owns the paginated window over the signed-in user's bookmarks and keeps it consistent
with the remote table: it issues ranged reads, refreshes silently whenever the data
service reports a change, and refetches after successful add/delete calls. Outcomes
of user actions are reported through a single auto-expiring notice.

Every remote call may resolve out of order. Each read carries a request token and only
the most recently issued read is applied; anything resolving after `dispose()` is
ignored.
"""
import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from client.error_messages import (
    ADD_SUCCESS_MESSAGE,
    COPY_SUCCESS_MESSAGE,
    DELETE_SUCCESS_MESSAGE,
    friendly_error_message,
)
from client.notice import Notice, NoticeBoard, NoticeKind
from core.realtime import Subscription
from core.session_context import SessionContext
from schemas.bookmark import BookmarkResponse
from services.data_client import BOOKMARKS_TABLE, ORDER_COLUMN, DataServiceClient, RangedResult
from services.mutation_gateway import MutationErrorCode, MutationGateway, MutationResult

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 5
NOTICE_SECONDS = 5.0
MAX_TITLE_LENGTH = 50


@dataclass(frozen=True)
class PageWindow:
    """The slice on screen and the total it was fetched with."""

    page: int
    page_size: int
    total: int
    items: tuple[BookmarkResponse, ...]

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size)


class BookmarkListViewModel:
    """Paginated, live-refreshing list of the session user's bookmarks."""

    def __init__(
        self,
        data_client: DataServiceClient,
        gateway: MutationGateway,
        session: SessionContext,
        page_size: int = ITEMS_PER_PAGE,
        notice_seconds: float = NOTICE_SECONDS,
        max_title_length: int = MAX_TITLE_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._data = data_client
        self._gateway = gateway
        self._session = session
        self.page_size = page_size
        self.max_title_length = max_title_length
        self._notices = NoticeBoard(ttl=notice_seconds, clock=clock, on_expire=self._changed)
        self._listeners: list[Callable[[], None]] = []

        self.current_page = 1
        self.total_count = 0
        self.bookmarks: tuple[BookmarkResponse, ...] = ()
        self.is_fetching = False
        self.is_submitting = False
        self.is_mounted = False
        self.is_disposed = False
        # Form inputs
        self.title = ""
        self.url = ""

        self._displayed_page = 1
        self._request_token = 0
        self._initialized = False
        self._subscription: Subscription | None = None
        self._realtime_task: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        data_client: DataServiceClient,
        gateway: MutationGateway,
        session: SessionContext,
        settings: "Settings",
        **kwargs,
    ) -> "BookmarkListViewModel":
        """Build a view model with page size and limits taken from `settings`."""
        return cls(
            data_client,
            gateway,
            session,
            page_size=settings.page_size,
            notice_seconds=settings.notice_seconds,
            max_title_length=settings.max_title_length,
            **kwargs,
        )

    # -- observation --------------------------------------------------------

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call `listener` after every observable change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self) -> None:
        if self.is_disposed:
            return
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("View model listener %r failed", listener)

    @property
    def notice(self) -> Notice | None:
        """The visible notice, if it has not expired."""
        return self._notices.current

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def page_numbers(self) -> list[int]:
        return list(range(1, self.total_pages + 1))

    @property
    def show_pagination(self) -> bool:
        return self.total_pages > 1

    @property
    def show_skeleton(self) -> bool:
        """Loading placeholder: before mount and during visible fetches."""
        return not self.is_mounted or self.is_fetching

    @property
    def can_go_previous(self) -> bool:
        return self.current_page > 1 and not self.show_skeleton

    @property
    def can_go_next(self) -> bool:
        return self.current_page < self.total_pages and not self.show_skeleton

    @property
    def window(self) -> PageWindow:
        return PageWindow(
            page=self._displayed_page,
            page_size=self.page_size,
            total=self.total_count,
            items=self.bookmarks,
        )

    # -- lifecycle ----------------------------------------------------------

    async def initialize(self) -> None:
        """Mount, load the first page, then follow the user's changes."""
        if self._initialized or self.is_disposed:
            return
        self._initialized = True
        self.is_mounted = True
        self._changed()

        await self.load_page(1)
        if self.is_disposed:
            return

        user = await self._data.get_current_user(self._session)
        if user is None or self.is_disposed:
            logger.info("No signed-in user; live updates disabled")
            return
        self._subscription = self._data.subscribe_to_changes(BOOKMARKS_TABLE, user.id)
        self._realtime_task = asyncio.create_task(
            self._follow_changes(self._subscription),
            name=f"bookmark-changes:{user.id}",
        )

    async def dispose(self) -> None:
        """Stop live updates. Nothing observable changes after this returns."""
        if self.is_disposed:
            return
        self.is_disposed = True
        self._listeners.clear()
        self._notices.close()
        if self._subscription is not None:
            self._subscription.close()
        task = self._realtime_task
        self._realtime_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "BookmarkListViewModel":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    async def _follow_changes(self, subscription: Subscription) -> None:
        async for event in subscription:
            if self.is_disposed:
                break
            logger.debug("Change on %s (%s); refreshing page %s", event.table, event.event, self.current_page)
            # Silent: changes from other sessions should not flash the skeleton
            await self.load_page(self.current_page, show_busy=False)
            await self._clamp_page(show_busy=False)

    # -- reads --------------------------------------------------------------

    async def load_page(self, page: int, show_busy: bool = True) -> bool:
        """
        Fetch `page` and replace the window with it.

        Returns True if the response was applied. Failed reads keep the previous
        window; stale responses (a newer read was issued meanwhile) are dropped.
        """
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")
        if self.is_disposed:
            return False

        self._request_token += 1
        token = self._request_token
        if show_busy:
            self.is_fetching = True
            self._changed()

        start = (page - 1) * self.page_size
        result = await self._fetch(start, start + self.page_size)
        if self.is_disposed:
            return False

        applied = False
        if token != self._request_token:
            logger.debug("Discarding stale response for page %s", page)
        elif not result.ok or result.total is None:
            logger.warning("Loading page %s failed: %s", page, result.error or "missing total count")
        else:
            self.bookmarks = tuple(result.rows)
            self.total_count = result.total
            self._displayed_page = page
            applied = True

        # The skeleton stays up until the latest read resolves, visible or not
        if self.is_fetching and token == self._request_token:
            self.is_fetching = False
        self._changed()
        return applied

    async def change_page(self, new_page: int) -> bool:
        """Move the cursor to `new_page` right away, then load it."""
        last = max(self.total_pages, 1)
        if not 1 <= new_page <= last:
            raise ValueError(f"Page {new_page} is out of range 1..{last}")
        self.current_page = new_page
        self._changed()
        return await self.load_page(new_page)

    async def _fetch(self, start: int, stop: int) -> RangedResult:
        try:
            return await self._data.ranged_select(
                self._session,
                BOOKMARKS_TABLE,
                start,
                stop,
                order_by=ORDER_COLUMN,
                descending=True,
            )
        except Exception as e:
            logger.warning("Ranged read [%s, %s) raised: %s", start, stop, e)
            return RangedResult(error=str(e))

    async def _clamp_page(self, show_busy: bool = True) -> None:
        """Step back to the last page when the current one no longer exists."""
        if self.is_disposed:
            return
        last = self.total_pages
        if last >= 1 and self.current_page > last:
            self.current_page = last
            self._changed()
            await self.load_page(last, show_busy=show_busy)

    # -- writes -------------------------------------------------------------

    def _form_problem(self, title: str, url: str) -> str | None:
        if not title.strip():
            return "Title is required."
        if len(title) > self.max_title_length:
            return f"Title must be at most {self.max_title_length} characters."
        if not url.strip():
            return "URL is required."
        return None

    async def submit_add(self, title: str | None = None, url: str | None = None) -> bool:
        """
        Add a bookmark from the given values (or the form inputs).

        On success the form is cleared and the view jumps to page 1, where the new
        bookmark appears first. Ignored while another add is in flight.
        """
        if self.is_disposed or self.is_submitting:
            return False
        title = self.title if title is None else title
        url = self.url if url is None else url

        problem = self._form_problem(title, url)
        if problem is not None:
            self.notify(problem, NoticeKind.ERROR)
            return False

        self.is_submitting = True
        self._changed()
        try:
            result = await self._call_gateway(self._gateway.insert_bookmark(self._session, title, url))
            if self.is_disposed:
                return False
            if not result.ok:
                self.notify(friendly_error_message(result.error.message), NoticeKind.ERROR)
                return False

            self.title = ""
            self.url = ""
            self.notify(ADD_SUCCESS_MESSAGE, NoticeKind.SUCCESS)
            self.current_page = 1
            await self.load_page(1)
            return True
        finally:
            if not self.is_disposed:
                self.is_submitting = False
                self._changed()

    async def submit_delete(self, bookmark_id: UUID) -> bool:
        """Delete a bookmark and refresh the current page."""
        if self.is_disposed:
            return False
        result = await self._call_gateway(self._gateway.delete_bookmark(self._session, bookmark_id))
        if self.is_disposed:
            return False
        if not result.ok:
            self.notify(friendly_error_message(result.error.message), NoticeKind.ERROR)
            return False

        self.notify(DELETE_SUCCESS_MESSAGE, NoticeKind.SUCCESS)
        await self.load_page(self.current_page)
        await self._clamp_page()
        return True

    async def _call_gateway(self, call: Awaitable[MutationResult]) -> MutationResult:
        try:
            return await call
        except Exception as e:
            logger.warning("Mutation call raised: %s", e)
            return MutationResult.failed(str(e), MutationErrorCode.UNAVAILABLE)

    # -- notices ------------------------------------------------------------

    def notify(self, message: str, kind: NoticeKind = NoticeKind.ERROR) -> None:
        """Show `message`, replacing any current notice."""
        if self.is_disposed:
            return
        self._notices.show(message, kind)
        self._changed()

    def notify_copied(self) -> None:
        """Confirmation after the URL was copied to the clipboard."""
        self.notify(COPY_SUCCESS_MESSAGE, NoticeKind.SUCCESS)
