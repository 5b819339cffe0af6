"""Transient, auto-expiring user-facing messages."""
import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class NoticeKind(StrEnum):
    """Visual style of a notice."""

    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class Notice:
    """One message and the clock reading after which it is gone."""

    message: str
    kind: NoticeKind
    expires_at: float


class NoticeBoard:
    """
    Holds at most one notice.

    A notice is visible until `ttl` seconds after it was shown; showing another one
    replaces it and restarts the window. Expiry is checked against `clock` on every
    read, and, when an event loop is running, a timer also clears it proactively and
    calls `on_expire` so observers can redraw.
    """

    def __init__(
        self,
        ttl: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        on_expire: Callable[[], None] | None = None,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._on_expire = on_expire
        self._notice: Notice | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def current(self) -> Notice | None:
        """The visible notice, or None once it has expired."""
        if self._notice is not None and self._clock() >= self._notice.expires_at:
            self._notice = None
        return self._notice

    def show(self, message: str, kind: NoticeKind = NoticeKind.ERROR) -> Notice:
        """Replace the current notice and restart the expiry window."""
        notice = Notice(message=message, kind=NoticeKind(kind), expires_at=self._clock() + self._ttl)
        self._notice = notice
        self._schedule(notice)
        return notice

    def clear(self) -> None:
        """Remove the current notice immediately."""
        self._notice = None
        self._cancel_timer()

    def close(self) -> None:
        """Stop the expiry timer without notifying anyone."""
        self._on_expire = None
        self._cancel_timer()

    def _schedule(self, notice: Notice) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self._ttl, self._expire, notice)

    def _expire(self, notice: Notice) -> None:
        self._timer = None
        if self._notice is not notice:
            return
        self._notice = None
        if self._on_expire is not None:
            self._on_expire()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
