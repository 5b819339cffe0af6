"""Shared exceptions for service layer operations."""
from uuid import UUID

from models.bookmark import UNIQUE_TITLE_CONSTRAINT, URL_FORMAT_CONSTRAINT


class DuplicateTitleError(Exception):
    """Raised when the user already has a bookmark with the same title."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(
            f'duplicate key value violates unique constraint "{UNIQUE_TITLE_CONSTRAINT}": '
            f"a bookmark titled '{title}' already exists",
        )


class InvalidUrlError(Exception):
    """Raised when a URL is not a well-formed absolute http(s) address."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(
            f'new row for relation "bookmarks" violates check constraint '
            f'"{URL_FORMAT_CONSTRAINT}": \'{url}\' is not a valid URL',
        )


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark does not exist or belongs to another user."""

    def __init__(self, bookmark_id: UUID) -> None:
        self.bookmark_id = bookmark_id
        super().__init__("Bookmark not found")
