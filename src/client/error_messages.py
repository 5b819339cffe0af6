"""Map raw mutation errors to messages shown to the user."""
from models.bookmark import UNIQUE_TITLE_CONSTRAINT, URL_FORMAT_CONSTRAINT

DUPLICATE_TITLE_MESSAGE = "You already have a bookmark with this title."
INVALID_URL_MESSAGE = "Please enter a valid URL."

ADD_SUCCESS_MESSAGE = "Link saved successfully!"
DELETE_SUCCESS_MESSAGE = "Bookmark removed"
COPY_SUCCESS_MESSAGE = "Copied!"


def friendly_error_message(raw: str | None) -> str:
    """
    Translate known constraint violations; pass anything else through unchanged.

    Matching is on substrings because the storage layer's wording varies by
    driver while the constraint names do not.
    """
    message = raw or ""
    if UNIQUE_TITLE_CONSTRAINT in message or "duplicate key" in message:
        return DUPLICATE_TITLE_MESSAGE
    if URL_FORMAT_CONSTRAINT in message:
        return INVALID_URL_MESSAGE
    return message
