"""
Mutation gateway that calls the bookmarks HTTP API.

Only the write side goes over HTTP. Reads and change notifications still come
from a `DataServiceClient`, i.e. `SqlDataServiceClient` with the app's
`ChangeBroker`, so a view model using this gateway must run alongside the
backend process that owns the broker (or one fed by the same Redis relay).
"""
import logging
from uuid import UUID

import httpx

from core.session_context import SessionContext
from schemas.bookmark import BookmarkResponse
from services.mutation_gateway import MutationErrorCode, MutationResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_STATUS_CODES = {
    401: MutationErrorCode.UNAUTHENTICATED,
    404: MutationErrorCode.NOT_FOUND,
    409: MutationErrorCode.DUPLICATE_TITLE,
}


def _error_detail(response: httpx.Response) -> str:
    """Pull FastAPI's `detail` out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        # Request validation errors: list of {"loc": [...], "msg": "..."}
        return "; ".join(str(item.get("msg", item)) for item in detail if isinstance(item, dict))
    return f"HTTP {response.status_code}"


def _error_code(response: httpx.Response, detail: str) -> MutationErrorCode:
    if response.status_code in _STATUS_CODES:
        return _STATUS_CODES[response.status_code]
    if response.status_code == 422:
        if "url_format_check" in detail:
            return MutationErrorCode.INVALID_URL
        return MutationErrorCode.INVALID_INPUT
    return MutationErrorCode.UNAVAILABLE


class HttpMutationGateway:
    """
    MutationGateway over HTTP.

    The caller owns `client` (base URL, transport, lifetime); the session's access
    token is sent as a bearer token on every call.
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._client = client
        self._timeout = timeout

    def _headers(self, session: SessionContext) -> dict[str, str]:
        if session.access_token:
            return {"Authorization": f"Bearer {session.access_token}"}
        return {}

    async def insert_bookmark(self, session: SessionContext, title: str, url: str) -> MutationResult:
        """POST /bookmarks/."""
        try:
            response = await self._client.post(
                "/bookmarks/",
                json={"title": title, "url": url},
                headers=self._headers(session),
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Insert request failed: %s", e)
            return MutationResult.failed(f"Request failed: {e}", MutationErrorCode.UNAVAILABLE)

        if response.is_success:
            return MutationResult(bookmark=BookmarkResponse.model_validate(response.json()))
        detail = _error_detail(response)
        return MutationResult.failed(detail, _error_code(response, detail))

    async def delete_bookmark(self, session: SessionContext, bookmark_id: UUID) -> MutationResult:
        """DELETE /bookmarks/{id}."""
        try:
            response = await self._client.delete(
                f"/bookmarks/{bookmark_id}",
                headers=self._headers(session),
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Delete request failed: %s", e)
            return MutationResult.failed(f"Request failed: {e}", MutationErrorCode.UNAVAILABLE)

        if response.is_success:
            return MutationResult()
        detail = _error_detail(response)
        return MutationResult.failed(detail, _error_code(response, detail))
