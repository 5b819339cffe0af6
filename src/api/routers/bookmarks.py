"""Bookmark list/create/delete endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_current_session,
    get_listing_cache,
    get_mutation_gateway,
    get_settings,
)
from core.config import Settings
from core.session_context import SessionContext
from core.snapshot_cache import SnapshotCache
from schemas.bookmark import BookmarkCreate, BookmarkListResponse, BookmarkResponse
from services import bookmark_service
from services.mutation_gateway import MutationErrorCode, MutationGateway, MutationResult

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])

_ERROR_STATUS = {
    MutationErrorCode.DUPLICATE_TITLE: 409,
    MutationErrorCode.INVALID_URL: 422,
    MutationErrorCode.INVALID_INPUT: 422,
    MutationErrorCode.NOT_FOUND: 404,
    MutationErrorCode.UNAUTHENTICATED: 401,
    MutationErrorCode.UNAVAILABLE: 503,
}


def _raise_for_error(result: MutationResult) -> None:
    if result.error is not None:
        raise HTTPException(status_code=_ERROR_STATUS[result.error.code], detail=result.error.message)


async def _load_listing(
    db: AsyncSession,
    session: SessionContext,
    offset: int,
    limit: int,
) -> BookmarkListResponse:
    bookmarks, total = await bookmark_service.list_bookmarks(
        db, session.user.id, offset=offset, limit=limit,
    )
    items = [BookmarkResponse.model_validate(b) for b in bookmarks]
    return BookmarkListResponse(
        items=items,
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(items) < total,
    )


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int | None = Query(
        default=None, ge=1, le=100, description="Pagination limit (defaults to the page size)",
    ),
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> BookmarkListResponse:
    """
    List the current user's bookmarks, newest first.

    The response carries the exact total so clients can compute page counts.
    """
    return await _load_listing(db, session, offset, limit or settings.page_size)


@router.get("/snapshot", response_model=BookmarkListResponse)
async def get_snapshot(
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_async_session),
    cache: SnapshotCache | None = Depends(get_listing_cache),
    settings: Settings = Depends(get_settings),
) -> BookmarkListResponse:
    """First page as rendered on initial page load; cached until the next mutation."""
    if cache is None:
        return await _load_listing(db, session, 0, settings.page_size)
    cached = await cache.get(session.user.id)
    if cached is not None:
        return cached
    # Read before querying: a mutation landing after this point makes the entry stale
    generation = await cache.generation(session.user.id)
    snapshot = await _load_listing(db, session, 0, settings.page_size)
    await cache.set(session.user.id, snapshot, generation=generation)
    return snapshot


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    session: SessionContext = Depends(get_current_session),
    gateway: MutationGateway = Depends(get_mutation_gateway),
) -> BookmarkResponse:
    """Create a new bookmark."""
    result = await gateway.insert_bookmark(session, data.title, data.url)
    _raise_for_error(result)
    return result.bookmark


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: UUID,
    session: SessionContext = Depends(get_current_session),
    gateway: MutationGateway = Depends(get_mutation_gateway),
) -> None:
    """Delete a bookmark."""
    result = await gateway.delete_bookmark(session, bookmark_id)
    _raise_for_error(result)
