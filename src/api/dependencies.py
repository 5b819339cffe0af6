"""FastAPI dependencies for injection."""
from fastapi import Request

from core.auth import get_current_session
from core.config import get_settings
from core.snapshot_cache import SnapshotCache, get_snapshot_cache
from db.session import get_async_session
from services.mutation_gateway import MutationGateway


def get_mutation_gateway(request: Request) -> MutationGateway:
    """The gateway created at startup (see api.main.lifespan)."""
    return request.app.state.mutation_gateway


def get_listing_cache() -> SnapshotCache | None:
    """The listing snapshot cache, or None when caching is not set up."""
    return get_snapshot_cache()


__all__ = [
    "get_async_session",
    "get_current_session",
    "get_listing_cache",
    "get_mutation_gateway",
    "get_settings",
]
