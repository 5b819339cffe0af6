"""Cache for the server-rendered first page of a user's bookmarks."""
import logging
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ValidationError

from schemas.bookmark import BookmarkListResponse

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Cache schema version - included in all cache keys (e.g., "bookmarks:v2:snapshot:...")
#
# Bump this version when BookmarkListResponse fields change so entries written by
# older code are never read back; they expire through the TTL.
CACHE_SCHEMA_VERSION = 2


class CachedSnapshot(BaseModel):
    """A snapshot and the invalidation generation it was read under."""

    generation: int
    snapshot: BookmarkListResponse


class SnapshotCache:
    """
    Per-user cache of the initial listing.

    Every successful mutation invalidates the owner's entry, so the next page load
    renders fresh data. Invalidation also bumps a per-user generation counter.
    Entries are stored with the generation read *before* the listing was queried,
    so a snapshot that raced with a mutation is never served, even when it is
    written after the invalidation.
    """

    def __init__(self, redis_client: "RedisClient", ttl: int = 300) -> None:
        """Initialize snapshot cache with Redis client."""
        self._redis = redis_client
        self._ttl = ttl

    def _cache_key(self, user_id: UUID) -> str:
        """Generate cache key for a user's snapshot."""
        return f"bookmarks:v{CACHE_SCHEMA_VERSION}:snapshot:{user_id}"

    def _generation_key(self, user_id: UUID) -> str:
        return f"bookmarks:v{CACHE_SCHEMA_VERSION}:generation:{user_id}"

    async def generation(self, user_id: UUID) -> int:
        """Current invalidation generation for `user_id`; read it before querying."""
        data = await self._redis.get(self._generation_key(user_id))
        return int(data) if data else 0

    async def get(self, user_id: UUID) -> BookmarkListResponse | None:
        """Return the cached snapshot, or None on cache miss."""
        data = await self._redis.get(self._cache_key(user_id))
        if not data:
            logger.debug("snapshot_cache_miss user_id=%s", user_id)
            return None
        try:
            entry = CachedSnapshot.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding unreadable snapshot for user_id=%s", user_id)
            await self._redis.delete(self._cache_key(user_id))
            return None
        if entry.generation != await self.generation(user_id):
            logger.debug("snapshot_cache_stale user_id=%s", user_id)
            return None
        logger.debug("snapshot_cache_hit user_id=%s", user_id)
        return entry.snapshot

    async def set(self, user_id: UUID, snapshot: BookmarkListResponse, generation: int = 0) -> None:
        """Store `snapshot` for `user_id`, tagged with the generation it was read under."""
        entry = CachedSnapshot(generation=generation, snapshot=snapshot)
        await self._redis.setex(self._cache_key(user_id), self._ttl, entry.model_dump_json())
        logger.debug("snapshot_cache_set user_id=%s generation=%s", user_id, generation)

    async def invalidate(self, user_id: UUID) -> None:
        """Drop the cached snapshot so the next render refetches."""
        await self._redis.incr(self._generation_key(user_id))
        await self._redis.delete(self._cache_key(user_id))
        logger.debug("snapshot_cache_invalidate user_id=%s", user_id)


# Global snapshot cache instance (set during app startup)
_snapshot_cache: SnapshotCache | None = None


def get_snapshot_cache() -> SnapshotCache | None:
    """Get the global snapshot cache instance."""
    return _snapshot_cache


def set_snapshot_cache(cache: SnapshotCache | None) -> None:
    """Set the global snapshot cache instance."""
    global _snapshot_cache  # noqa: PLW0603
    _snapshot_cache = cache
