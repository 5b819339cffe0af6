"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import bookmarks, health, users
from core.config import get_settings
from core.realtime import ChangeBroker
from core.realtime_relay import RedisChangeRelay
from core.redis import RedisClient, set_redis_client
from core.snapshot_cache import SnapshotCache, set_snapshot_cache
from db.session import get_session_factory
from services.data_client import SqlDataServiceClient
from services.mutation_gateway import SqlMutationGateway


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Connect to Redis
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()
    set_redis_client(redis_client)

    # Startup: change feed, shared across processes when Redis is up
    broker = ChangeBroker()
    relay = RedisChangeRelay(redis_client, broker, app_settings.realtime_channel)
    relay.start()
    if relay.is_running and not await relay.wait_subscribed(timeout=5.0):
        logger.warning("Realtime relay not subscribed yet; publishing locally as well")

    snapshot_cache = SnapshotCache(redis_client, ttl=app_settings.snapshot_cache_ttl)
    set_snapshot_cache(snapshot_cache)

    session_factory = get_session_factory()
    app.state.change_broker = broker
    app.state.data_client = SqlDataServiceClient(session_factory, broker, app_settings)
    app.state.mutation_gateway = SqlMutationGateway(
        session_factory, relay, app_settings, snapshot_cache=snapshot_cache,
    )
    logger.info("Started (redis=%s, dev_mode=%s)", redis_client.is_connected, app_settings.dev_mode)

    yield

    # Shutdown: stop the change feed, then clean up cache and Redis
    await relay.stop()
    broker.close_all()
    set_snapshot_cache(None)
    await redis_client.close()
    set_redis_client(None)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


settings = get_settings()

app = FastAPI(
    title="Live Bookmarks API",
    description="Personal bookmarks with paginated listing and live change notifications.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(users.router)
app.include_router(bookmarks.router)
