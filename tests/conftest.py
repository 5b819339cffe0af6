"""Pytest fixtures for testing."""
import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

# Must be set before any app imports that trigger Settings validation.
# Each test gets its own database file (see `database_url`); this one only backs
# the module-level engine in db.session, which tests never query.
_import_db = Path(tempfile.mkdtemp(prefix="bookmarks-tests-")) / "import.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_import_db}"
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DEV_MODE"] = "true"
os.environ["REDIS_ENABLED"] = "false"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.auth import DEV_USER_ID  # noqa: E402
from core.config import Settings, get_settings  # noqa: E402
from core.realtime import ChangeBroker  # noqa: E402
from models.base import Base  # noqa: E402
from models.bookmark import Bookmark  # noqa: E402
from services.mutation_gateway import SqlMutationGateway  # noqa: E402


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """A fresh SQLite database file for this test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    """Dev-mode settings pointing at the test database."""
    return Settings(_env_file=None, database_url=database_url, dev_mode=True)


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine for testing."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session on the test database.

    Tests commit their own writes so gateways and API requests, which open
    separate sessions, see them.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def broker() -> ChangeBroker:
    """In-process change broker."""
    return ChangeBroker()


@pytest.fixture
def gateway(
    session_factory: async_sessionmaker,
    broker: ChangeBroker,
    settings: Settings,
) -> SqlMutationGateway:
    """Mutation gateway writing to the test database and announcing on `broker`."""
    return SqlMutationGateway(session_factory, broker, settings)


@pytest.fixture
async def client(
    session_factory: async_sessionmaker,
    gateway: SqlMutationGateway,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and gateway overrides."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    get_settings.cache_clear()

    from api.dependencies import get_mutation_gateway
    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_mutation_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def add_bookmarks(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[list[Bookmark]]]:
    """
    Insert `count` bookmarks titled "Bookmark 1".."Bookmark N" and commit.

    created_at increases with the number, so "Bookmark N" is the newest.
    """
    async def _add(count: int, user_id: UUID = DEV_USER_ID, prefix: str = "Bookmark") -> list[Bookmark]:
        base = datetime(2024, 1, 1, tzinfo=UTC)
        bookmarks = [
            Bookmark(
                user_id=user_id,
                title=f"{prefix} {i}",
                url=f"https://example.com/{i}",
                created_at=base + timedelta(minutes=i),
            )
            for i in range(1, count + 1)
        ]
        db_session.add_all(bookmarks)
        await db_session.commit()
        return bookmarks

    return _add
