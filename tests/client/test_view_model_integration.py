"""View model wired to the SQL data client, SQL gateway and change broker."""
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from client.error_messages import DUPLICATE_TITLE_MESSAGE, INVALID_URL_MESSAGE
from client.view_model import BookmarkListViewModel
from core.config import Settings
from core.realtime import ChangeBroker
from core.session_context import SessionContext
from models.bookmark import Bookmark
from services.data_client import SqlDataServiceClient
from services.mutation_gateway import SqlMutationGateway
from tests.helpers import wait_for

AddBookmarks = Callable[..., Awaitable[list[Bookmark]]]


@pytest.fixture
def data_client(
    session_factory: async_sessionmaker,
    broker: ChangeBroker,
    settings: Settings,
) -> SqlDataServiceClient:
    return SqlDataServiceClient(session_factory, broker, settings)


@pytest.fixture
async def view_model(
    data_client: SqlDataServiceClient,
    gateway: SqlMutationGateway,
    settings: Settings,
) -> AsyncGenerator[BookmarkListViewModel]:
    vm = BookmarkListViewModel.from_settings(data_client, gateway, SessionContext(), settings)
    yield vm
    await vm.dispose()


def titles(vm: BookmarkListViewModel) -> list[str]:
    return [b.title for b in vm.bookmarks]


async def test__twelve_bookmarks__three_pages(
    view_model: BookmarkListViewModel, add_bookmarks: AddBookmarks,
) -> None:
    await add_bookmarks(12)
    await view_model.initialize()

    assert view_model.total_pages == 3
    assert titles(view_model) == [f"Bookmark {i}" for i in range(12, 7, -1)]

    await view_model.change_page(3)
    assert titles(view_model) == ["Bookmark 2", "Bookmark 1"]


async def test__add__appears_first_on_page_one(
    view_model: BookmarkListViewModel, add_bookmarks: AddBookmarks,
) -> None:
    await add_bookmarks(7)
    await view_model.initialize()
    await view_model.change_page(2)

    assert await view_model.submit_add("Python", "https://python.org")

    assert view_model.current_page == 1
    # The refetch and the change notification race; whichever is issued last wins
    await wait_for(lambda: view_model.total_count == 8)
    assert titles(view_model)[0] == "Python"
    assert view_model.bookmarks[0].hostname == "python.org"


async def test__add__duplicate_title(view_model: BookmarkListViewModel) -> None:
    await view_model.initialize()
    assert await view_model.submit_add("Docs", "https://docs.python.org")

    assert not await view_model.submit_add("Docs", "https://other.example.com")

    assert view_model.notice.message == DUPLICATE_TITLE_MESSAGE
    await wait_for(lambda: view_model.total_count == 1)


async def test__add__invalid_url(view_model: BookmarkListViewModel) -> None:
    await view_model.initialize()

    assert not await view_model.submit_add("Bad", "not a url")

    assert view_model.notice.message == INVALID_URL_MESSAGE
    assert view_model.total_count == 0


async def test__delete__removes_and_is_not_repeatable(
    view_model: BookmarkListViewModel, add_bookmarks: AddBookmarks,
) -> None:
    await add_bookmarks(3)
    await view_model.initialize()
    target = view_model.bookmarks[1]

    assert await view_model.submit_delete(target.id)
    await wait_for(lambda: view_model.total_count == 2)
    assert titles(view_model) == ["Bookmark 3", "Bookmark 1"]

    assert not await view_model.submit_delete(target.id)
    assert view_model.total_count == 2


async def test__delete__last_item_on_last_page_clamps(
    view_model: BookmarkListViewModel, add_bookmarks: AddBookmarks,
) -> None:
    await add_bookmarks(11)
    await view_model.initialize()
    await view_model.change_page(3)
    (only,) = view_model.bookmarks

    assert await view_model.submit_delete(only.id)

    await wait_for(lambda: view_model.current_page == 2 and len(view_model.bookmarks) == 5)
    assert view_model.total_count == 10


async def test__change_from_another_session__refreshes(
    view_model: BookmarkListViewModel,
    gateway: SqlMutationGateway,
    add_bookmarks: AddBookmarks,
) -> None:
    await add_bookmarks(4)
    await view_model.initialize()

    # Another tab adds through the same backend
    result = await gateway.insert_bookmark(SessionContext(), "From elsewhere", "https://elsewhere.example.com")
    assert result.ok

    await wait_for(lambda: view_model.total_count == 5)
    assert titles(view_model)[0] == "From elsewhere"
    assert not view_model.is_fetching


async def test__two_view_models__see_each_others_changes(
    data_client: SqlDataServiceClient,
    gateway: SqlMutationGateway,
    settings: Settings,
) -> None:
    async with (
        BookmarkListViewModel.from_settings(data_client, gateway, SessionContext(), settings) as first,
        BookmarkListViewModel.from_settings(data_client, gateway, SessionContext(), settings) as second,
    ):
        assert await first.submit_add("Shared", "https://shared.example.com")

        await wait_for(lambda: second.total_count == 1)
        assert titles(second) == ["Shared"]

        assert await second.submit_delete(second.bookmarks[0].id)
        await wait_for(lambda: first.total_count == 0)
        assert first.bookmarks == ()
