"""Helpers shared across test modules."""
import asyncio
from collections.abc import Callable

# Constant for non-existent entity ID
FAKE_UUID = "00000000-0000-0000-0000-000000000000"


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until `predicate()` holds; fail after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
