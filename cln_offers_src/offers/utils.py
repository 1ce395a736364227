import asyncio
import os
import time
from typing import Any, Awaitable, Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def call_blocking_with_timeout(func, *args, timeout: int) -> Any:
    """Run a blocking call in a worker thread. On timeout we only stop waiting, the call itself keeps running."""
    return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)


async def gather_ordered(func: Callable[[T], Awaitable[R]], items: Iterable[T]) -> List[R]:
    """Run func concurrently over items, results come back in input order. The first failure cancels the rest."""
    tasks = [asyncio.ensure_future(func(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except Exception:
        for task in tasks:
            task.cancel()
        raise


def now_seconds() -> int:
    return int(time.time())


def random_hex(num_bytes: int = 32) -> str:
    return os.urandom(num_bytes).hex()
