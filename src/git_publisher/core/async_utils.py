"""Async helpers for running blocking repository and disk calls off the event loop."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Module-level semaphore bounding concurrent repository API calls
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 5) -> None:
    """Initialize the request semaphore. Call once per event loop."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Repository request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread.

    Used for publish-record store I/O and local document reads, which
    are not subject to the repository request limit.

    Example:
        record = await run_sync(store.find, "notes/a.md", "blog")
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread, bounded by the semaphore.

    Falls back to unbounded if the semaphore was never initialized.
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
    return_exceptions: bool = False,
) -> list[T | BaseException]:
    """Run coroutines concurrently and return results in input order.

    Each coroutine should use ``run_sync_limited`` internally so the
    semaphore bounds the actual network fan-out.

    Args:
        coros: Sequence of coroutines to run concurrently.
        return_exceptions: If ``True``, exceptions are returned in place
            of results instead of propagating from the first failure.
    """
    return list(
        await asyncio.gather(*coros, return_exceptions=return_exceptions)
    )
