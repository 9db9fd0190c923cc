"""Async helpers shared by providers and the CLI."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from sinkview.core.exceptions import QueryExecutionError

T = TypeVar("T")


async def gather_or_cancel(*coros: Awaitable[T]) -> list[T]:
    """Run coroutines concurrently and return their results in order.

    Unlike ``asyncio.gather`` the siblings are cancelled as soon as one of
    them fails or the caller is cancelled, so no partial result survives.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]

    return [task.result() for task in tasks]


async def run_with_timeout(
    coro: Awaitable[T],
    timeout: float | None,
    timeout_message: str = "Query timed out",
    provider: str | None = None,
) -> T:
    """Run a coroutine with an optional timeout.

    Args:
        coro: Coroutine to run
        timeout: Timeout in seconds, None to wait indefinitely
        timeout_message: Message for timeout error
        provider: Provider name attached to the error

    Returns:
        Result of the coroutine

    Raises:
        QueryExecutionError: If the operation times out
    """
    if timeout is None:
        return await coro

    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        raise QueryExecutionError(
            timeout_message,
            provider=provider,
            details={"timeout_seconds": timeout},
        )


def run_sync(coro: Awaitable[T]) -> T:
    """Run an async function synchronously.

    This is useful for integrating async code with Click commands.

    Args:
        coro: Coroutine to run

    Returns:
        Result of the coroutine
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        # If we're already in an async context, run on a fresh loop in a worker
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()
    else:
        return asyncio.run(coro)
