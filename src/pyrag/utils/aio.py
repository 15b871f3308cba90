"""Concurrent awaiting with sibling cancellation."""

import asyncio
import logging
from typing import Awaitable, Iterable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def gather_cancel_on_error(aws: Iterable[Awaitable[T]]) -> list[T]:
    """
    Run awaitables concurrently and return their results in order.

    On the first failure the remaining tasks are cancelled and awaited
    before the error is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.debug(f"Cancelled {len(pending)} tasks after a failure")

    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]
