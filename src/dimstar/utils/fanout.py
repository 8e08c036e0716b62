"""Ordered fan-out/fan-in over coroutines."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterable, TypeVar

T = TypeVar("T")


async def gather_ordered(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently and return results in input order.

    The first failure propagates; the remaining units are cancelled so no
    call keeps running after the step has failed.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
