"""Fan-out helper for running a batch of coroutines as one unit."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterable, TypeVar

T = TypeVar("T")


async def gather_fail_fast(
    aws: Iterable[Awaitable[T]],
    *,
    limit: int | None = None,
) -> list[T]:
    """Run awaitables concurrently and return their results in input order.

    All awaitables are scheduled at once inside an ``asyncio.TaskGroup``.
    When ``limit`` is given, at most that many run at the same time.
    If any of them fails the remaining tasks are cancelled and the first
    collected exception is re-raised as-is, so callers never receive a
    partial result list or an ``ExceptionGroup``.
    """
    if limit is not None and limit <= 0:
        raise ValueError("limit must be positive")

    semaphore = asyncio.Semaphore(limit) if limit else None

    async def _run(aw: Awaitable[T]) -> T:
        if semaphore is None:
            return await aw
        async with semaphore:
            return await aw

    tasks: list[asyncio.Task[T]] = []
    try:
        async with asyncio.TaskGroup() as group:
            for aw in aws:
                tasks.append(group.create_task(_run(aw)))
    except BaseExceptionGroup as group_error:
        first = group_error.exceptions[0]
        while isinstance(first, BaseExceptionGroup):
            first = first.exceptions[0]
        raise first from None
    return [task.result() for task in tasks]
