"""Tests for the fail-fast fan-out helper."""

from __future__ import annotations

import asyncio

import pytest

from upload_agent.common.tasks import gather_fail_fast


async def _value(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _fail(exc, delay=0.0):
    await asyncio.sleep(delay)
    raise exc


@pytest.mark.asyncio
async def test_results_follow_input_order():
    results = await gather_fail_fast(
        [_value("slow", 0.03), _value("fast"), _value("middle", 0.01)]
    )

    assert results == ["slow", "fast", "middle"]


@pytest.mark.asyncio
async def test_empty_input():
    assert await gather_fail_fast([]) == []


@pytest.mark.asyncio
async def test_reraises_original_exception_and_cancels_siblings():
    cancelled = asyncio.Event()

    async def long_running():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    with pytest.raises(KeyError, match="boom"):
        await gather_fail_fast([long_running(), _fail(KeyError("boom"), 0.01)])

    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_limit_bounds_concurrency():
    running = 0
    peak = 0

    async def tracked(value):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return value

    results = await gather_fail_fast([tracked(i) for i in range(8)], limit=3)

    assert results == list(range(8))
    assert peak == 3


@pytest.mark.asyncio
async def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        await gather_fail_fast([], limit=0)
