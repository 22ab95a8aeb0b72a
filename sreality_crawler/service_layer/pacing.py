# sreality_crawler/service_layer/pacing.py
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

# (min_ms, max_ms, stop) -> seconds actually scheduled
Delay = Callable[[int, int, "asyncio.Event | None"], Awaitable[float]]


async def random_delay(min_ms: int, max_ms: int, stop: asyncio.Event | None = None) -> float:
    """
    Sleep a uniformly random time in [min_ms, max_ms].
    Returns early when `stop` gets set, so shutdown is observed at sleep boundaries.
    """
    lo, hi = sorted((max(0, min_ms), max(0, max_ms)))
    delay_s = random.uniform(lo, hi) / 1000.0
    if delay_s <= 0:
        return 0.0
    if stop is None:
        await asyncio.sleep(delay_s)
        return delay_s
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay_s)
    except asyncio.TimeoutError:
        pass
    return delay_s
