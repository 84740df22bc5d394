from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Union

Predicate = Callable[[], Union[Any, Awaitable[Any]]]


async def _probe(predicate: Predicate) -> Any:
    value = predicate()
    if inspect.isawaitable(value):
        value = await value
    return value


async def wait_until(
    predicate: Predicate,
    timeout_ms: int,
    poll_interval_ms: int = 100,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """Poll ``predicate`` until it returns something truthy or ``timeout_ms`` passes.

    Returns the first truthy value, or the last (falsy) value on timeout. The
    predicate is always evaluated at least once, so ``timeout_ms=0`` is a
    single check.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(0, timeout_ms) / 1000.0
    step = max(1, poll_interval_ms) / 1000.0

    value = await _probe(predicate)
    while not value:
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await sleep(min(step, remaining))
        value = await _probe(predicate)
    return value


async def pause(ms: int) -> None:
    if ms > 0:
        await asyncio.sleep(ms / 1000.0)
    else:
        await asyncio.sleep(0)
