"""Async utilities for awaiting blocking send/receive work from asyncio hosts."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wait on a background send/receive (or to run a
    ``Synchronizer`` directly) from a coroutine.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        synchronizer = Synchronizer.from_project_configuration(config)
        results = await run_sync(synchronizer.run, options)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
