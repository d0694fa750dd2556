"""Test helpers shared across modules."""

import asyncio
import time


async def wait_for(predicate, timeout=5.0, interval=0.02):
    """Poll until predicate() is truthy or fail after timeout seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"condition not met within {timeout}s")
        await asyncio.sleep(interval)
