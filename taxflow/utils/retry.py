from __future__ import annotations

import asyncio
import random

from ..constants import DEFAULT_BACKOFF_BASE


def compute_backoff(
    attempt: int, base: float = DEFAULT_BACKOFF_BASE, jitter: float = 0.0
) -> float:
    """Compute exponential backoff with optional jitter."""
    delay = base ** attempt
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


async def schedule_retry(
    attempt: int, base: float = DEFAULT_BACKOFF_BASE, jitter: float = 0.0
) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await asyncio.sleep(delay)
