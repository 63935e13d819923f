"""Backoff utilities.

`exponential_backoff` is an async generator used for startup retries (queue URL
resolution): it yields the current delay for the caller to attempt an operation,
then sleeps for that delay before the next attempt.

`LinearBackoff` is the per-loop poll delay: it grows by a fixed step on every
empty or failed receive, is capped, and resets to zero after a non-empty receive.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[float]:
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        yield delay
        if attempt < max_attempts:
            delay = min(delay * multiplier, max_delay)
            await asyncio.sleep(delay)


class LinearBackoff:
    """Linear delay counter: 0, step, 2*step, ... capped at max_delay."""

    def __init__(self, step: float, max_delay: float) -> None:
        if step < 0 or max_delay < 0:
            raise ValueError("backoff step and max_delay must be non-negative")
        self._step = step
        self._max_delay = max_delay
        self._delay = 0.0

    @property
    def delay(self) -> float:
        return self._delay

    def advance(self) -> float:
        """Return the delay to wait now, then grow the counter for the next retry."""
        current = self._delay
        self._delay = min(self._max_delay, self._delay + self._step)
        return current

    def reset(self) -> None:
        self._delay = 0.0
