"""Bounded retry and backoff state machines.

Kept free of any transport so failure semantics can be tested in isolation:
both helpers take the sleep coroutine as a dependency.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryExhausted(Exception):
    """Raised by BoundedRetry when every attempt was used up."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"Gave up after {attempts} attempts")
        self.attempts = attempts
        self.last_error = last_error


@dataclass
class BoundedRetry:
    """Poll an operation until it reports success or the budget runs out.

    States: ``pending -> (succeeded | exhausted)``. An attempt counts as a
    success when the check returns a truthy value; exceptions raised by the
    check count as failed attempts when they match ``retry_on``; anything
    else propagates immediately.
    """

    attempts: int
    interval: float
    sleep: Sleep = asyncio.sleep
    name: str = "operation"
    retry_on: tuple[type[Exception], ...] = (Exception,)

    async def run(self, check: Callable[[], Awaitable[T]]) -> T:
        """Run the check until it returns a truthy value.

        Args:
            check: Coroutine factory called once per attempt

        Returns:
            The first truthy check result

        Raises:
            RetryExhausted: If no attempt succeeded
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.attempts + 1):
            try:
                result = await check()
                if result:
                    return result
            except self.retry_on as e:
                last_error = e
                logger.debug(f"{self.name} attempt {attempt}/{self.attempts} failed: {e}")
            if attempt < self.attempts:
                await self.sleep(self.interval)

        raise RetryExhausted(self.attempts, last_error)


@dataclass
class ReconnectBackoff:
    """Tracks consecutive reconnect failures for the agent loop.

    The iteration error that triggered the reconnect already counts as the
    first failure, so every failed reconnect returns ``long_delay`` on top
    of the caller's base backoff. A success resets the counter.
    """

    long_delay: float = 5.0
    consecutive_failures: int = field(default=0, init=False)

    def record_failure(self) -> float:
        """Register a failed reconnect and return the extra delay to apply."""
        self.consecutive_failures += 1
        return self.long_delay

    def record_success(self) -> None:
        self.consecutive_failures = 0
