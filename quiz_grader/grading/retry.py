"""
Retry policy for calls to the external grading service.

A bounded loop with linear backoff: after the Nth failed attempt the
policy waits N * base_delay before trying again.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    How many times to try an operation and how long to wait in between.

    Args:
        max_attempts: Total attempts, including the first one.
        base_delay: Backoff unit in seconds.
        retry_on: Exception types that are worth another attempt.
        give_up: Returns True for a caught error that retrying can't fix.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        retry_on: tuple[type[Exception], ...] = (Exception,),
        give_up: Callable[[Exception], bool] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.retry_on = retry_on
        self.give_up = give_up
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            Delay in seconds.
        """
        return self.base_delay * attempt

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """
        Await operation until it succeeds or attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.
            label: Name used in log messages.

        Returns:
            The operation's result.

        Raises:
            The last exception raised by operation, once attempts are exhausted
            or when it is not one of retry_on or give_up accepts it.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                if self.give_up is not None and self.give_up(e):
                    logger.info("Not retrying %s: %s", label, e)
                    raise
                delay = self.delay_for(attempt)
                logger.info(
                    "Retrying %s (attempt %d/%d failed: %s); waiting %.1fs",
                    label,
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")
