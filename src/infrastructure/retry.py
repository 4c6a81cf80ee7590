from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable, TypeVar

from infrastructure.store.base import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Bounded retry with exponential delay for transient store failures.

    Callers see a call either succeed or raise once attempts are exhausted.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
        backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_attempts = max(1, max_attempts or int(os.getenv("STORE_RETRY_ATTEMPTS", "3")))
        if delay_seconds is None:
            delay_seconds = float(os.getenv("STORE_RETRY_DELAY_SECONDS", "1.0"))
        self.delay_seconds = delay_seconds
        self.backoff = backoff
        self._sleep = sleep

    def call(self, operation: Callable[[], T], description: str = "store call") -> T:
        delay = self.delay_seconds
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except TransientStoreError as exc:
                if attempt >= self.max_attempts:
                    logger.warning("%s failed after %d attempts: %s", description, attempt, exc)
                    raise
                logger.warning(
                    "%s attempt %d/%d failed, retrying in %.2fs: %s",
                    description,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                self._sleep(delay)
                delay *= self.backoff

    async def acall(self, operation: Callable[[], T], description: str = "store call") -> T:
        """Run a blocking store call (with retries) off the event loop."""
        return await asyncio.to_thread(self.call, operation, description)
