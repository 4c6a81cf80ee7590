from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from application.errors import FetchFailedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotService(ABC, Generic[T]):
    """Holds the latest completed snapshot plus loading/error flags.

    Each fetch gets a generation number and only the most recently started
    fetch may publish; an older fetch that finishes late is discarded. A
    failed fetch leaves the previous snapshot in place and always clears
    ``loading`` for the current generation.
    """

    label = "snapshot"

    def __init__(self) -> None:
        self.snapshot: Optional[T] = None
        self.loading = False
        self.last_error: Optional[str] = None
        self._generation = 0

    async def _fetch(self, produce: Callable[[], Awaitable[T]]) -> T:
        self._generation += 1
        generation = self._generation
        self.loading = True
        started = time.perf_counter()
        try:
            result = await produce()
        except Exception as exc:
            logger.exception("%s fetch failed generation=%d", self.label, generation)
            if generation == self._generation:
                self.last_error = str(exc) or exc.__class__.__name__
            raise FetchFailedError(f"{self.label} fetch failed: {exc}") from exc
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.info(
                "%s fetch generation=%d superseded by generation=%d, not publishing",
                self.label,
                generation,
                self._generation,
            )
            return result

        self.snapshot = result
        self.last_error = None
        logger.info("%s fetch generation=%d published in %.2fs", self.label, generation, time.perf_counter() - started)
        return result

    async def _on_invalidate(self, reason: str) -> None:
        try:
            await self.refresh()
        except FetchFailedError:
            logger.warning("%s refresh after %s invalidation failed, keeping previous snapshot", self.label, reason)

    @abstractmethod
    async def refresh(self) -> T:
        """Fetch, compute and publish a fresh snapshot."""
