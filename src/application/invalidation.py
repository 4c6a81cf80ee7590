from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[str], Awaitable[None]]


class InvalidationSignal:
    """Explicit "data changed, recompute" notification emitted after successful writes."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, reason: str) -> None:
        logger.info("Invalidation emitted reason=%s listeners=%d", reason, len(self._listeners))
        for listener in list(self._listeners):
            await listener(reason)
