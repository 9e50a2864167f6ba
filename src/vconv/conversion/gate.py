"""Admission control for conversions.

At most max_concurrent conversions run at once and at most max_queued
more may wait for a slot. Anything beyond that is turned away with
ServiceBusyError so the server sheds load instead of piling up ffmpeg
processes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from vconv.conversion.exceptions import ServiceBusyError

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Bounded concurrency plus a bounded wait queue."""

    def __init__(self, max_concurrent: int, max_queued: int = 0) -> None:
        if max_concurrent < 1:
            raise ValueError(
                f"max_concurrent must be at least 1, got {max_concurrent}"
            )
        self.max_concurrent = max_concurrent
        self.max_queued = max_queued
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._running = 0
        self._waiting = 0

    @property
    def running(self) -> int:
        return self._running

    @property
    def waiting(self) -> int:
        return self._waiting

    @property
    def is_full(self) -> bool:
        """True when a new request would be rejected."""
        return self._running + self._waiting >= self.max_concurrent + self.max_queued

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a conversion slot for the duration of the block.

        Raises:
            ServiceBusyError: If both the slots and the queue are full.
        """
        if self.is_full:
            logger.warning(
                "Rejecting conversion: %d running, %d waiting",
                self._running,
                self._waiting,
            )
            raise ServiceBusyError()

        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        self._running += 1
        try:
            yield
        finally:
            self._running -= 1
            self._semaphore.release()
