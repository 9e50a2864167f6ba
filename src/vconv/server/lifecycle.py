"""Daemon lifecycle: uptime, shutdown state and in-flight request tracking."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


@dataclass
class ShutdownState:
    """Tracks shutdown progress for graceful termination."""

    initiated: datetime | None = None
    """UTC timestamp when shutdown was initiated, None if not shutting down."""

    timeout_deadline: datetime | None = None
    """UTC timestamp after which in-flight requests are abandoned."""

    tasks_remaining: int = 0
    """Count of in-flight conversions and downloads."""

    @property
    def is_shutting_down(self) -> bool:
        return self.initiated is not None


@dataclass
class DaemonLifecycle:
    """Startup and shutdown state shared by the app and the serve command.

    Handlers that do long-running work wrap it in track_request() so that
    shutdown can wait for them via wait_for_drain().
    """

    shutdown_timeout: float = 30.0
    """Seconds to wait for in-flight requests during shutdown."""

    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    shutdown_state: ShutdownState = field(default_factory=ShutdownState)

    _idle: asyncio.Event | None = field(default=None, init=False, repr=False)

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_shutting_down(self) -> bool:
        return self.shutdown_state.is_shutting_down

    @property
    def in_flight(self) -> int:
        return self.shutdown_state.tasks_remaining

    def initiate_shutdown(self) -> None:
        """Begin graceful shutdown.

        Idempotent: only the first call sets the timestamps.
        """
        if self.shutdown_state.initiated is not None:
            return

        now = datetime.now(timezone.utc)
        self.shutdown_state.initiated = now
        self.shutdown_state.timeout_deadline = now + timedelta(
            seconds=self.shutdown_timeout
        )

    def remaining_shutdown_time(self) -> float:
        """Seconds left before the shutdown deadline, never negative.

        Before shutdown begins this is the full shutdown_timeout.
        """
        deadline = self.shutdown_state.timeout_deadline
        if deadline is None:
            return self.shutdown_timeout
        left = (deadline - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, left)

    def _idle_event(self) -> asyncio.Event:
        if self._idle is None:
            self._idle = asyncio.Event()
            if self.shutdown_state.tasks_remaining == 0:
                self._idle.set()
        return self._idle

    @contextmanager
    def track_request(self) -> Iterator[None]:
        """Count the enclosed block as in-flight work."""
        idle = self._idle_event()
        self.shutdown_state.tasks_remaining += 1
        idle.clear()
        try:
            yield
        finally:
            self.shutdown_state.tasks_remaining -= 1
            if self.shutdown_state.tasks_remaining == 0:
                idle.set()

    async def wait_for_drain(self, timeout: float | None = None) -> bool:
        """Wait until no tracked request is in flight.

        Args:
            timeout: Seconds to wait. Defaults to the time left before
                the shutdown deadline, counted from initiate_shutdown().

        Returns:
            True if drained, False if the timeout expired first.
        """
        if timeout is None:
            timeout = self.remaining_shutdown_time()
        if not self.in_flight:
            return True
        logger.info("Waiting for %d in-flight request(s) to finish", self.in_flight)
        try:
            await asyncio.wait_for(self._idle_event().wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Shutdown timeout after %.1fs with %d request(s) still running",
                timeout,
                self.in_flight,
            )
            return False
        return True
