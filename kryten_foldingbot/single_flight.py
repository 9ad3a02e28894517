"""Process-wide single-flight guard for long-running commands.

Only one long-running command may execute at a time, across all users and
all long-running commands. A second caller is turned away with a message
rather than queued.
"""

from __future__ import annotations

import logging
import threading
from typing import Awaitable, Callable

BUSY_MESSAGE = (
    "Wait until the bot has finished responding to another user's long running request."
)


class SingleFlightGuard:
    """One-slot guard around long-running work."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._lock = threading.Lock()
        self._running = False
        self._logger = logger or logging.getLogger("foldingbot.guard")
        self.rejections: int = 0

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running

    def try_acquire(self) -> bool:
        """Take the slot if it is free. Never blocks."""
        with self._lock:
            if self._running:
                self.rejections += 1
                return False
            self._running = True
            return True

    def release(self) -> None:
        with self._lock:
            self._running = False

    async def run(
        self,
        work: Callable[[], Awaitable[str]],
        busy_message: str = BUSY_MESSAGE,
    ) -> str:
        """Run *work* while holding the slot, or return *busy_message*.

        The slot is released however the work finishes, including errors
        and task cancellation.
        """
        if not self.try_acquire():
            self._logger.info("Long-running request rejected: another is in flight")
            return busy_message
        try:
            return await work()
        finally:
            self.release()
