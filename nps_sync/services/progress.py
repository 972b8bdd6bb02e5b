"""
Progress reporting for NPS Sync.

The sync engine reports backfill progress through a ProgressObserver; the
tracker here keeps the state a loading indicator needs.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from nps_sync.core.config import settings
from nps_sync.core.logging import logger


class ProgressObserver(ABC):
    """Receives coarse 0..100 progress of a long-running load."""

    @abstractmethod
    def start(self, message: str = "Loading...") -> None:
        pass

    @abstractmethod
    def update(self, percent: int, message: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def finish(self) -> None:
        pass


class NullProgress(ProgressObserver):
    """Observer that ignores every call."""

    def start(self, message: str = "Loading...") -> None:
        pass

    def update(self, percent: int, message: Optional[str] = None) -> None:
        pass

    def finish(self) -> None:
        pass


class ProgressTracker(ProgressObserver):
    """
    Loading indicator state.

    ``finish`` jumps to 100 and hides the indicator after a short delay so
    the completed bar is visible for a moment.
    """

    def __init__(self, finish_delay: float = settings.LOADING_FINISH_DELAY):
        self.finish_delay = finish_delay
        self.is_loading = False
        self.progress = 0
        self.message = ""
        self._hide_task: Optional[asyncio.Task] = None

    def start(self, message: str = "Loading...") -> None:
        self._cancel_hide()
        self.is_loading = True
        self.progress = 0
        self.message = message
        logger.info(f"Progress started: {message}")

    def update(self, percent: int, message: Optional[str] = None) -> None:
        self.progress = max(0, min(100, int(percent)))
        if message:
            self.message = message
        logger.debug(f"Progress {self.progress}%: {self.message}")

    def finish(self) -> None:
        self.progress = 100
        self._cancel_hide()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._hide()
            return
        self._hide_task = loop.create_task(self._hide_after_delay())

    async def wait_hidden(self) -> None:
        """Wait until a pending hide has happened."""
        if self._hide_task is not None:
            await self._hide_task

    async def _hide_after_delay(self) -> None:
        await asyncio.sleep(self.finish_delay)
        self._hide()

    def _hide(self) -> None:
        self.is_loading = False
        self.progress = 0
        self.message = ""
        logger.info("Progress finished")

    def _cancel_hide(self) -> None:
        if self._hide_task is not None and not self._hide_task.done():
            self._hide_task.cancel()
        self._hide_task = None
