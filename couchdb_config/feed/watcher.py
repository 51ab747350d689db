"""
Background change feed watchers.

A watcher owns one reader task: Reader -> SequenceTracker -> handler.
``ReloadWatcher`` hands accepted events to a ``Debouncer``; the document
file provider subclasses ``FeedWatcher`` to fire per-document tokens.
Watchers are explicit handles owned by whoever started them.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from ..types import ChangeEvent, ReloadRequest
from .debounce import Debouncer, SequenceTracker
from .reader import ChangeFeedReader, ConnectionState

logger = logging.getLogger(__name__)


class FeedWatcher(ABC):
    """Runs a change feed reader in a background task."""

    def __init__(
        self,
        reader: ChangeFeedReader,
        tracker: SequenceTracker | None = None,
    ) -> None:
        self.reader = reader
        self.tracker = tracker or SequenceTracker()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def connection_state(self) -> ConnectionState:
        return self.reader.state

    async def start(self) -> None:
        """Start the background task. Does nothing if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"{type(self).__name__}-feed")
        logger.info(f"{type(self).__name__} started: {self.reader.client.config.changes_url}")

    async def stop(self) -> None:
        """Cancel the reader task and wait for it to finish."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._on_stopped()
        logger.info(f"{type(self).__name__} stopped")

    async def _run(self) -> None:
        async for event in self.reader.events():
            if not self.tracker.accept(event):
                logger.debug(
                    f"Ignoring seq={event.sequence} (last accepted {self.tracker.last_sequence})"
                )
                continue
            self.handle_event(event)

    @abstractmethod
    def handle_event(self, event: ChangeEvent) -> None:
        """Handle an event that passed the sequence filter."""

    def _on_stopped(self) -> None:
        pass


class ReloadWatcher(FeedWatcher):
    """Debounces accepted events into reload requests on ``queue``."""

    def __init__(
        self,
        reader: ChangeFeedReader,
        queue: asyncio.Queue[ReloadRequest],
        debounce_delay: float,
        tracker: SequenceTracker | None = None,
    ) -> None:
        super().__init__(reader, tracker)
        self.debouncer = Debouncer(queue, debounce_delay)

    def handle_event(self, event: ChangeEvent) -> None:
        self.debouncer.arm(event)

    def _on_stopped(self) -> None:
        self.debouncer.cancel()
