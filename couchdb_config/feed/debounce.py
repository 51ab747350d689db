"""
Sequence filtering and trailing-edge debounce.

A burst of accepted change events collapses into a single ``ReloadRequest``
posted onto a queue once the feed has been quiet for the debounce delay.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..config import DEFAULT_DEBOUNCE_DELAY
from ..types import ChangeEvent, ReloadRequest

logger = logging.getLogger(__name__)


class SequenceTracker:
    """Accepts only events with a strictly increasing sequence number.

    The tracker outlives individual feed connections, so events the server
    redelivers after a reconnect are ignored.
    """

    def __init__(self) -> None:
        self.last_sequence: int | None = None

    def accept(self, event: ChangeEvent) -> bool:
        """Return True and record the sequence if ``event`` is newer."""
        if self.last_sequence is not None and event.sequence <= self.last_sequence:
            return False
        self.last_sequence = event.sequence
        return True


class DebounceState(Enum):
    """Debouncer state."""

    IDLE = "idle"
    EVENTS_PENDING = "events_pending"
    RELOAD_FIRED = "reload_fired"


class Debouncer:
    """Trailing-edge debounce that posts reload requests onto a queue.

    Each ``arm`` replaces the pending timer. The timer callback only enqueues
    a message; it never calls back into the provider.
    """

    def __init__(
        self,
        queue: asyncio.Queue[ReloadRequest],
        delay: float = DEFAULT_DEBOUNCE_DELAY,
    ) -> None:
        self.queue = queue
        self.delay = delay
        self.state = DebounceState.IDLE
        self.fired_count = 0
        self._pending: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def arm(self, event: ChangeEvent) -> None:
        """Start (or restart) the quiet-period timer for ``event``."""
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self.delay, self._fire, event)
        previous, self._pending = self._pending, handle
        if previous is not None:
            previous.cancel()
        self.state = DebounceState.EVENTS_PENDING

    def cancel(self) -> None:
        """Drop the pending timer, if any."""
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        self.state = DebounceState.IDLE

    def _fire(self, event: ChangeEvent) -> None:
        self._pending = None
        self.state = DebounceState.RELOAD_FIRED
        self.fired_count += 1
        self.queue.put_nowait(
            ReloadRequest(document_id=event.document_id, sequence=event.sequence)
        )
        logger.debug(
            f"Reload requested after seq={event.sequence} id={event.document_id}",
            extra={"document_id": event.document_id, "sequence": event.sequence},
        )
        self.state = DebounceState.IDLE
