"""
Continuous change feed reader.

Keeps one streaming connection to ``_changes?feed=continuous`` open and
turns its newline-delimited JSON records into ``ChangeEvent``s. Any failure
(connect error, non-200 status, dropped stream, clean close by the server,
malformed line) is logged and followed by a fixed delay and a reconnect.
There is no backoff and no retry budget; the loop ends only when the task
iterating it is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum

import aiohttp

from ..client import CouchDbClient
from ..config import DEFAULT_RETRY_DELAY
from ..exceptions import FeedConnectionError, MalformedEventError
from ..types import ChangeEvent

logger = logging.getLogger(__name__)

# ValueError covers undecodable bytes and over-long lines
FEED_ERRORS = (
    aiohttp.ClientError,
    TimeoutError,
    OSError,
    ValueError,
    FeedConnectionError,
    MalformedEventError,
)


class ConnectionState(Enum):
    """Connection state of a change feed reader."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPED = "stopped"


class ChangeFeedReader:
    """Resilient reader for the continuous change feed.

    ``events()`` is a lazy, unbounded async generator. It cannot be
    restarted once closed; create a new reader instead.
    """

    def __init__(self, client: CouchDbClient, retry_delay: float = DEFAULT_RETRY_DELAY) -> None:
        self.client = client
        self.retry_delay = retry_delay
        self.state = ConnectionState.DISCONNECTED
        self.connection_attempts = 0
        self._started = False

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events forever, reconnecting after failures."""
        if self._started:
            raise RuntimeError("ChangeFeedReader.events() can only be iterated once")
        self._started = True

        try:
            while True:
                try:
                    async for event in self._read_connection():
                        yield event
                    logger.warning(
                        f"Change feed closed by server; reconnecting in {self.retry_delay}s"
                    )
                except FEED_ERRORS as e:
                    logger.warning(
                        f"Change feed error ({type(e).__name__}: {e}); "
                        f"reconnecting in {self.retry_delay}s"
                    )
                self.state = ConnectionState.DISCONNECTED
                await asyncio.sleep(self.retry_delay)
        finally:
            self.state = ConnectionState.STOPPED

    async def _read_connection(self) -> AsyncIterator[ChangeEvent]:
        self.state = ConnectionState.CONNECTING
        self.connection_attempts += 1

        async with self.client.open_changes() as response:
            self.state = ConnectionState.STREAMING
            logger.info(f"Change feed connected: {self.client.config.changes_url}")

            async for raw in response.content:
                line = raw.decode("utf-8").strip()
                if not line:
                    # heartbeat
                    continue

                event = ChangeEvent.from_line(line)
                if event is None:
                    continue

                logger.debug(
                    f"Change event seq={event.sequence} id={event.document_id}",
                    extra={
                        "database": self.client.config.database,
                        "document_id": event.document_id,
                        "sequence": event.sequence,
                    },
                )
                yield event
