"""
CouchDB HTTP client wrapper.

Thin layer over an ``aiohttp.ClientSession`` providing:
- Bulk document fetch (``_all_docs?include_docs=true``)
- Single document fetch and existence checks
- Streaming change feed connections with an unbounded read timeout
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from .config import CouchDbConfig
from .exceptions import DocumentFetchError, FeedConnectionError
from .types import Document

logger = logging.getLogger(__name__)


class CouchDbClient:
    """Async client for the handful of CouchDB endpoints the provider reads.

    Example:
        >>> async with CouchDbClient(CouchDbConfig(database="settings")) as client:
        ...     documents = await client.fetch_all_documents()
    """

    def __init__(
        self,
        config: CouchDbConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings
            session: Optional externally managed session. When omitted the
                client creates one lazily and closes it in ``close()``.
        """
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> CouchDbClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            auth = None
            if self.config.username is not None and self.config.password is not None:
                auth = aiohttp.BasicAuth(self.config.username, self.config.password)
            self._session = aiohttp.ClientSession(auth=auth)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _fetch_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.request_timeout)

    async def fetch_all_documents(self) -> list[Document]:
        """Fetch every document in the database.

        Rows without an object body (deleted or error rows) are skipped.

        Raises:
            DocumentFetchError: On transport failure, non-200 status or an
                unexpected payload shape
        """
        url = self.config.all_docs_url
        session = await self._get_session()
        try:
            async with session.get(url, timeout=self._fetch_timeout()) as response:
                if response.status != 200:
                    raise DocumentFetchError(url, status=response.status)
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise DocumentFetchError(url, cause=e) from e

        rows = payload.get("rows") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise DocumentFetchError(url, cause=ValueError("response has no 'rows' array"))

        documents = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            document = Document.from_row(row)
            if document is not None:
                documents.append(document)

        logger.debug(f"Fetched {len(documents)} documents from {self.config.database}")
        return documents

    async def fetch_document(self, document_id: str) -> bytes:
        """Fetch the raw body of a single document.

        Raises:
            DocumentFetchError: On transport failure or non-200 status
        """
        url = self.config.document_url(document_id)
        session = await self._get_session()
        try:
            async with session.get(url, timeout=self._fetch_timeout()) as response:
                if response.status != 200:
                    raise DocumentFetchError(url, status=response.status)
                return await response.read()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise DocumentFetchError(url, cause=e) from e

    async def head_document(self, document_id: str) -> tuple[bool, int | None]:
        """Check whether a document exists.

        Returns:
            ``(exists, content_length)``; length is None when the server
            does not report it

        Raises:
            DocumentFetchError: On transport failure or a status other than
                200 or 404
        """
        url = self.config.document_url(document_id)
        session = await self._get_session()
        try:
            async with session.head(url, timeout=self._fetch_timeout()) as response:
                if response.status == 404:
                    return False, None
                if response.status != 200:
                    raise DocumentFetchError(url, status=response.status)
                return True, response.content_length
        except (aiohttp.ClientError, TimeoutError) as e:
            raise DocumentFetchError(url, cause=e) from e

    @asynccontextmanager
    async def open_changes(self) -> AsyncIterator[aiohttp.ClientResponse]:
        """Open the continuous change feed.

        The read timeout is unbounded; only connection setup is limited by
        ``request_timeout``.

        Raises:
            FeedConnectionError: If the server answers with a non-200 status
            aiohttp.ClientError: On transport failures
        """
        url = self.config.changes_url
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_read=None,
            sock_connect=self.config.request_timeout,
        )
        async with session.get(url, timeout=timeout) as response:
            if response.status != 200:
                raise FeedConnectionError(url, status=response.status)
            yield response
