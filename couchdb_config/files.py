"""
Document file provider.

Alternate mode that exposes each document as a named file whose content is
fetched on demand from ``<base>/<id>``. ``watch(path)`` returns a one-shot
token that fires the first time the document appears in an accepted change
event.
"""

from __future__ import annotations

from typing import Any

from .client import CouchDbClient
from .config import CouchDbConfig
from .feed import ChangeFeedReader, FeedWatcher, SequenceTracker
from .logging_utils import ProviderLoggerAdapter, get_config_logger
from .snapshot import ReloadToken
from .types import ChangeEvent


def document_id_from_path(path: str) -> str:
    """Map a file path (``/app`` or ``app``) to a document ID."""
    return path.lstrip("/")


class DocumentFileInfo:
    """File-like view of a single document.

    Attributes:
        name: Document ID
        exists: Whether the document existed when the info was created
        length: Body length in bytes, if the server reported it
        is_directory: Always False
    """

    is_directory = False

    def __init__(
        self,
        client: CouchDbClient,
        name: str,
        exists: bool,
        length: int | None = None,
    ) -> None:
        self._client = client
        self.name = name
        self.exists = exists
        self.length = length

    def __repr__(self) -> str:
        return f"DocumentFileInfo(name={self.name!r}, exists={self.exists}, length={self.length})"

    async def read(self) -> bytes:
        """Fetch the current document body.

        Raises:
            FileNotFoundError: If the document did not exist
            DocumentFetchError: If the fetch fails
        """
        if not self.exists:
            raise FileNotFoundError(self.name)
        return await self._client.fetch_document(self.name)


class DocumentWatcher(FeedWatcher):
    """Fires per-document tokens registered on a file provider."""

    def __init__(
        self,
        reader: ChangeFeedReader,
        provider: CouchDbFileProvider,
        tracker: SequenceTracker | None = None,
    ) -> None:
        super().__init__(reader, tracker)
        self.provider = provider

    def handle_event(self, event: ChangeEvent) -> None:
        self.provider._notify(event.document_id)


class CouchDbFileProvider:
    """Exposes documents as files and watches them for changes.

    Example:
        >>> async with CouchDbFileProvider(CouchDbConfig(database="settings")) as files:
        ...     info = await files.get_file_info("/app")
        ...     body = await info.read()
        ...     files.watch("/app").register_change_callback(on_change)
    """

    def __init__(
        self,
        config: CouchDbConfig,
        client: CouchDbClient | None = None,
    ) -> None:
        self.config = config
        self._client = client or CouchDbClient(config)
        self._owns_client = client is None
        self._tokens: dict[str, ReloadToken] = {}
        self._watcher: DocumentWatcher | None = None
        self._log = ProviderLoggerAdapter(
            get_config_logger("files"), {"database": config.database}
        )

    async def __aenter__(self) -> CouchDbFileProvider:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start watching the change feed."""
        if self._watcher is not None:
            return
        reader = ChangeFeedReader(self._client, self.config.retry_delay)
        self._watcher = DocumentWatcher(reader, self)
        await self._watcher.start()

    async def stop(self) -> None:
        """Stop watching and release the client."""
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None
        if self._owns_client:
            await self._client.close()

    async def get_file_info(self, subpath: str) -> DocumentFileInfo:
        """Describe the document at ``subpath``.

        Raises:
            DocumentFetchError: If the existence check fails
        """
        document_id = document_id_from_path(subpath)
        if not document_id:
            return DocumentFileInfo(self._client, document_id, exists=False)
        exists, length = await self._client.head_document(document_id)
        return DocumentFileInfo(self._client, document_id, exists=exists, length=length)

    async def read_document(self, subpath: str) -> bytes:
        """Fetch the body of the document at ``subpath``.

        Raises:
            DocumentFetchError: If the document is missing or the fetch fails
        """
        return await self._client.fetch_document(document_id_from_path(subpath))

    def watch(self, path: str) -> ReloadToken:
        """Token that fires once when the document at ``path`` changes.

        Calls for the same path share a token until it fires.
        """
        document_id = document_id_from_path(path)
        token = self._tokens.get(document_id)
        if token is None:
            token = ReloadToken()
            self._tokens[document_id] = token
        return token

    def _notify(self, document_id: str) -> None:
        token = self._tokens.pop(document_id, None)
        if token is None:
            return
        self._log.info(f"Document '{document_id}' changed", extra={"document_id": document_id})
        token.on_reload()
