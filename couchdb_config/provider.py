"""
CouchDB configuration provider.

Exposes a database as a flat, read-only configuration source:

    >>> provider = CouchDbConfigurationProvider(CouchDbConfig(database="settings"))
    >>> async with provider:
    ...     found, value = provider.try_get("settings:app:db:host")
    ...     provider.get_reload_token().register_change_callback(on_change)

``start()`` performs the initial load and, when ``reload_on_change`` is set,
starts a change feed watcher. The watcher's debouncer posts reload requests
onto a queue that the provider's own task drains; every request triggers a
full reload and an atomic snapshot swap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from .client import CouchDbClient
from .config import CouchDbConfig
from .exceptions import CouchConfigError, ReadOnlySourceError
from .feed import ChangeFeedReader, ReloadWatcher
from .flatten import flatten_documents
from .logging_utils import ProviderLoggerAdapter, get_config_logger
from .snapshot import ReloadToken, Snapshot, SnapshotStore
from .types import ReloadRequest


class CouchDbConfigurationProvider:
    """Read-only configuration source backed by a CouchDB database."""

    def __init__(
        self,
        config: CouchDbConfig,
        client: CouchDbClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: Connection and flattening settings
            client: Optional client; one is created (and later closed) if omitted
        """
        self.config = config
        self._client = client or CouchDbClient(config)
        self._owns_client = client is None
        self._store = SnapshotStore(config.key_delimiter)
        self._reload_queue: asyncio.Queue[ReloadRequest] = asyncio.Queue()
        self._watcher: ReloadWatcher | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self._started = False
        self._log = ProviderLoggerAdapter(
            get_config_logger("provider"), {"database": config.database}
        )

    async def __aenter__(self) -> CouchDbConfigurationProvider:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def snapshot(self) -> Snapshot:
        """The current snapshot."""
        return self._store.current

    @property
    def watcher(self) -> ReloadWatcher | None:
        return self._watcher

    async def start(self) -> None:
        """Load the database and start watching for changes.

        Raises:
            DocumentFetchError: If the initial load fails; nothing is started
                and an owned client is closed
        """
        if self._started:
            return

        try:
            await self.load()
        except Exception:
            if self._owns_client:
                await self._client.close()
            raise
        self._started = True

        if self.config.reload_on_change:
            reader = ChangeFeedReader(self._client, self.config.retry_delay)
            self._watcher = ReloadWatcher(reader, self._reload_queue, self.config.debounce_delay)
            await self._watcher.start()
            self._drain_task = asyncio.create_task(
                self._drain_reloads(), name="couchdb-config-reload"
            )

    async def stop(self) -> None:
        """Stop watching, cancel pending reloads and release the client."""
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

        if self._drain_task is not None:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
            self._drain_task = None

        if self._owns_client:
            await self._client.close()
        self._started = False

    async def load(self) -> Snapshot:
        """Fetch every document, flatten them and publish a new snapshot.

        Errors propagate to the caller; the previous snapshot stays current.

        Raises:
            DocumentFetchError: If the bulk fetch fails
        """
        documents = await self._client.fetch_all_documents()
        data = flatten_documents(
            documents,
            self.config.database,
            delimiter=self.config.key_delimiter,
            reserved_prefix=self.config.reserved_prefix,
            array_policy=self.config.array_policy,
        )
        snapshot = self._store.swap(data)
        self._log.info(
            f"Loaded {len(snapshot)} keys from {len(documents)} documents "
            f"(snapshot v{snapshot.version})",
            extra={"snapshot_version": snapshot.version},
        )
        return snapshot

    async def _drain_reloads(self) -> None:
        while True:
            request = await self._reload_queue.get()
            # Requests that queued up during a slow reload collapse into one
            while not self._reload_queue.empty():
                request = self._reload_queue.get_nowait()

            self._log.info(
                f"Reloading after change to '{request.document_id}' (seq {request.sequence})",
                extra={"document_id": request.document_id, "sequence": request.sequence},
            )
            try:
                await self.load()
            except CouchConfigError as e:
                self._log.warning(
                    f"Reload failed, keeping snapshot v{self.snapshot.version}: {e}"
                )

    def try_get(self, key: str) -> tuple[bool, str | None]:
        """Look up a configuration value.

        Returns:
            ``(found, value)``; absent keys and non-scalar values report
            ``(False, None)``
        """
        return self._store.current.try_get(key)

    def get_child_keys(
        self,
        parent_path: str | None,
        earlier_keys: Iterable[str] = (),
    ) -> list[str]:
        """Immediate child segments under ``parent_path`` merged with ``earlier_keys``."""
        return self._store.current.get_child_keys(parent_path, earlier_keys)

    def set(self, key: str, value: str | None) -> None:
        """Always fails: the source is read-only.

        Raises:
            ReadOnlySourceError: Always
        """
        raise ReadOnlySourceError(key)

    def get_reload_token(self) -> ReloadToken:
        """Token that fires when the next snapshot replaces the current one."""
        return self._store.reload_token


def add_couchdb(
    sources: list[Any],
    host: str,
    port: int,
    database: str,
    reload: bool = True,
    **options: Any,
) -> CouchDbConfigurationProvider:
    """Create a provider and append it to a host's list of sources.

    Args:
        sources: The host's ordered source list
        host: CouchDB host
        port: CouchDB port
        database: Database to expose
        reload: Watch the change feed
        **options: Any other ``CouchDbConfig`` setting

    Returns:
        The appended provider (not yet started)
    """
    config = CouchDbConfig(
        database=database, host=host, port=port, reload_on_change=reload, **options
    )
    provider = CouchDbConfigurationProvider(config)
    sources.append(provider)
    return provider
