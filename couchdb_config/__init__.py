"""
CouchDB Configuration

Live, read-only configuration backed by a CouchDB database.

Provides:
- A flat ``database:document:field`` key space built from every document
- Automatic reloads driven by the continuous change feed (debounced)
- Atomic snapshot swaps with one-shot reload tokens
- A file-provider mode exposing each document as a file

Usage:

    >>> from couchdb_config import CouchDbConfig, CouchDbConfigurationProvider
    >>> config = CouchDbConfig(host="localhost", port=5984, database="settings")
    >>> async with CouchDbConfigurationProvider(config) as provider:
    ...     found, value = provider.try_get("settings:app:db:host")
    ...     provider.get_child_keys("settings:app")
    ['db', 'features']

Configuration from the environment or a YAML file:

    config = CouchDbConfig.from_environment()
    config = CouchDbConfig.from_file("settings.yaml")
"""

from .client import CouchDbClient
from .config import CouchDbConfig
from .exceptions import (
    ConfigurationError,
    CouchConfigError,
    DocumentFetchError,
    FeedConnectionError,
    MalformedEventError,
    ReadOnlySourceError,
)
from .files import CouchDbFileProvider, DocumentFileInfo
from .flatten import ArrayPolicy, ScalarKind, flatten_document, flatten_documents
from .logging_utils import configure_logging
from .provider import CouchDbConfigurationProvider, add_couchdb
from .snapshot import ReloadToken, Snapshot, SnapshotStore
from .types import ChangeEvent, Document, ReloadRequest

__all__ = [
    # Providers
    "CouchDbConfigurationProvider",
    "CouchDbFileProvider",
    "DocumentFileInfo",
    "add_couchdb",
    # Configuration
    "CouchDbConfig",
    "ArrayPolicy",
    # Core types
    "ChangeEvent",
    "Document",
    "ReloadRequest",
    "ScalarKind",
    "Snapshot",
    "SnapshotStore",
    "ReloadToken",
    "flatten_document",
    "flatten_documents",
    # Client
    "CouchDbClient",
    # Logging
    "configure_logging",
    # Exceptions
    "CouchConfigError",
    "ConfigurationError",
    "DocumentFetchError",
    "MalformedEventError",
    "ReadOnlySourceError",
    "FeedConnectionError",
]

__version__ = "0.1.0"
