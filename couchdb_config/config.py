"""
Provider configuration.

Settings can be provided directly, from environment variables, or from the
``couchdb`` section of a YAML settings file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlencode

import yaml

from .exceptions import ConfigurationError
from .flatten import DEFAULT_DELIMITER, DEFAULT_RESERVED_PREFIX, ArrayPolicy

DEFAULT_PORT = 5984
DEFAULT_RETRY_DELAY = 1.0  # seconds
DEFAULT_DEBOUNCE_DELAY = 0.5  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

ENV_PREFIX = "COUCHDB_CONFIG_"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CouchDbConfig:
    """Configuration for a CouchDB-backed configuration source.

    Environment Variables:
        COUCHDB_CONFIG_DATABASE: Database name (required)
        COUCHDB_CONFIG_HOST: Server host (default: localhost)
        COUCHDB_CONFIG_PORT: Server port (default: 5984)
        COUCHDB_CONFIG_SCHEME: http or https (default: http)
        COUCHDB_CONFIG_USERNAME / COUCHDB_CONFIG_PASSWORD: Basic auth credentials
        COUCHDB_CONFIG_RELOAD: Watch the change feed (default: true)
        COUCHDB_CONFIG_RETRY_DELAY: Seconds between feed reconnects (default: 1.0)
        COUCHDB_CONFIG_DEBOUNCE_DELAY: Seconds of quiet before a reload (default: 0.5)
        COUCHDB_CONFIG_ARRAY_POLICY: opaque or indexed (default: opaque)

    Attributes:
        database: Database whose documents become configuration
        host: CouchDB host name
        port: CouchDB port
        scheme: URL scheme
        username: Optional basic auth user
        password: Optional basic auth password
        reload_on_change: Watch the change feed and reload on changes
        retry_delay: Fixed delay before reconnecting the change feed
        debounce_delay: Quiet period that closes a burst of changes
        request_timeout: Total timeout for bulk and document fetches
        key_delimiter: Separator between path segments
        reserved_prefix: Field names with this prefix are never configuration
        array_policy: How array-valued fields are flattened
        heartbeat: Optional feed heartbeat interval in milliseconds
        since: Optional feed start sequence (e.g. "now")
    """

    database: str
    host: str = "localhost"
    port: int = DEFAULT_PORT
    scheme: str = "http"
    username: str | None = None
    password: str | None = None
    reload_on_change: bool = True
    retry_delay: float = DEFAULT_RETRY_DELAY
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    key_delimiter: str = DEFAULT_DELIMITER
    reserved_prefix: str = DEFAULT_RESERVED_PREFIX
    array_policy: ArrayPolicy = ArrayPolicy.OPAQUE
    heartbeat: int | None = None
    since: str | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check settings for values the provider cannot work with.

        Raises:
            ConfigurationError: On the first invalid setting
        """
        if not self.database:
            raise ConfigurationError("database", "must not be empty")
        if self.scheme not in ("http", "https"):
            raise ConfigurationError("scheme", "must be http or https", self.scheme)
        if not 0 < self.port < 65536:
            raise ConfigurationError("port", "must be between 1 and 65535", str(self.port))
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay", "must not be negative", str(self.retry_delay))
        if self.debounce_delay < 0:
            raise ConfigurationError(
                "debounce_delay", "must not be negative", str(self.debounce_delay)
            )
        if not self.key_delimiter:
            raise ConfigurationError("key_delimiter", "must not be empty")
        if (self.username is None) != (self.password is None):
            raise ConfigurationError("password", "username and password must be set together")

    @property
    def base_url(self) -> str:
        """Database URL, e.g. ``http://localhost:5984/settings``."""
        return f"{self.scheme}://{self.host}:{self.port}/{quote(self.database, safe='')}"

    @property
    def changes_url(self) -> str:
        """Continuous change feed URL."""
        params: dict[str, Any] = {"feed": "continuous"}
        if self.heartbeat is not None:
            params["heartbeat"] = self.heartbeat
        if self.since is not None:
            params["since"] = self.since
        return f"{self.base_url}/_changes?{urlencode(params)}"

    @property
    def all_docs_url(self) -> str:
        """Bulk fetch URL including document bodies."""
        return f"{self.base_url}/_all_docs?include_docs=true"

    def document_url(self, document_id: str) -> str:
        """URL of a single document."""
        return f"{self.base_url}/{quote(document_id, safe='')}"

    @classmethod
    def from_environment(cls, database: str | None = None) -> CouchDbConfig:
        """Create configuration from environment variables.

        Args:
            database: Overrides COUCHDB_CONFIG_DATABASE

        Raises:
            ConfigurationError: If the database is missing or a value is invalid
        """
        env = os.environ
        database = database or env.get(f"{ENV_PREFIX}DATABASE", "")
        try:
            port = int(env.get(f"{ENV_PREFIX}PORT", DEFAULT_PORT))
            retry_delay = float(env.get(f"{ENV_PREFIX}RETRY_DELAY", DEFAULT_RETRY_DELAY))
            debounce_delay = float(env.get(f"{ENV_PREFIX}DEBOUNCE_DELAY", DEFAULT_DEBOUNCE_DELAY))
            request_timeout = float(
                env.get(f"{ENV_PREFIX}REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
            )
            heartbeat_str = env.get(f"{ENV_PREFIX}HEARTBEAT")
            heartbeat = int(heartbeat_str) if heartbeat_str else None
        except ValueError as e:
            raise ConfigurationError("environment", f"invalid numeric value: {e}") from e

        return cls(
            database=database,
            host=env.get(f"{ENV_PREFIX}HOST", "localhost"),
            port=port,
            scheme=env.get(f"{ENV_PREFIX}SCHEME", "http"),
            username=env.get(f"{ENV_PREFIX}USERNAME"),
            password=env.get(f"{ENV_PREFIX}PASSWORD"),
            reload_on_change=_env_bool(env.get(f"{ENV_PREFIX}RELOAD"), True),
            retry_delay=retry_delay,
            debounce_delay=debounce_delay,
            request_timeout=request_timeout,
            array_policy=_parse_array_policy(env.get(f"{ENV_PREFIX}ARRAY_POLICY", "opaque")),
            heartbeat=heartbeat,
            since=env.get(f"{ENV_PREFIX}SINCE"),
        )

    @classmethod
    def from_file(cls, path: Path | str) -> CouchDbConfig:
        """Create configuration from the ``couchdb`` section of a YAML file.

        ```yaml
        couchdb:
          host: couch.internal
          port: 5984
          database: settings
          reload_on_change: true
          array_policy: indexed
        ```

        Raises:
            ConfigurationError: If the file or section is missing or invalid
        """
        path = Path(path)
        try:
            content = yaml.safe_load(path.read_text()) or {}
        except OSError as e:
            raise ConfigurationError("path", f"cannot read settings file: {e}", str(path)) from e
        except yaml.YAMLError as e:
            raise ConfigurationError("path", f"invalid YAML: {e}", str(path)) from e

        section = content.get("couchdb") if isinstance(content, dict) else None
        if not isinstance(section, dict):
            raise ConfigurationError("couchdb", "section missing from settings file", str(path))

        return cls.from_dict(section)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CouchDbConfig:
        """Create configuration from a plain mapping of setting names."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(unknown[0], "unknown setting")
        if "database" not in data:
            raise ConfigurationError("database", "must not be empty")

        values = dict(data)
        if "array_policy" in values and not isinstance(values["array_policy"], ArrayPolicy):
            values["array_policy"] = _parse_array_policy(str(values["array_policy"]))
        return cls(**values)


def _parse_array_policy(value: str) -> ArrayPolicy:
    try:
        return ArrayPolicy(value.strip().lower())
    except ValueError as e:
        raise ConfigurationError("array_policy", "must be opaque or indexed", value) from e
