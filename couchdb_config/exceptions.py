"""
Custom exceptions for the CouchDB configuration provider.

Transport and feed errors are recovered inside the change-feed reader;
fetch errors propagate to whoever triggered a load; write attempts
always fail loudly.
"""


class CouchConfigError(Exception):
    """Base exception for all configuration provider errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FeedConnectionError(CouchConfigError):
    """Raised when the change feed connection is refused or answers non-200."""

    def __init__(self, endpoint: str, cause: Exception | None = None, status: int | None = None):
        details: dict = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        if status is not None:
            details["status"] = status
        message = f"Connection failed to {endpoint}"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.cause = cause
        self.status = status


class MalformedEventError(CouchConfigError):
    """Raised when a change feed line cannot be parsed into an event."""

    def __init__(self, line: str, reason: str):
        super().__init__(
            f"Malformed change event: {reason}",
            {"line": line[:200], "reason": reason},
        )
        self.line = line
        self.reason = reason


class DocumentFetchError(CouchConfigError):
    """Raised when fetching documents from the database fails."""

    def __init__(self, url: str, status: int | None = None, cause: Exception | None = None):
        details: dict = {"url": url}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        message = f"Failed to fetch {url}"
        if status is not None:
            message += f": HTTP {status}"
        elif cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.url = url
        self.status = status
        self.cause = cause


class ReadOnlySourceError(CouchConfigError):
    """Raised on any attempt to write to the configuration source."""

    def __init__(self, key: str):
        super().__init__(
            f"CouchDB configuration source is read-only: cannot set '{key}'",
            {"key": key},
        )
        self.key = key


class ConfigurationError(CouchConfigError):
    """Raised when provider settings are invalid."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Invalid setting {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
