"""
Logging helpers for the configuration provider.

Every module logs under the ``couchdb_config`` namespace. Feed, debounce and
reload records carry their context as record attributes (``database``,
``document_id``, ``sequence``, ``snapshot_version``) so that
``FeedRecordFormatter`` can emit them as JSON fields instead of leaving them
buried in the message text.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

PACKAGE_LOGGER = "couchdb_config"

# Record attributes rendered by FeedRecordFormatter, in output order
CONTEXT_FIELDS = ("database", "document_id", "sequence", "snapshot_version")


class FeedRecordFormatter(logging.Formatter):
    """
    One JSON object per record.

    Output keys: ``time`` (record creation time, UTC ISO 8601), ``level``,
    ``logger``, ``message``, then whichever of ``CONTEXT_FIELDS`` the record
    carries, then ``error`` when exception info is attached. Other extra
    attributes are ignored.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: int = logging.INFO, stream: IO[str] | None = None) -> logging.Logger:
    """
    Send the package's records to ``stream`` (stdout by default) as JSON lines.

    Calling it again replaces the handler it installed earlier; handlers added
    by the host application are left alone.

    Returns:
        The ``couchdb_config`` logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, FeedRecordFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(FeedRecordFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_config_logger(name: str) -> logging.Logger:
    """Logger named ``couchdb_config.<name>``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class ProviderLoggerAdapter(logging.LoggerAdapter):
    """Stamps the provider's database on every record, keeping per-call extras."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
