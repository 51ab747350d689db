"""
Snapshot store.

Holds the current flat configuration mapping. Every reload builds a new
``Snapshot`` off to the side and swaps it in with a single reference
assignment, so readers never lock and never see a half-built mapping.
Each swap fires the previous ``ReloadToken`` exactly once.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from .flatten import DEFAULT_DELIMITER, classify_scalar, render_scalar

logger = logging.getLogger(__name__)


class CallbackRegistration:
    """Handle returned by ``ReloadToken.register_change_callback``."""

    def __init__(self, token: ReloadToken, entry: tuple[Callable[[Any], None], Any]):
        self._token = token
        self._entry = entry

    def dispose(self) -> None:
        """Unregister the callback. Safe to call more than once."""
        self._token._unregister(self._entry)

    def __enter__(self) -> CallbackRegistration:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()


class ReloadToken:
    """One-shot change notification.

    ``on_reload`` runs every registered callback once and marks the token as
    changed. Later calls are no-ops. Callbacks registered after the token has
    fired run immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[tuple[Callable[[Any], None], Any]] = []
        self._changed = False

    @property
    def has_changed(self) -> bool:
        return self._changed

    def register_change_callback(
        self,
        callback: Callable[[Any], None],
        state: Any = None,
    ) -> CallbackRegistration:
        """Register ``callback(state)`` to run when the token fires."""
        entry = (callback, state)
        with self._lock:
            if not self._changed:
                self._callbacks.append(entry)
                return CallbackRegistration(self, entry)
        callback(state)
        return CallbackRegistration(self, entry)

    def _unregister(self, entry: tuple[Callable[[Any], None], Any]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(entry)
            except ValueError:
                pass

    def on_reload(self) -> None:
        """Fire the token. Only the first call has any effect."""
        with self._lock:
            if self._changed:
                return
            self._changed = True
            callbacks, self._callbacks = self._callbacks, []

        for callback, state in callbacks:
            try:
                callback(state)
            except Exception:
                logger.exception("Reload callback raised")


def config_key_sort_key(key: str, delimiter: str = DEFAULT_DELIMITER) -> tuple:
    """Sort key for configuration keys.

    Compares segment by segment; numeric segments sort numerically and
    before text segments, text segments compare case-insensitively.
    """
    parts = []
    for segment in key.split(delimiter):
        if segment.isdecimal():
            parts.append((0, int(segment), ""))
        else:
            parts.append((1, 0, segment.casefold()))
    return tuple(parts)


class Snapshot(Mapping[str, Any]):
    """Immutable flat configuration mapping.

    Attributes:
        version: Position of this snapshot in its store's history
        created_at: When the snapshot was built
    """

    def __init__(
        self,
        data: Mapping[str, Any],
        *,
        delimiter: str = DEFAULT_DELIMITER,
        version: int = 0,
        created_at: datetime | None = None,
    ):
        self._data = MappingProxyType(dict(data))
        self.delimiter = delimiter
        self.version = version
        self.created_at = created_at or datetime.now(UTC)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Snapshot(version={self.version}, keys={len(self._data)})"

    def try_get(self, key: str) -> tuple[bool, str | None]:
        """Look up a key.

        Returns:
            ``(True, rendered value)`` for accepted scalars, otherwise
            ``(False, None)``. Never raises for unknown keys.
        """
        if key not in self._data:
            return False, None
        value = self._data[key]
        if classify_scalar(value) is None:
            return False, None
        return True, render_scalar(value)

    def get_child_keys(
        self,
        parent_path: str | None,
        earlier_keys: Iterable[str] = (),
    ) -> list[str]:
        """List the immediate child segments under ``parent_path``.

        An empty or blank path means the top level. Keys from
        ``earlier_keys`` (contributed by other sources) are merged in.
        """
        if parent_path is None or not parent_path.strip():
            prefix = ""
        else:
            prefix = parent_path + self.delimiter

        children: dict[str, None] = {}
        for key in self._data:
            if not key.startswith(prefix):
                continue
            remainder = key[len(prefix):]
            children[remainder.split(self.delimiter, 1)[0]] = None

        for key in earlier_keys:
            children[key] = None

        return sorted(children, key=lambda k: config_key_sort_key(k, self.delimiter))


class SnapshotStore:
    """Holds the current snapshot and its reload token.

    Single writer, many readers: ``swap`` serializes writers; readers take
    the ``current`` reference without locking.
    """

    def __init__(self, delimiter: str = DEFAULT_DELIMITER):
        self.delimiter = delimiter
        self._write_lock = threading.Lock()
        self._current = Snapshot({}, delimiter=delimiter, version=0)
        self._reload_token = ReloadToken()

    @property
    def current(self) -> Snapshot:
        return self._current

    @property
    def reload_token(self) -> ReloadToken:
        return self._reload_token

    def swap(self, data: Mapping[str, Any]) -> Snapshot:
        """Publish a freshly built mapping and fire the previous token.

        Args:
            data: Complete new mapping. Copied; the caller may discard it.

        Returns:
            The published snapshot
        """
        with self._write_lock:
            snapshot = Snapshot(data, delimiter=self.delimiter, version=self._current.version + 1)
            previous_token = self._reload_token
            self._current = snapshot
            self._reload_token = ReloadToken()

        logger.debug(f"Published snapshot v{snapshot.version} with {len(snapshot)} keys")
        previous_token.on_reload()
        return snapshot
