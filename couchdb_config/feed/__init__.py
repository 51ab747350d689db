"""
Change feed module.

Reads CouchDB's continuous change feed, filters events by sequence and
debounces bursts into reload requests.
"""

from .debounce import Debouncer, DebounceState, SequenceTracker
from .reader import ChangeFeedReader, ConnectionState
from .watcher import FeedWatcher, ReloadWatcher

__all__ = [
    "ChangeFeedReader",
    "ConnectionState",
    "Debouncer",
    "DebounceState",
    "FeedWatcher",
    "ReloadWatcher",
    "SequenceTracker",
]
