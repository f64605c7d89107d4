"""
Record Store Adapters.

The durable store is an external collaborator; this package defines the
contract the core consumes and the adapters that satisfy it.
"""

from .interface import IRecordStore, Record, ChangeCallback, Unsubscribe, matches_filters
from .memory_store import InMemoryRecordStore
from .postgrest_store import PostgrestRecordStore
from .realtime import RealtimeChangeFeed

__all__ = [
    "IRecordStore",
    "Record",
    "ChangeCallback",
    "Unsubscribe",
    "matches_filters",
    "InMemoryRecordStore",
    "PostgrestRecordStore",
    "RealtimeChangeFeed",
]
