"""
In-Memory Record Store

Process-local implementation of IRecordStore with a synchronous change feed.
Used for local development and as the test double for the durable store.
"""

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from outreach_core.constants import LOGGER_STORE
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .interface import ChangeCallback, IRecordStore, Record, Unsubscribe, matches_filters


class InMemoryRecordStore(IRecordStore):
    """
    Dictionary-backed record store.

    Records get an ``id`` (uuid4) and ``created_at`` if they do not carry one.
    Subscribers are notified synchronously, in subscription order, on insert
    and update. A failing subscriber is logged and does not affect the write
    or other subscribers.

    Attributes:
        lookups: Number of find_one() calls served (useful in tests)
    """

    def __init__(self):
        self._collections: Dict[str, List[Record]] = {}
        self._subscribers: Dict[int, Tuple[str, Optional[Dict[str, Any]], ChangeCallback]] = {}
        self._ids = itertools.count(1)
        self.lookups = 0
        self.logger = LoggerAdaptor.get_logger(f"{LOGGER_STORE}.memory")

    @property
    def supports_change_feed(self) -> bool:
        return True

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscribers)

    def records(self, collection: str) -> List[Record]:
        """Copies of every record in a collection."""
        return [copy.deepcopy(r) for r in self._collections.get(collection, [])]

    async def find_one(self, collection: str, column: str, value: Any) -> Optional[Record]:
        self.lookups += 1
        for record in reversed(self._collections.get(collection, [])):
            if record.get(column) == value:
                return copy.deepcopy(record)
        return None

    async def insert(self, collection: str, record: Record) -> Record:
        stored = copy.deepcopy(record)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self._collections.setdefault(collection, []).append(stored)
        self._notify(collection, stored)
        return copy.deepcopy(stored)

    async def update(self, collection: str, match: Dict[str, Any], changes: Dict[str, Any]) -> List[Record]:
        updated = []
        for record in self._collections.get(collection, []):
            if matches_filters(record, match):
                record.update(copy.deepcopy(changes))
                updated.append(copy.deepcopy(record))
                self._notify(collection, record)
        return updated

    async def delete(self, collection: str, match: Dict[str, Any]) -> int:
        existing = self._collections.get(collection, [])
        kept = [r for r in existing if not matches_filters(r, match)]
        self._collections[collection] = kept
        return len(existing) - len(kept)

    def subscribe(
        self,
        collection: str,
        callback: ChangeCallback,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Unsubscribe:
        token = next(self._ids)
        self._subscribers[token] = (collection, dict(filters) if filters else None, callback)

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def _notify(self, collection: str, record: Record) -> None:
        # Snapshot: callbacks may unsubscribe while we iterate
        for token, (sub_collection, filters, callback) in list(self._subscribers.items()):
            if token not in self._subscribers:
                continue
            if sub_collection != collection or not matches_filters(record, filters):
                continue
            try:
                callback(copy.deepcopy(record))
            except Exception as e:
                self.logger.error(
                    "Change feed subscriber failed",
                    collection=collection,
                    error=str(e),
                )
