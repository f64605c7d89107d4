"""
Record Store Interface

Defines the abstract interface for the durable record store consumed by the
Outreach core: CRUD on named collections plus an optional live change feed.

The core only reads through this interface on the convergence path; writes
are used by the upload and usage-tracking features.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from outreach_core.exceptions import StoreError


Record = Dict[str, Any]
ChangeCallback = Callable[[Record], None]
Unsubscribe = Callable[[], None]


def matches_filters(record: Record, filters: Optional[Dict[str, Any]]) -> bool:
    """True when every filter column equals the record's value."""
    if not filters:
        return True
    return all(record.get(column) == value for column, value in filters.items())


class IRecordStore(ABC):
    """
    Abstract interface for a durable record store.

    Implementations must provide:
    - Point lookup by column value
    - Insert / update / delete on named collections
    - Optionally, a change feed delivering inserts and updates

    Example Implementation:
        class PostgrestRecordStore(IRecordStore):
            async def find_one(self, collection, column, value):
                # GET /rest/v1/{collection}?{column}=eq.{value}
                ...
    """

    @property
    def supports_change_feed(self) -> bool:
        """Whether subscribe() is available."""
        return False

    @abstractmethod
    async def find_one(self, collection: str, column: str, value: Any) -> Optional[Record]:
        """
        Find a record by column value.

        Args:
            collection: Collection (table) name
            column: Column to match
            value: Value to match

        Returns:
            The matching record, or None
        """
        pass

    @abstractmethod
    async def insert(self, collection: str, record: Record) -> Record:
        """
        Insert a record.

        Returns:
            The stored record (including store-assigned fields such as ``id``)
        """
        pass

    @abstractmethod
    async def update(self, collection: str, match: Dict[str, Any], changes: Dict[str, Any]) -> List[Record]:
        """
        Update every record matching ``match``.

        Returns:
            The updated records
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, match: Dict[str, Any]) -> int:
        """
        Delete every record matching ``match``.

        Returns:
            Number of deleted records
        """
        pass

    def subscribe(
        self,
        collection: str,
        callback: ChangeCallback,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Unsubscribe:
        """
        Subscribe to inserts and updates on a collection.

        The callback receives the new version of each record matching
        ``filters``. The returned handle stops the subscription; calling it
        more than once is a no-op.

        Raises:
            StoreError: If the store has no change feed
        """
        raise StoreError(
            f"{type(self).__name__} does not support change feed subscriptions",
            details={"collection": collection},
        )
