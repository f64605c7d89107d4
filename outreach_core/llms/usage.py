"""
Usage Tracking.

Records token usage of completed chat requests. Tracking is fire-and-forget:
track() logs synchronously and, when a record store is configured, persists
the row in a background task whose failures are only logged.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Set

from outreach_core.constants import LOGGER_USAGE, USAGE_COLLECTION
from outreach_core.store import IRecordStore
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .spec import ChatUsage


class UsageTracker:
    """
    Token usage sink.

    Attributes:
        store: Optional record store receiving one row per tracked request
        collection: Collection the rows are written to
    """

    def __init__(self, store: Optional[IRecordStore] = None, collection: str = USAGE_COLLECTION):
        self.store = store
        self.collection = collection
        self._pending: Set[asyncio.Task] = set()
        self.logger = LoggerAdaptor.get_logger(LOGGER_USAGE)

    @property
    def pending(self) -> int:
        """Number of persistence tasks still running."""
        return len(self._pending)

    def track(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        task_type: Optional[str] = None,
    ) -> ChatUsage:
        usage = ChatUsage(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            task_type=task_type,
        )
        self.logger.info(
            "Usage tracked",
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        )
        if self.store is not None:
            task = asyncio.get_running_loop().create_task(self._persist(usage))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return usage

    async def _persist(self, usage: ChatUsage) -> None:
        row = usage.model_dump()
        row["created_at"] = datetime.now(timezone.utc).isoformat()
        try:
            await self.store.insert(self.collection, row)
        except Exception as e:
            self.logger.warning("Failed to persist usage", model=usage.model, error=str(e))

    async def drain(self) -> None:
        """Wait for pending persistence tasks (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
