"""
Result Convergence.

Waits for the result of an asynchronously completing workflow. Two paths race
to resolve a single gate:

- Poll path: re-query the result collection every ``poll_interval_ms`` until a
  record appears or the timeout elapses.
- Live path: a change-feed subscription (when the store has one) resolves as
  soon as a matching record is written.

Whichever path resolves first wins; the other is torn down. The timeout is
only checked on poll ticks, so a timed-out call resolves after the timeout and
before timeout + one poll interval.

    PENDING --(record found)--> RESOLVED
    PENDING --(elapsed > timeout)--> TIMED_OUT
    PENDING --(caller cancelled)--> CANCELLED
"""

import asyncio
from typing import Any, Dict, Optional

from outreach_core import constants
from outreach_core.constants import LOGGER_CONVERGENCE
from outreach_core.exceptions import StoreError
from outreach_core.store import ChangeCallback, IRecordStore, Record, Unsubscribe
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .enum import ConvergenceState, ResolutionSource
from .spec import WorkflowOutcome


class ResolutionGate:
    """
    Exactly-once completion point shared by the racing paths.

    The first resolve() wins; later calls are ignored and return False.
    Must be created inside a running event loop.
    """

    def __init__(self, task_id: str):
        self.task_id = task_id
        self.state = ConvergenceState.PENDING
        self.source: Optional[ResolutionSource] = None
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, outcome: WorkflowOutcome, state: ConvergenceState, source: ResolutionSource) -> bool:
        if self._future.done():
            return False
        self.state = state
        self.source = source
        self._future.set_result(outcome)
        return True

    def cancel(self) -> None:
        if not self._future.done():
            self._future.cancel()
        if self.state is ConvergenceState.PENDING:
            self.state = ConvergenceState.CANCELLED

    async def wait(self) -> WorkflowOutcome:
        return await self._future


class ResultConvergence:
    """
    Waits for workflow results in the durable store.

    Attributes:
        store: Record store holding workflow results
        poll_interval_ms: Delay between result lookups
        default_timeout_ms: Timeout used when await_result() gets none
        last_gate: Gate of the most recent await_result() call
    """

    def __init__(
        self,
        store: IRecordStore,
        poll_interval_ms: float = constants.DEFAULT_POLL_INTERVAL_MS,
        default_timeout_ms: float = constants.DEFAULT_RESULT_TIMEOUT_MS,
        collection: str = constants.RESULTS_COLLECTION,
        task_column: str = constants.RESULTS_TASK_COLUMN,
        scope_column: str = constants.RESULTS_SCOPE_COLUMN,
    ):
        if poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        self.store = store
        self.poll_interval_ms = poll_interval_ms
        self.default_timeout_ms = default_timeout_ms
        self.collection = collection
        self.task_column = task_column
        self.scope_column = scope_column
        self.last_gate: Optional[ResolutionGate] = None
        self.logger = LoggerAdaptor.get_logger(LOGGER_CONVERGENCE)

    async def _lookup(self, task_id: str) -> Optional[Record]:
        try:
            return await self.store.find_one(self.collection, self.task_column, task_id)
        except StoreError as e:
            self.logger.warning("Result lookup failed", task_id=task_id, error=e.message)
            return None
        except Exception as e:
            self.logger.error("Result lookup failed", task_id=task_id, error=f"{type(e).__name__}: {e}")
            return None

    def _found(self, task_id: str, record: Record) -> WorkflowOutcome:
        return WorkflowOutcome(success=True, data=record, task_id=task_id)

    async def await_result(
        self,
        task_id: str,
        timeout_ms: Optional[float] = None,
        scope_id: Optional[str] = None,
    ) -> WorkflowOutcome:
        """
        Wait until the result for ``task_id`` is available or the timeout elapses.

        Args:
            task_id: Task id returned by the dispatcher
            timeout_ms: Maximum wait in milliseconds
            scope_id: Caller scope (user id) used to filter the live subscription

        Returns:
            Success outcome carrying the result record, or a failure outcome
            with ``error="Timeout waiting for result"``
        """
        timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        loop = asyncio.get_running_loop()
        started = loop.time()

        record = await self._lookup(task_id)
        if record is not None:
            self.logger.info("Result already available", task_id=task_id)
            return self._found(task_id, record)

        gate = ResolutionGate(task_id)
        self.last_gate = gate
        self.logger.info("Waiting for result", task_id=task_id, timeout_ms=timeout_ms)

        poll_task = loop.create_task(self._poll(gate, started, timeout_ms / 1000))
        unsubscribe = self._subscribe(gate, scope_id)
        try:
            outcome = await gate.wait()
        except asyncio.CancelledError:
            gate.cancel()
            self.logger.info("Stopped waiting for result", task_id=task_id)
            raise
        finally:
            poll_task.cancel()
            if unsubscribe is not None:
                unsubscribe()

        self.logger.info(
            "Result wait finished",
            task_id=task_id,
            state=gate.state.value,
            source=gate.source.value if gate.source else None,
            elapsed_ms=round((loop.time() - started) * 1000),
        )
        return outcome

    async def _poll(self, gate: ResolutionGate, started: float, timeout_s: float) -> None:
        loop = asyncio.get_running_loop()
        interval_s = self.poll_interval_ms / 1000
        while not gate.done:
            await asyncio.sleep(interval_s)
            if gate.done:
                return
            if loop.time() - started > timeout_s:
                gate.resolve(
                    WorkflowOutcome.failure(constants.TIMEOUT_ERROR_MESSAGE, task_id=gate.task_id),
                    ConvergenceState.TIMED_OUT,
                    ResolutionSource.TIMEOUT,
                )
                return
            record = await self._lookup(gate.task_id)
            if record is not None:
                gate.resolve(self._found(gate.task_id, record), ConvergenceState.RESOLVED, ResolutionSource.POLL)

    def _subscribe(self, gate: ResolutionGate, scope_id: Optional[str]) -> Optional[Unsubscribe]:
        if not self.store.supports_change_feed:
            return None
        if scope_id is not None:
            filters: Dict[str, Any] = {self.scope_column: scope_id}
        else:
            filters = {self.task_column: gate.task_id}

        def on_change(record: Record) -> None:
            if record.get(self.task_column) != gate.task_id:
                return
            gate.resolve(self._found(gate.task_id, record), ConvergenceState.RESOLVED, ResolutionSource.SUBSCRIPTION)

        try:
            return self.store.subscribe(self.collection, on_change, filters)
        except StoreError as e:
            self.logger.warning("Live result subscription unavailable", task_id=gate.task_id, error=e.message)
            return None

    def subscribe_to_results(self, scope_id: str, callback: ChangeCallback) -> Unsubscribe:
        """
        Standing subscription to every result written in ``scope_id``.

        Raises:
            StoreError: If the store has no change feed
        """
        return self.store.subscribe(self.collection, callback, {self.scope_column: scope_id})
