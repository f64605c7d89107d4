"""
Realtime Change Feed.

Change-feed client for Supabase Realtime (Phoenix channel protocol over
websockets). Each subscription owns one websocket connection running in a
background task:

    -> {"topic": "realtime:<channel>", "event": "phx_join", "payload": {...}, "ref": "1"}
    <- {"event": "postgres_changes", "payload": {"data": {"type": "INSERT", "record": {...}}}}
    -> {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": "n"}   (periodic)
    -> {"topic": "realtime:<channel>", "event": "phx_leave", ...}             (on unsubscribe)

Only INSERT and UPDATE events reach the callback. The server-side filter
supports a single ``column=eq.value`` clause; additional filters are
applied client-side.
"""

import asyncio
import itertools
import json
from typing import Any, Dict, Optional

import websockets
from websockets.exceptions import WebSocketException
from websockets.protocol import State

from outreach_core.constants import LOGGER_STORE
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .interface import ChangeCallback, Unsubscribe, matches_filters


CHANGE_EVENTS = ("INSERT", "UPDATE")


class RealtimeChangeFeed:
    """
    Supabase Realtime subscription client.

    Usage:
        feed = RealtimeChangeFeed("https://project.supabase.co", api_key)
        unsubscribe = feed.subscribe("workflow_results", on_record, {"user_id": user_id})
        ...
        unsubscribe()

    subscribe() must be called from a running event loop.
    """

    DEFAULT_HEARTBEAT_S = 30.0

    def __init__(
        self,
        base_url: str,
        api_key: str,
        schema: str = "public",
        heartbeat_s: float = DEFAULT_HEARTBEAT_S,
        url: Optional[str] = None,
    ):
        """
        Args:
            base_url: Project URL (http/https); converted to the websocket endpoint
            api_key: Project API key
            schema: Database schema to listen on
            heartbeat_s: Heartbeat interval in seconds
            url: Full websocket URL, overriding the one derived from base_url
        """
        self.api_key = api_key
        self.schema = schema
        self.heartbeat_s = heartbeat_s
        self.url = url or self._build_ws_url(base_url, api_key)
        self._refs = itertools.count(1)
        self._tasks: Dict[int, asyncio.Task] = {}
        self.logger = LoggerAdaptor.get_logger(f"{LOGGER_STORE}.realtime")

    @staticmethod
    def _build_ws_url(base_url: str, api_key: str) -> str:
        ws_base = base_url.rstrip("/").replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return f"{ws_base}/realtime/v1/websocket?apikey={api_key}&vsn=1.0.0"

    @property
    def active_subscriptions(self) -> int:
        """Number of subscriptions whose task is still running."""
        return sum(1 for task in self._tasks.values() if not task.done())

    def _join_message(self, topic: str, collection: str, filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        change = {"event": "*", "schema": self.schema, "table": collection}
        if filters:
            column, value = next(iter(filters.items()))
            change["filter"] = f"{column}=eq.{value}"
        return {
            "topic": topic,
            "event": "phx_join",
            "payload": {
                "config": {"postgres_changes": [change]},
                "access_token": self.api_key,
            },
            "ref": str(next(self._refs)),
        }

    def subscribe(
        self,
        collection: str,
        callback: ChangeCallback,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Unsubscribe:
        """
        Start a subscription in a background task.

        Returns:
            Idempotent handle that cancels the subscription
        """
        token = next(self._refs)
        topic = f"realtime:{collection}_changes_{token}"
        task = asyncio.get_running_loop().create_task(
            self._run(topic, collection, callback, filters)
        )
        task.add_done_callback(self._collect_task)
        self._tasks[token] = task

        def unsubscribe() -> None:
            running = self._tasks.pop(token, None)
            if running and not running.done():
                running.cancel()

        return unsubscribe

    async def _run(
        self,
        topic: str,
        collection: str,
        callback: ChangeCallback,
        filters: Optional[Dict[str, Any]],
    ) -> None:
        try:
            async with websockets.connect(self.url) as ws:
                await ws.send(json.dumps(self._join_message(topic, collection, filters)))
                heartbeat = asyncio.create_task(self._heartbeat(ws))
                heartbeat.add_done_callback(self._collect_task)
                try:
                    async for raw in ws:
                        self._handle_message(raw, callback, filters)
                finally:
                    heartbeat.cancel()
                    await asyncio.gather(heartbeat, return_exceptions=True)
                    if ws.state is State.OPEN:
                        leave = {"topic": topic, "event": "phx_leave", "payload": {}, "ref": str(next(self._refs))}
                        await ws.send(json.dumps(leave))
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            self.logger.error("Change feed connection failed", collection=collection, error=str(e))

    def _collect_task(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Change feed task failed", error=f"{type(error).__name__}: {error}")

    async def _heartbeat(self, ws) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_s)
            message = {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": str(next(self._refs))}
            await ws.send(json.dumps(message))

    def _handle_message(self, raw: Any, callback: ChangeCallback, filters: Optional[Dict[str, Any]]) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            self.logger.warning("Ignoring undecodable change feed message")
            return

        if not isinstance(message, dict) or message.get("event") != "postgres_changes":
            return
        data = (message.get("payload") or {}).get("data") or {}
        if data.get("type") not in CHANGE_EVENTS:
            return
        record = data.get("record") or {}
        if not matches_filters(record, filters):
            return
        try:
            callback(record)
        except Exception as e:
            self.logger.error("Change feed subscriber failed", error=str(e))
