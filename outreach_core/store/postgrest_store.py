"""
PostgREST Record Store

IRecordStore over the Supabase/PostgREST REST API using aiohttp.

Endpoints:
    GET    {base}/rest/v1/{collection}?{column}=eq.{value}&limit=1
    POST   {base}/rest/v1/{collection}            (Prefer: return=representation)
    PATCH  {base}/rest/v1/{collection}?{col}=eq.{v}
    DELETE {base}/rest/v1/{collection}?{col}=eq.{v}

The change feed is delegated to a RealtimeChangeFeed when one is supplied.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from outreach_core.constants import (
    BEARER_PREFIX,
    CONTENT_TYPE_JSON,
    HEADER_APIKEY,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    HEADER_PREFER,
    LOGGER_STORE,
)
from outreach_core.exceptions import StoreError
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .interface import ChangeCallback, IRecordStore, Record, Unsubscribe
from .realtime import RealtimeChangeFeed


def _eq_params(match: Dict[str, Any]) -> Dict[str, str]:
    """PostgREST equality filters."""
    return {column: f"eq.{value}" for column, value in match.items()}


class PostgrestRecordStore(IRecordStore):
    """
    REST-backed record store.

    Usage:
        store = PostgrestRecordStore(
            base_url="https://project.supabase.co",
            api_key=settings.supabase_key,
            change_feed=RealtimeChangeFeed("https://project.supabase.co", settings.supabase_key),
        )
        record = await store.find_one("workflow_results", "webhook_id", task_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[aiohttp.ClientSession] = None,
        change_feed: Optional[RealtimeChangeFeed] = None,
        timeout_s: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.change_feed = change_feed
        self.timeout_s = timeout_s
        self._session = session
        self._external_session = session is not None
        self.logger = LoggerAdaptor.get_logger(f"{LOGGER_STORE}.postgrest")

    @property
    def supports_change_feed(self) -> bool:
        return self.change_feed is not None

    def _url(self, collection: str) -> str:
        return f"{self.base_url}/rest/v1/{collection}"

    def _headers(self, prefer_representation: bool = False) -> Dict[str, str]:
        headers = {
            HEADER_APIKEY: self.api_key,
            HEADER_AUTHORIZATION: f"{BEARER_PREFIX}{self.api_key}",
            HEADER_CONTENT_TYPE: CONTENT_TYPE_JSON,
        }
        if prefer_representation:
            headers[HEADER_PREFER] = "return=representation"
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
            self._external_session = False
        return self._session

    async def close(self) -> None:
        """Close the session if it was created by this store."""
        if self._session and not self._session.closed and not self._external_session:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        collection: str,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
        prefer_representation: bool = False,
    ) -> Any:
        session = await self._get_session()
        url = self._url(collection)
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=body,
                headers=self._headers(prefer_representation),
            ) as response:
                text = await response.text()
                if response.status >= 400:
                    raise StoreError(
                        f"{method} {collection} failed: {response.status} {text[:200]}",
                        details={"status_code": response.status, "collection": collection},
                    )
                return await response.json(content_type=None) if text else None
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreError(
                f"{method} {collection} failed: {e}",
                details={"collection": collection},
            ) from e

    async def find_one(self, collection: str, column: str, value: Any) -> Optional[Record]:
        params = {**_eq_params({column: value}), "select": "*", "limit": "1"}
        rows = await self._request("GET", collection, params=params)
        return rows[0] if rows else None

    async def insert(self, collection: str, record: Record) -> Record:
        rows = await self._request("POST", collection, body=record, prefer_representation=True)
        if not rows:
            raise StoreError(f"Insert into {collection} returned no rows", details={"collection": collection})
        return rows[0]

    async def update(self, collection: str, match: Dict[str, Any], changes: Dict[str, Any]) -> List[Record]:
        rows = await self._request(
            "PATCH", collection, params=_eq_params(match), body=changes, prefer_representation=True
        )
        return rows or []

    async def delete(self, collection: str, match: Dict[str, Any]) -> int:
        rows = await self._request("DELETE", collection, params=_eq_params(match), prefer_representation=True)
        return len(rows or [])

    def subscribe(
        self,
        collection: str,
        callback: ChangeCallback,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Unsubscribe:
        if self.change_feed is None:
            return super().subscribe(collection, callback, filters)
        return self.change_feed.subscribe(collection, callback, filters)
