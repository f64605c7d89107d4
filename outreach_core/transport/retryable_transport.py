"""
Retryable HTTP Transport.

Async HTTP request executor built on aiohttp with bounded retries and
exponential backoff.

Retry rules:
============
- Status < 500 (2xx, 3xx, 4xx) is terminal and returned as-is. Client errors
  are never retried.
- Status >= 500 or a transport fault (connection error, timeout) is a failed
  attempt. The next attempt waits ``initial_delay * factor ** (n - 1)``.
- No delay follows the last attempt. Once attempts are exhausted a
  TransportExhaustedError carrying the last failure is raised.

Usage:
======
    transport = RetryableTransport()
    response = await transport.execute(
        "https://hooks.example.com/company-research",
        payload={"company": "Acme"},
        policy=RetryPolicy(max_attempts=3, initial_delay_ms=1000, backoff_factor=2),
    )
    await transport.close()

    # Streaming (single attempt, no retry)
    async with transport.open_stream(url, payload=body) as response:
        async for chunk in response.content.iter_any():
            ...
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import aiohttp

from outreach_core.constants import LOGGER_TRANSPORT, SERVER_ERROR_STATUS
from outreach_core.exceptions import TransportExhaustedError
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .spec import DEFAULT_RETRY_POLICY, RetryPolicy, TransportResponse


Sleeper = Callable[[float], Awaitable[Any]]


class RetryableTransport:
    """
    HTTP executor with bounded retry.

    The transport owns a lazily created aiohttp ClientSession unless one is
    passed in, in which case the caller keeps ownership and close() leaves it
    open.

    Attributes:
        default_policy: Policy used when execute() is called without one
        timeout_s: Total timeout per attempt in seconds
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        default_policy: Optional[RetryPolicy] = None,
        timeout_s: float = 30.0,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the transport.

        Args:
            session: Optional shared aiohttp session
            default_policy: Retry policy used when none is given per call
            timeout_s: Total timeout per attempt in seconds
            sleep: Coroutine used for backoff waits (defaults to asyncio.sleep)
        """
        self._session = session
        self._external_session = session is not None
        self.default_policy = default_policy or DEFAULT_RETRY_POLICY
        self.timeout_s = timeout_s
        self._sleep = sleep or asyncio.sleep
        self.logger = LoggerAdaptor.get_logger(LOGGER_TRANSPORT)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
            )
            self._external_session = False
        return self._session

    async def close(self) -> None:
        """Close the session if it was created by this transport."""
        if self._session and not self._session.closed and not self._external_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "RetryableTransport":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def execute(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        payload: Any = None,
        policy: Optional[RetryPolicy] = None,
    ) -> TransportResponse:
        """
        Execute a request with bounded retry.

        Args:
            url: Request URL
            method: HTTP method
            headers: Request headers
            payload: JSON-serializable request body (None for no body)
            policy: Retry policy (defaults to the transport's policy)

        Returns:
            TransportResponse for the first terminal (< 500) response

        Raises:
            TransportExhaustedError: If every attempt failed
        """
        policy = policy or self.default_policy
        method = method.upper()
        last_status: Optional[int] = None
        last_error: Optional[str] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                session = await self._get_session()
                async with session.request(method, url, headers=headers, json=payload) as response:
                    body = await response.read()
                    if response.status < SERVER_ERROR_STATUS:
                        return TransportResponse(
                            status=response.status,
                            reason=response.reason or "",
                            headers=dict(response.headers),
                            body=body,
                            attempts=attempt,
                        )
                    last_status = response.status
                    last_error = f"Server error: {response.status} {body.decode('utf-8', errors='replace')[:500]}".strip()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_status = None
                last_error = f"{type(e).__name__}: {e}"

            if attempt < policy.max_attempts:
                delay_ms = policy.delay_for_retry(attempt)
                self.logger.warning(
                    "Request attempt failed, retrying",
                    url=url,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay_ms=delay_ms,
                    error=last_error,
                )
                await self._sleep(delay_ms / 1000)

        self.logger.error(
            "Request attempts exhausted",
            url=url,
            attempts=policy.max_attempts,
            last_status=last_status,
            error=last_error,
        )
        raise TransportExhaustedError(
            f"Request to {url} failed after {policy.max_attempts} attempts: {last_error}",
            attempts=policy.max_attempts,
            last_status=last_status,
            last_error=last_error,
            details={"url": url, "method": method},
        )

    @asynccontextmanager
    async def open_stream(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        payload: Any = None,
        timeout_s: Optional[float] = None,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """
        Open a single streaming request.

        Streams are not retried: a failure after bytes have been delivered is
        not safe to replay. Leaving the context (normally, by exception or by
        task cancellation) releases the connection.

        Args:
            url: Request URL
            method: HTTP method
            headers: Request headers
            payload: JSON-serializable request body
            timeout_s: Total timeout for the whole stream

        Yields:
            The live aiohttp response
        """
        session = await self._get_session()
        kwargs: Dict[str, Any] = {"headers": headers, "json": payload}
        if timeout_s is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout_s)
        self.logger.debug("Opening stream", url=url)
        async with session.request(method.upper(), url, **kwargs) as response:
            yield response
