"""
Chat Completion Engine.

Chat completions against an OpenAI-compatible endpoint (OpenRouter by
default), with task-based model routing.

- complete(): one-shot completion executed through RetryableTransport
  (bounded retry with exponential backoff). Provider-reported errors are
  raised immediately and never retried.
- stream_deltas() / stream_complete(): a single streaming request, no retry.
  Fragments are delivered in arrival order as they are decoded.

Missing API key: both paths log a ConfigurationMissing error and degrade
gracefully (complete() returns None, streams produce nothing).

Usage:
    engine = ChatCompletionEngine(transport, api_key=settings.openrouter_api_key)

    message = await engine.complete(conversation, TaskType.COMPANY_RESEARCH, temperature=0.2)

    text = await engine.stream_complete(conversation, TaskType.QUICK_RESPONSE, on_delta=print)

    async with aclosing(engine.stream_deltas(conversation, TaskType.SYNTHESIS)) as deltas:
        async for delta in deltas:
            render(delta.accumulated)
"""

import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Optional, Union

import aiohttp

from outreach_core import constants
from outreach_core.constants import LOGGER_CHAT
from outreach_core.exceptions import ConfigurationMissingError, ProviderError
from outreach_core.transport import RetryableTransport, RetryPolicy
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .enum import MessageRole, TaskType
from .routing import ModelRouter
from .spec import ConversationMessage, MessageLike, StreamDelta, to_messages
from .stream_decoder import ChatStreamDecoder
from .usage import UsageTracker


DeltaCallback = Callable[[str], Any]


def _task_name(task_type: Union[TaskType, str]) -> str:
    return task_type.value if isinstance(task_type, TaskType) else str(task_type)


class ChatCompletionEngine:
    """
    Task-routed chat completion client.

    Attributes:
        transport: Transport for one-shot and streaming requests
        router: Task type to model routing
        usage_tracker: Sink for token usage of successful completions
        policy: Retry policy for complete() (transport default when None)
    """

    def __init__(
        self,
        transport: RetryableTransport,
        api_key: Optional[str],
        base_url: str = constants.OPENROUTER_BASE_URL,
        app_url: str = "",
        app_title: str = constants.DEFAULT_APP_TITLE,
        router: Optional[ModelRouter] = None,
        usage_tracker: Optional[UsageTracker] = None,
        policy: Optional[RetryPolicy] = None,
        stream_timeout_s: Optional[float] = None,
    ):
        self.transport = transport
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.app_url = app_url
        self.app_title = app_title
        self.router = router or ModelRouter()
        self.usage_tracker = usage_tracker or UsageTracker()
        self.policy = policy
        self.stream_timeout_s = stream_timeout_s
        self.logger = LoggerAdaptor.get_logger(LOGGER_CHAT)

    # ============================================================================
    # REQUEST BUILDING
    # ============================================================================

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{constants.CHAT_COMPLETIONS_PATH}"

    def select_model(self, task_type: Union[TaskType, str]) -> str:
        """Model id serving ``task_type`` (fallback model when unmapped)."""
        return self.router.select_model(task_type)

    def _headers(self) -> Dict[str, str]:
        headers = {
            constants.HEADER_AUTHORIZATION: f"{constants.BEARER_PREFIX}{self.api_key}",
            constants.HEADER_CONTENT_TYPE: constants.CONTENT_TYPE_JSON,
            constants.HEADER_TITLE: self.app_title,
        }
        if self.app_url:
            headers[constants.HEADER_REFERER] = self.app_url
        return headers

    def _build_body(
        self,
        conversation: Iterable[MessageLike],
        model: str,
        options: Dict[str, Any],
        stream: bool = False,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model,
            "messages": [message.to_payload() for message in to_messages(conversation)],
        }
        body.update({key: value for key, value in options.items() if value is not None})
        if stream:
            body["stream"] = True
        return body

    def _check_configured(self, operation: str) -> bool:
        if self.api_key:
            return True
        error = ConfigurationMissingError("Configuration error: OpenRouter API key missing", setting="openrouter_api_key")
        self.logger.error(error.message, operation=operation)
        return False

    # ============================================================================
    # ONE-SHOT COMPLETION
    # ============================================================================

    async def complete(
        self,
        conversation: Iterable[MessageLike],
        task_type: Union[TaskType, str],
        **options: Any,
    ) -> Optional[ConversationMessage]:
        """
        Run a one-shot completion.

        Args:
            conversation: Messages, oldest first
            task_type: Task type used to select the model
            **options: Provider options merged into the body (temperature,
                max_tokens, top_p, ...)

        Returns:
            The first choice's message, or None when the provider returned no
            choices (or no API key is configured)

        Raises:
            ProviderError: Terminal 4xx response or error payload in the body
            TransportExhaustedError: Every attempt failed with 5xx or a network fault
        """
        if not self._check_configured("complete"):
            return None

        model = self.select_model(task_type)
        body = self._build_body(conversation, model, options)
        self.logger.debug("Chat completion request", model=model, task_type=_task_name(task_type), messages=len(body["messages"]))

        start_time = time.time()
        response = await self.transport.execute(
            self.endpoint,
            method="POST",
            headers=self._headers(),
            payload=body,
            policy=self.policy,
        )

        if not response.ok:
            raise ProviderError(
                f"OpenRouter API error: {response.status} - {response.text()[:500]}",
                status_code=response.status,
                details={"model": model},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                "OpenRouter API returned an invalid response body",
                status_code=response.status,
                details={"model": model, "error": str(e)},
            ) from e
        if not isinstance(data, dict):
            raise ProviderError("OpenRouter API returned an unexpected response body", status_code=response.status)

        error = data.get(constants.RESPONSE_FIELD_ERROR)
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise ProviderError(
                f"OpenRouter API returned error: {message}",
                status_code=response.status,
                code=code,
                details={"model": model},
            )

        self.logger.log_duration("chat_completion", time.time() - start_time, model=model, attempts=response.attempts)
        self._track_usage(model, task_type, data.get(constants.RESPONSE_FIELD_USAGE))

        choices = data.get(constants.RESPONSE_FIELD_CHOICES) or []
        if not choices:
            return None
        message = choices[0].get(constants.RESPONSE_FIELD_MESSAGE) if isinstance(choices[0], dict) else None
        if not message:
            return None
        return ConversationMessage(
            role=self._coerce_role(message.get("role")),
            content=message.get(constants.RESPONSE_FIELD_CONTENT) or "",
        )

    @staticmethod
    def _coerce_role(role: Any) -> MessageRole:
        try:
            return MessageRole(role)
        except ValueError:
            return MessageRole.ASSISTANT

    def _track_usage(self, model: str, task_type: Union[TaskType, str], usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        try:
            self.usage_tracker.track(
                model,
                int(usage.get(constants.RESPONSE_FIELD_PROMPT_TOKENS) or 0),
                int(usage.get(constants.RESPONSE_FIELD_COMPLETION_TOKENS) or 0),
                task_type=_task_name(task_type),
            )
        except Exception as e:
            self.logger.warning("Usage tracking failed", model=model, error=str(e))

    # ============================================================================
    # STREAMING
    # ============================================================================

    async def stream_deltas(
        self,
        conversation: Iterable[MessageLike],
        task_type: Union[TaskType, str],
        **options: Any,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream a completion as StreamDelta objects.

        Closing the generator (``aclosing`` or breaking out of an ``async
        with aclosing(...)`` block) or cancelling the consuming task releases
        the connection.

        Raises:
            ProviderError: Non-2xx stream response
            aiohttp.ClientError: Network fault during a read
        """
        if not self._check_configured("stream"):
            return

        model = self.select_model(task_type)
        body = self._build_body(conversation, model, options, stream=True)
        decoder = ChatStreamDecoder()
        accumulated = ""
        index = 0

        self.logger.debug("Chat stream request", model=model, task_type=_task_name(task_type))
        async with self.transport.open_stream(
            self.endpoint,
            method="POST",
            headers=self._headers(),
            payload=body,
            timeout_s=self.stream_timeout_s,
        ) as response:
            if not 200 <= response.status < 300:
                text = await response.text()
                raise ProviderError(
                    f"Stream error: {response.status} {response.reason or ''}".strip(),
                    status_code=response.status,
                    details={"model": model, "body": text[:500]},
                )

            async with aclosing(self._read_fragments(response, decoder)) as fragments:
                async for fragment in fragments:
                    accumulated += fragment
                    yield StreamDelta(content=fragment, accumulated=accumulated, index=index)
                    index += 1

        self.logger.debug(
            "Chat stream finished",
            model=model,
            fragments=index,
            parse_warnings=len(decoder.warnings),
            completed=decoder.done,
        )

    async def _read_fragments(self, response: aiohttp.ClientResponse, decoder: ChatStreamDecoder) -> AsyncIterator[str]:
        async for chunk in response.content.iter_any():
            for fragment in decoder.feed(chunk):
                yield fragment
            if decoder.done:
                return
        for fragment in decoder.finish():
            yield fragment

    async def stream_complete(
        self,
        conversation: Iterable[MessageLike],
        task_type: Union[TaskType, str],
        on_delta: Optional[DeltaCallback] = None,
        **options: Any,
    ) -> str:
        """
        Stream a completion, invoking ``on_delta(fragment)`` for each fragment.

        Returns:
            The accumulated text ("" when no API key is configured)
        """
        accumulated = ""
        async with aclosing(self.stream_deltas(conversation, task_type, **options)) as deltas:
            async for delta in deltas:
                accumulated = delta.accumulated
                if on_delta is not None:
                    on_delta(delta.content)
        return accumulated
