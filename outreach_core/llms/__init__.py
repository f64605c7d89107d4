"""
LLM Subsystem.

Task-routed chat completions (one-shot and streamed) against an
OpenAI-compatible provider.

Quick Start:
    from outreach_core.llms import ChatCompletionEngine, ConversationMessage, MessageRole, TaskType

    engine = ChatCompletionEngine(transport, api_key="sk-or-...")
    reply = await engine.complete(
        [ConversationMessage(role=MessageRole.USER, content="Hello")],
        TaskType.QUICK_RESPONSE,
    )
"""

from .enum import TaskType, MessageRole
from .spec import ConversationMessage, ChatUsage, StreamDelta, to_messages
from .routing import ModelRouter, DEFAULT_MODEL_ROUTING, FALLBACK_MODEL
from .stream_decoder import ChatStreamDecoder
from .usage import UsageTracker
from .chat_engine import ChatCompletionEngine

__all__ = [
    "TaskType",
    "MessageRole",
    "ConversationMessage",
    "ChatUsage",
    "StreamDelta",
    "to_messages",
    "ModelRouter",
    "DEFAULT_MODEL_ROUTING",
    "FALLBACK_MODEL",
    "ChatStreamDecoder",
    "UsageTracker",
    "ChatCompletionEngine",
]
