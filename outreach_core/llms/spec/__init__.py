"""
Data models for the LLM Subsystem.
"""

from .chat_message import ConversationMessage, MessageLike, to_messages
from .chat_result import ChatUsage, StreamDelta

__all__ = [
    "ConversationMessage",
    "MessageLike",
    "to_messages",
    "ChatUsage",
    "StreamDelta",
]
