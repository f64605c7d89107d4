"""
Transport Subsystem.

Bounded-retry HTTP execution shared by workflow dispatch and chat completions.
"""

from .spec import RetryPolicy, TransportResponse, DEFAULT_RETRY_POLICY
from .retryable_transport import RetryableTransport

__all__ = [
    "RetryPolicy",
    "TransportResponse",
    "DEFAULT_RETRY_POLICY",
    "RetryableTransport",
]
