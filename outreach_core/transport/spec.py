"""
Transport Spec Models.

RetryPolicy is pure configuration applied per call; TransportResponse is a
fully-read HTTP response handed back to callers.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict

from pydantic import BaseModel, Field

from outreach_core import constants


class RetryPolicy(BaseModel):
    """
    Bounded retry with exponential backoff.

    The delay before retry ``n`` (1-based) is
    ``initial_delay_ms * backoff_factor ** (n - 1)``.

    Attributes:
        max_attempts: Total attempts, including the first one
        initial_delay_ms: Delay before the first retry
        backoff_factor: Multiplier applied to each subsequent delay
    """

    max_attempts: int = Field(default=constants.DEFAULT_MAX_ATTEMPTS, ge=1, description="Total attempts")
    initial_delay_ms: float = Field(default=constants.DEFAULT_INITIAL_DELAY_MS, ge=0, description="Delay before first retry (ms)")
    backoff_factor: float = Field(default=constants.DEFAULT_BACKOFF_FACTOR, ge=1, description="Backoff multiplier")

    model_config = {"frozen": True}

    def delay_for_retry(self, retry_number: int) -> float:
        """
        Delay in milliseconds before the given retry.

        Args:
            retry_number: 1 for the first retry, 2 for the second, ...

        Returns:
            Delay in milliseconds
        """
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")
        return self.initial_delay_ms * (self.backoff_factor ** (retry_number - 1))

    def delays(self) -> list:
        """All delays (ms) this policy may wait, in order."""
        return [self.delay_for_retry(n) for n in range(1, self.max_attempts)]


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass
class TransportResponse:
    """
    A completed HTTP response.

    Attributes:
        status: HTTP status code
        reason: HTTP reason phrase
        headers: Response headers
        body: Raw response body
        attempts: Number of attempts it took to obtain this response
    """
    status: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    attempts: int = 1

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status < 300

    def text(self, encoding: str = "utf-8") -> str:
        """Body decoded as text."""
        return self.body.decode(encoding, errors="replace")

    def json(self) -> Any:
        """
        Body parsed as JSON.

        Raises:
            ValueError: If the body is not valid JSON
        """
        return json.loads(self.text())
