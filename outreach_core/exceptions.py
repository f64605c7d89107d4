"""
Exceptions for the Outreach core.

All errors derive from OutreachError and carry a human readable message plus
a ``details`` dictionary for structured logging.

Expected failure modes are not always raised: ConfigurationMissingError and
result timeouts surface to callers as failure outcomes. See the module that
owns each boundary for its propagation rules.
"""

from typing import Any, Dict, Optional


class OutreachError(Exception):
    """
    Base exception for the Outreach core.

    Attributes:
        message: Human readable message
        details: Structured context for logging
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationMissingError(OutreachError):
    """
    A required endpoint or credential is not configured.

    Recoverable: dispatch boundaries convert it into a failure outcome and
    never issue a network call.
    """

    def __init__(self, message: str, setting: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.setting = setting


class TransportExhaustedError(OutreachError):
    """
    Every retry attempt failed (server error or transport fault).

    Attributes:
        attempts: Number of attempts performed
        last_status: Status of the last response, if one was received
        last_error: Last exception or response text
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_status: Optional[int] = None,
        last_error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.attempts = attempts
        self.last_status = last_status
        self.last_error = last_error


class ProviderError(OutreachError):
    """
    The provider reported an error (error payload or terminal 4xx). Never retried.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.code = code


class StreamParseWarning(UserWarning):
    """A single stream line could not be decoded; it is skipped."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"Error parsing stream chunk: {reason}")
        self.line = line
        self.reason = reason


class StoreError(OutreachError):
    """A record store or object store operation failed."""


class UploadValidationError(OutreachError):
    """A file was rejected before upload (type or size)."""


class UploadError(OutreachError):
    """A file upload failed after validation."""


class SpeechRecognitionError(OutreachError):
    """A recognition backend could not be started or failed while streaming."""
