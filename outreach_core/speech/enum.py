"""
Enumerations for the Speech Subsystem.
"""

from enum import Enum


class RecordingState(str, Enum):
    """
    Recording state of the speech service.

    PAUSED is synthesized: the backend stream is stopped and resume() starts a
    fresh one.
    """
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


class RecognitionErrorCode(str, Enum):
    """Error codes reported by recognition backends."""
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    BAD_GRAMMAR = "bad-grammar"
    LANGUAGE_NOT_SUPPORTED = "language-not-supported"
