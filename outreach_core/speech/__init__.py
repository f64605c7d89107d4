"""
Speech Subsystem.

Speech-to-text recording over a continuous recognition backend, with a
synthesized pause.
"""

from .enum import RecordingState, RecognitionErrorCode
from .spec import RecognitionConfig, RecognitionAlternative, RecognitionResult, RecognitionEvent
from .interface import IRecognitionBackend
from .service import SpeechToTextService, error_message, ERROR_MESSAGES, NOT_SUPPORTED_MESSAGE
from .deepgram import DeepgramRecognitionBackend

__all__ = [
    "RecordingState",
    "RecognitionErrorCode",
    "RecognitionConfig",
    "RecognitionAlternative",
    "RecognitionResult",
    "RecognitionEvent",
    "IRecognitionBackend",
    "SpeechToTextService",
    "error_message",
    "ERROR_MESSAGES",
    "NOT_SUPPORTED_MESSAGE",
    "DeepgramRecognitionBackend",
]
