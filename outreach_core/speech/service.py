"""
Speech-to-Text Service.

Wraps a continuous recognition backend behind a small recording state machine:

    idle --start()--> recording --pause()--> paused --resume()--> recording
      ^                  |                      |
      +------stop()------+----------stop()------+

The backend has no native pause: pause() stops the backend stream and
resume() starts a new one, so transcripts have a gap across a pause.

Usage:
    service = SpeechToTextService(DeepgramRecognitionBackend(api_key))
    await service.start(
        lambda text, is_final: print("final" if is_final else "interim", text),
        lambda message: print("error", message),
    )
    ...
    await service.stop()
"""

from typing import Callable, Optional

from outreach_core.constants import DEFAULT_SPEECH_LANGUAGE, LOGGER_SPEECH
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .enum import RecognitionErrorCode, RecordingState
from .interface import IRecognitionBackend
from .spec import RecognitionConfig, RecognitionEvent


TranscriptCallback = Callable[[str, bool], None]
ErrorCallback = Callable[[str], None]

NOT_SUPPORTED_MESSAGE = "Speech recognition is not supported in this environment."

ERROR_MESSAGES = {
    RecognitionErrorCode.NOT_ALLOWED.value: "Microphone permission denied. Please allow access to the microphone.",
    RecognitionErrorCode.NETWORK.value: "Network error experienced while recording.",
    RecognitionErrorCode.NO_SPEECH.value: "No speech was detected.",
    RecognitionErrorCode.AUDIO_CAPTURE.value: "No microphone was found or audio capture failed.",
}


def error_message(code: str) -> str:
    """User-facing message for a backend error code."""
    code = getattr(code, "value", code)
    return ERROR_MESSAGES.get(code, f"Speech recognition error: {code}")


class SpeechToTextService:
    """Recording state machine over an IRecognitionBackend."""

    def __init__(self, backend: Optional[IRecognitionBackend], language: str = DEFAULT_SPEECH_LANGUAGE):
        self.backend = backend
        self._state = RecordingState.IDLE
        self._on_transcript: Optional[TranscriptCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self.logger = LoggerAdaptor.get_logger(LOGGER_SPEECH)

        if backend is not None:
            backend.configure(RecognitionConfig(continuous=True, interim_results=True, lang=language))
            backend.set_callbacks(
                on_result=self._handle_result,
                on_error=self._handle_error,
                on_end=self._handle_end,
            )

    @property
    def state(self) -> RecordingState:
        return self._state

    def is_supported(self) -> bool:
        return self.backend is not None

    def _transition(self, state: RecordingState) -> None:
        if state is not self._state:
            self.logger.debug("Recording state changed", previous=self._state.value, state=state.value)
            self._state = state

    async def start(self, on_transcript: TranscriptCallback, on_error: ErrorCallback) -> None:
        """
        Start recording. No-op while already recording.

        Failures are reported through ``on_error``; nothing is raised.
        """
        if self.backend is None:
            on_error(NOT_SUPPORTED_MESSAGE)
            return
        if self._state is RecordingState.RECORDING:
            return

        self._on_transcript = on_transcript
        self._on_error = on_error
        try:
            await self.backend.start()
        except Exception as e:
            self.logger.error("Failed to start recording", error=str(e))
            on_error(f"Failed to start recording: {e}")
            return
        self._transition(RecordingState.RECORDING)

    async def stop(self) -> None:
        if self.backend is None or self._state is RecordingState.IDLE:
            return
        was_recording = self._state is RecordingState.RECORDING
        self._transition(RecordingState.IDLE)
        if was_recording:
            await self.backend.stop()

    async def pause(self) -> None:
        if self.backend is None or self._state is not RecordingState.RECORDING:
            return
        # Enter PAUSED first so the backend's on_end leaves it untouched
        self._transition(RecordingState.PAUSED)
        await self.backend.stop()

    async def resume(self) -> None:
        if self.backend is None or self._state is not RecordingState.PAUSED:
            return
        if self._on_transcript is None or self._on_error is None:
            return
        try:
            await self.backend.start()
        except Exception as e:
            self.logger.error("Failed to resume recording", error=str(e))
            self._on_error(f"Failed to resume recording: {e}")
            return
        self._transition(RecordingState.RECORDING)

    # ============================================================================
    # BACKEND CALLBACKS
    # ============================================================================

    def _handle_result(self, event: RecognitionEvent) -> None:
        if self._on_transcript is None:
            return
        for result in event.results[event.result_index:]:
            if not result.alternatives:
                continue
            self._on_transcript(result.alternatives[0].transcript, result.is_final)

    def _handle_error(self, code: str) -> None:
        code = getattr(code, "value", code)
        if code == RecognitionErrorCode.NOT_ALLOWED.value:
            self._transition(RecordingState.IDLE)
        self.logger.warning("Speech recognition error", code=code, state=self._state.value)
        if self._on_error is not None:
            self._on_error(error_message(code))

    def _handle_end(self) -> None:
        if self._state is RecordingState.RECORDING:
            self._transition(RecordingState.IDLE)
