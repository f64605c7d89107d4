"""
Recognition Backend Interface.

A backend is a continuous recognizer with no native pause. It reports
through three callbacks:

- on_result(RecognitionEvent): interim and final results
- on_error(code): an error code (see RecognitionErrorCode)
- on_end(): the stream ended, whether by stop() or on its own
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from .spec import RecognitionConfig, RecognitionEvent


ResultCallback = Callable[[RecognitionEvent], None]
ErrorCodeCallback = Callable[[str], None]
EndCallback = Callable[[], None]


class IRecognitionBackend(ABC):
    """
    Abstract base class for speech recognition backends.

    Example Implementation:
        class DeepgramRecognitionBackend(IRecognitionBackend):
            async def start(self):
                # open the live-listen websocket and start receiving
                ...
    """

    def __init__(self):
        self.config = RecognitionConfig()
        self.on_result: Optional[ResultCallback] = None
        self.on_error: Optional[ErrorCodeCallback] = None
        self.on_end: Optional[EndCallback] = None

    def configure(self, config: RecognitionConfig) -> None:
        """Apply configuration; takes effect on the next start()."""
        self.config = config

    def set_callbacks(
        self,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCodeCallback] = None,
        on_end: Optional[EndCallback] = None,
    ) -> None:
        """Set callback functions for events."""
        if on_result:
            self.on_result = on_result
        if on_error:
            self.on_error = on_error
        if on_end:
            self.on_end = on_end

    @abstractmethod
    async def start(self) -> None:
        """
        Start a new recognition stream.

        Raises:
            SpeechRecognitionError: If the stream cannot be started
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the current stream. on_end fires once the stream has ended."""
        pass

    def _emit_result(self, event: RecognitionEvent) -> None:
        if self.on_result:
            self.on_result(event)

    def _emit_error(self, code: str) -> None:
        if self.on_error:
            self.on_error(code)

    def _emit_end(self) -> None:
        if self.on_end:
            self.on_end()
