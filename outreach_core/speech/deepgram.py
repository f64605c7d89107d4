"""
Deepgram Recognition Backend.

Recognition backend for Deepgram's live-listen websocket API.
See: https://developers.deepgram.com/reference/speech-to-text/listen-streaming

Audio is pushed by the caller with send_audio(); transcripts arrive as
``Results`` messages and are forwarded as RecognitionEvents. stop() sends
``CloseStream`` and waits for the server to flush its final results before
the connection is closed.
"""

import asyncio
import json
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from outreach_core.constants import DEEPGRAM_LISTEN_URL, LOGGER_SPEECH
from outreach_core.exceptions import ConfigurationMissingError, SpeechRecognitionError
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .enum import RecognitionErrorCode
from .interface import IRecognitionBackend
from .spec import RecognitionAlternative, RecognitionEvent, RecognitionResult


class DeepgramRecognitionBackend(IRecognitionBackend):
    """Deepgram live streaming backend."""

    def __init__(
        self,
        api_key: Optional[str],
        url: str = DEEPGRAM_LISTEN_URL,
        model: str = "nova-3",
        encoding: str = "linear16",
        sample_rate: int = 16000,
        channels: int = 1,
        keepalive_s: float = 8.0,
        close_timeout_s: float = 5.0,
    ):
        super().__init__()
        self.api_key = api_key
        self.url = url
        self.model = model
        self.encoding = encoding
        self.sample_rate = sample_rate
        self.channels = channels
        self.keepalive_s = keepalive_s
        self.close_timeout_s = close_timeout_s
        self._ws: Any = None
        self._receiver: Optional[asyncio.Task] = None
        self._keepalive: Optional[asyncio.Task] = None
        self.logger = LoggerAdaptor.get_logger(f"{LOGGER_SPEECH}.deepgram")

    @property
    def is_streaming(self) -> bool:
        return self._receiver is not None and not self._receiver.done()

    def _query(self) -> Dict[str, str]:
        return {
            "model": self.model,
            "encoding": self.encoding,
            "sample_rate": str(self.sample_rate),
            "channels": str(self.channels),
            "language": self.config.lang,
            "interim_results": str(self.config.interim_results).lower(),
            "punctuate": "true",
            "smart_format": "true",
        }

    def _build_ws_url(self) -> str:
        return f"{self.url}?{urlencode(self._query())}"

    async def start(self) -> None:
        if not self.api_key:
            raise ConfigurationMissingError("Configuration error: Deepgram API key missing", setting="deepgram_api_key")
        if self.is_streaming:
            raise SpeechRecognitionError("Recognition stream already active")

        try:
            self._ws = await websockets.connect(
                self._build_ws_url(),
                additional_headers={"Authorization": f"Token {self.api_key}"},
            )
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise SpeechRecognitionError(f"Connection failed: {e}") from e

        self._receiver = asyncio.create_task(self._receive_loop(self._ws))
        self._keepalive = asyncio.create_task(self._keepalive_loop(self._ws))
        self._receiver.add_done_callback(self._collect_task)
        self._keepalive.add_done_callback(self._collect_task)
        self.logger.debug("Recognition stream started", model=self.model, language=self.config.lang)

    async def send_audio(self, audio: bytes) -> None:
        """Push one chunk of encoded audio. Ignored when no stream is active."""
        if not self.is_streaming:
            return
        try:
            await self._ws.send(audio)
        except WebSocketException as e:
            self.logger.warning("Audio send failed", error=str(e))

    async def stop(self) -> None:
        if self._receiver is None:
            return
        receiver = self._receiver
        ws = self._ws
        if not receiver.done():
            try:
                await ws.send(json.dumps({"type": "CloseStream"}))
                await asyncio.wait_for(asyncio.shield(receiver), timeout=self.close_timeout_s)
            except asyncio.TimeoutError:
                self.logger.warning("Recognition stream did not close in time")
            except WebSocketException as e:
                self.logger.debug("CloseStream not delivered", error=str(e))
        if not receiver.done():
            receiver.cancel()
            await asyncio.gather(receiver, return_exceptions=True)
        await ws.close()

    async def _keepalive_loop(self, ws) -> None:
        try:
            while True:
                await asyncio.sleep(self.keepalive_s)
                await ws.send(json.dumps({"type": "KeepAlive"}))
        except (WebSocketException, OSError):
            return

    async def _receive_loop(self, ws) -> None:
        try:
            async for raw in ws:
                self._handle_message(raw)
        except ConnectionClosedError as e:
            self.logger.warning("Recognition stream closed unexpectedly", error=str(e))
            self._emit_error(RecognitionErrorCode.NETWORK.value)
        except (WebSocketException, OSError) as e:
            self.logger.error("Recognition stream failed", error=str(e))
            self._emit_error(RecognitionErrorCode.NETWORK.value)
        finally:
            if self._keepalive is not None:
                self._keepalive.cancel()
                self._keepalive = None
            self._receiver = None
            self._emit_end()

    def _collect_task(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Recognition task failed", error=f"{type(error).__name__}: {error}")

    def _handle_message(self, raw: Any) -> None:
        if isinstance(raw, bytes):
            return
        try:
            data = json.loads(raw)
        except ValueError:
            self.logger.warning("Ignoring undecodable recognition message")
            return
        if not isinstance(data, dict):
            return

        msg_type = data.get("type", "")
        if msg_type == "Results":
            alternatives = (data.get("channel") or {}).get("alternatives") or []
            if not alternatives or not (alternatives[0].get("transcript") or "").strip():
                return
            result = RecognitionResult(
                alternatives=[
                    RecognitionAlternative(
                        transcript=alt.get("transcript", ""),
                        confidence=alt.get("confidence", 1.0),
                    )
                    for alt in alternatives
                ],
                is_final=bool(data.get("is_final") or data.get("speech_final")),
            )
            self._emit_result(RecognitionEvent(results=[result], result_index=0))
        elif msg_type == "Error" or "error" in data:
            code = data.get("err_code") or data.get("error") or "service-error"
            self.logger.error("Recognition backend error", code=code, description=data.get("description"))
            self._emit_error(str(code))
