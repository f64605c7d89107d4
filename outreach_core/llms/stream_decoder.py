"""
Chat Stream Decoder.

Incremental decoder for the server-sent chat completion stream:

    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

Reads arrive at arbitrary byte boundaries. The decoder keeps a carry-over
buffer, splits it on newlines and holds the last (possibly incomplete) line
for the next read. Only ``data:`` lines are interpreted; comment and blank
lines are ignored. ``data: [DONE]`` ends the stream and later input is
discarded. A malformed line is recorded as a StreamParseWarning, logged and
skipped.
"""

import codecs
import json
from typing import List, Optional, Union

from outreach_core.constants import (
    LOGGER_STREAM,
    RESPONSE_FIELD_CHOICES,
    RESPONSE_FIELD_CONTENT,
    RESPONSE_FIELD_DELTA,
    RESPONSE_FIELD_ERROR,
    STREAM_DATA_PREFIX,
    STREAM_DONE_SENTINEL,
)
from outreach_core.exceptions import StreamParseWarning
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor


class ChatStreamDecoder:
    """
    Turns raw stream reads into text fragments.

    One decoder per stream; it is not reusable.

    Usage:
        decoder = ChatStreamDecoder()
        async for chunk in response.content.iter_any():
            for fragment in decoder.feed(chunk):
                ...
            if decoder.done:
                break
        else:
            fragments = decoder.finish()

    Attributes:
        done: True once the terminal sentinel was seen
        warnings: Malformed lines encountered so far
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        self.warnings: List[StreamParseWarning] = []
        self.logger = LoggerAdaptor.get_logger(LOGGER_STREAM)

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """
        Consume one read.

        Args:
            chunk: Raw bytes (multi-byte characters may be split across reads) or text

        Returns:
            Non-empty fragments completed by this read, in arrival order
        """
        if self.done:
            return []
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._process(lines)

    def finish(self) -> List[str]:
        """
        Flush the carry-over buffer at end of input.

        A final line without a trailing newline is still interpreted.
        """
        if self.done:
            return []
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return self._process([remainder])

    def _process(self, lines: List[str]) -> List[str]:
        fragments = []
        for line in lines:
            if self.done:
                break
            fragment = self._decode_line(line)
            if fragment:
                fragments.append(fragment)
        return fragments

    def _decode_line(self, line: str) -> Optional[str]:
        stripped = line.strip()
        if not stripped or not stripped.startswith(STREAM_DATA_PREFIX):
            return None

        data = stripped[len(STREAM_DATA_PREFIX):].strip()
        if data == STREAM_DONE_SENTINEL:
            self.done = True
            return None

        try:
            event = json.loads(data)
        except ValueError as e:
            self._warn(line, str(e))
            return None
        if not isinstance(event, dict):
            self._warn(line, "event is not an object")
            return None

        error = event.get(RESPONSE_FIELD_ERROR)
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            self._warn(line, f"provider error: {message}")
            return None

        choices = event.get(RESPONSE_FIELD_CHOICES) or []
        if not choices:
            return None
        try:
            content = (choices[0].get(RESPONSE_FIELD_DELTA) or {}).get(RESPONSE_FIELD_CONTENT)
        except (AttributeError, TypeError, KeyError) as e:
            self._warn(line, f"unexpected event shape: {e}")
            return None
        return content if isinstance(content, str) and content else None

    def _warn(self, line: str, reason: str) -> None:
        warning = StreamParseWarning(line, reason)
        self.warnings.append(warning)
        self.logger.warning(str(warning), line=line[:200])
