"""
Incremental parser for server-sent-event style completion streams.

The completion endpoint answers with newline-delimited frames:

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

The transport gives no guarantee that a chunk ends on a frame boundary, or even
on a character boundary, so 'FrameParser' keeps two buffers: an incremental
UTF-8 decoder for split multi-byte characters and a text buffer for the
incomplete trailing line. A line is only parsed once its terminating newline
has arrived (or the connection closed, see 'flush').
"""

import codecs
import json
from typing import Any

from loguru import logger

from chat_stream_toolkit.errors import FrameDecodeError

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def extract_delta(payload: Any) -> str | None:
    """Return 'choices[0].delta.content' if the payload carries one."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def decode_frame(data: str) -> str | None:
    """Decode the payload of one data frame into its delta text."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"Malformed frame payload: {data[:80]!r}") from exc
    return extract_delta(payload)


class FrameParser:
    """
    Turns raw response chunks into an ordered list of text deltas.

    Attributes:
        done: True once the end marker was seen. Everything fed afterwards,
            including the remainder of the chunk holding the marker, is ignored.
        skipped_frames: Number of data frames that failed to decode.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        self.skipped_frames = 0

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the deltas of every frame it completed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def flush(self) -> list[str]:
        """Parse whatever is still buffered once the connection has closed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        deltas = self._drain()
        if self._buffer and not self.done:
            line, self._buffer = self._buffer, ""
            delta = self._parse_line(line)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def _drain(self) -> list[str]:
        deltas: list[str] = []
        while not self.done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1 :]
            delta = self._parse_line(line)
            if delta is not None:
                deltas.append(delta)
        if self.done:
            self._buffer = ""
        return deltas

    def _parse_line(self, line: str) -> str | None:
        if line.endswith("\r"):
            line = line[:-1]
        # blank separators and ":" keep-alive comments
        if not line.strip() or line.startswith(":"):
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        data = line[len(DATA_PREFIX) :].strip()
        if data == DONE_MARKER:
            self.done = True
            return None

        try:
            return decode_frame(data)
        except FrameDecodeError as exc:
            self.skipped_frames += 1
            logger.debug(f"Skipping frame: {exc}")
            return None
