"""Stream frame decoding for the chat-stream transport.

The server writes one ``data: <json>\\n`` line per event. Reads from the
network do not respect line boundaries, so the trailing partial line of every
read is buffered and prefixed onto the next one. Lines that fail to parse are
dropped; one bad frame never loses an otherwise-good stream.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from storyteller.models import DoneFrame, ErrorFrame, StreamFrame, TextFrame

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


class FrameDecoder:
    """Incremental bytes → StreamFrame decoder for a single stream.

    After a terminal frame (``error`` or ``done``) the decoder is finished and
    ignores any further input.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.finished = False

    def feed(self, chunk: bytes | str) -> list[StreamFrame]:
        """Consume one read and return the frames it completed."""
        if self.finished:
            return []
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[StreamFrame]:
        """Decode whatever is left once the stream has ended."""
        if self.finished:
            return []
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._decode_lines([tail])

    def _decode_lines(self, lines: list[str]) -> list[StreamFrame]:
        frames: list[StreamFrame] = []
        for line in lines:
            for frame in parse_line(line):
                frames.append(frame)
                if frame.kind != "text":
                    self.finished = True
                    return frames
        return frames


def parse_line(line: str) -> list[StreamFrame]:
    """Parse one transport line into zero or more frames.

    A ``{"text": ..., "done": true}`` payload yields the text frame followed
    by the done frame.
    """
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return []
    try:
        data = json.loads(line[len(DATA_PREFIX):])
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream frame: %r", line[:200])
        return []
    if not isinstance(data, dict):
        return []

    error = data.get("error")
    if isinstance(error, str):
        return [ErrorFrame(message=error)]

    frames: list[StreamFrame] = []
    text = data.get("text")
    if isinstance(text, str):
        frames.append(TextFrame(delta=text))
    if data.get("done") is True:
        full_text = data.get("fullText")
        frames.append(DoneFrame(full_text=full_text if isinstance(full_text, str) else None))
    return frames


async def decode_stream(
    chunks: AsyncIterable[bytes],
    cancel=None,
) -> AsyncIterator[StreamFrame]:
    """Yield frames from an async byte iterator until a terminal frame.

    ``cancel`` is an optional token with an ``is_set()`` method; it is checked
    between reads and the loop stops as soon as it is set.
    """
    decoder = FrameDecoder()
    async for chunk in chunks:
        if cancel is not None and cancel.is_set():
            return
        for frame in decoder.feed(chunk):
            yield frame
        if decoder.finished:
            return
    if cancel is not None and cancel.is_set():
        return
    for frame in decoder.flush():
        yield frame


def encode_frame(frame: StreamFrame) -> str:
    """Serialise a frame as one transport line (server side)."""
    if frame.kind == "text":
        payload: dict = {"text": frame.delta}
    elif frame.kind == "error":
        payload = {"error": frame.message}
    else:
        payload = {"done": True}
        if frame.full_text is not None:
            payload["fullText"] = frame.full_text
    return f"{DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n"
