"""Server-sent event frame decoding.

SSE format: "event: name\\ndata: {...}\\n\\n"

Only ``data:`` lines carry a payload; ``event:``, ``id:`` and ``retry:``
lines are accepted and ignored. A blank line completes the frame.
"""

import re
from collections.abc import AsyncIterable, AsyncIterator

DATA_PREFIX = "data:"

# SSE lines end with CRLF, LF or CR only; other Unicode breaks are payload text
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


async def iter_lines(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """Split decoded text chunks into lines on CR, LF and CRLF.

    Lines may span chunks. A trailing CR is held back until the next chunk
    shows whether an LF follows it.

    Yields:
        Lines without their terminators
    """
    buffer = ""
    async for chunk in chunks:
        text = buffer + chunk
        held = ""
        if text.endswith("\r"):
            text, held = text[:-1], "\r"
        lines = _LINE_BREAK.split(text)
        buffer = lines.pop() + held
        for line in lines:
            yield line

    if buffer:
        lines = _LINE_BREAK.split(buffer)
        if lines[-1] == "":
            lines.pop()
        for line in lines:
            yield line


class EventFrameDecoder:
    """Line-by-line SSE frame decoder.

    Holds at most one pending payload and only emits it when a blank line
    closes the frame. A payload still pending when input ends is dropped.
    """

    def __init__(self) -> None:
        self._pending: str | None = None

    @property
    def pending(self) -> str | None:
        return self._pending

    def feed(self, line: str) -> str | None:
        """Consume one line, returning a payload if it completed a frame."""
        line = line.rstrip("\r\n")
        if not line:
            payload, self._pending = self._pending, None
            return payload
        if line.startswith(DATA_PREFIX):
            # Keep the leading space, if any, exactly as sent
            self._pending = line[len(DATA_PREFIX) :]
        return None


async def decode_events(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Decode an async stream of text lines into event payloads.

    Yields:
        Payload strings in the order their frames completed
    """
    decoder = EventFrameDecoder()
    async for line in lines:
        payload = decoder.feed(line)
        if payload is not None:
            yield payload
