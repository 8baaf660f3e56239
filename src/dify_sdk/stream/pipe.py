"""Bounded in-process channel between a stream producer and its reader."""

import asyncio
import json
from collections import deque
from collections.abc import AsyncIterator
from typing import Any

from ..errors import DecodeError, DifyError


class _Pipe:
    """Shared state of one pipe. Use ``open_pipe`` to get its two ends."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.items: deque[str] = deque()
        self.cond = asyncio.Condition()
        self.write_closed = False
        self.read_closed = False
        self.error: DifyError | None = None


class PipeWriter:
    """Write end of a pipe, owned by the producer task."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    @property
    def reader_closed(self) -> bool:
        return self._pipe.read_closed

    async def send(self, item: str) -> None:
        """Append an item, waiting while the pipe is full.

        Raises:
            BrokenPipeError: If the reader has closed its end
        """
        pipe = self._pipe
        async with pipe.cond:
            await pipe.cond.wait_for(
                lambda: pipe.read_closed or len(pipe.items) < pipe.capacity
            )
            if pipe.read_closed:
                raise BrokenPipeError("event stream reader is closed")
            pipe.items.append(item)
            pipe.cond.notify_all()

    async def close(self, error: DifyError | None = None) -> None:
        """Signal end of stream. Buffered items stay readable."""
        pipe = self._pipe
        async with pipe.cond:
            if pipe.write_closed:
                return
            pipe.write_closed = True
            pipe.error = error
            pipe.cond.notify_all()


class EventStream:
    """Read end of a streaming call: an async iterator of event payloads.

    Payloads are the raw ``data:`` contents, usually JSON text. Iteration
    ends when the feed ends, whether normally or because of a fault; check
    ``error`` afterwards to tell the two apart.

    Closing the stream before the end cancels the feed: the producer stops
    at its next write and releases the connection.
    """

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    @property
    def closed(self) -> bool:
        return self._pipe.read_closed

    @property
    def error(self) -> DifyError | None:
        """The fault that ended the feed early, if any."""
        return self._pipe.error

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> str:
        pipe = self._pipe
        async with pipe.cond:
            await pipe.cond.wait_for(
                lambda: bool(pipe.items) or pipe.write_closed or pipe.read_closed
            )
            if pipe.items and not pipe.read_closed:
                item = pipe.items.popleft()
                pipe.cond.notify_all()
                return item
        raise StopAsyncIteration

    async def iter_json(self) -> AsyncIterator[Any]:
        """Iterate payloads parsed as JSON.

        Raises:
            DecodeError: If a payload is not valid JSON
        """
        async for payload in self:
            try:
                yield json.loads(payload)
            except json.JSONDecodeError as e:
                raise DecodeError(
                    f"Invalid JSON event payload: {e}",
                    "INVALID_EVENT",
                    payload,
                ) from e

    async def aclose(self) -> None:
        """Close the read end, discarding anything still buffered."""
        pipe = self._pipe
        async with pipe.cond:
            pipe.read_closed = True
            pipe.items.clear()
            pipe.cond.notify_all()

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def open_pipe(capacity: int) -> tuple[PipeWriter, EventStream]:
    """Create a pipe holding at most ``capacity`` undelivered events."""
    pipe = _Pipe(capacity)
    return PipeWriter(pipe), EventStream(pipe)
