"""Bridge from a live SSE response body to an ``EventStream``."""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Protocol

import httpx

from ..errors import DifyError, TransportError
from .decoder import decode_events
from .pipe import EventStream, PipeWriter, open_pipe
from .scheduler import StreamScheduler

logger = logging.getLogger(__name__)


class Releasable(Protocol):
    """Something holding a connection that must be released exactly once."""

    async def aclose(self) -> None: ...


class LineSource(Releasable, Protocol):
    """A response body readable as text lines."""

    def aiter_lines(self) -> AsyncIterator[str]: ...


class StreamBridge:
    """Runs the SSE decoder on a background task feeding a bounded pipe.

    The bridge owns ``connection`` once started: whatever way the feed ends,
    the task closes the pipe's write end, then ``connection``, then ``body``.
    """

    def __init__(
        self,
        body: LineSource,
        connection: Releasable,
        scheduler: StreamScheduler,
        *,
        capacity: int,
        name: str = "dify-event-stream",
    ) -> None:
        self._body = body
        self._connection = connection
        self._scheduler = scheduler
        self._capacity = capacity
        self._name = name

    def start(self) -> EventStream:
        """Spawn the producer task and return the read end immediately."""
        writer, stream = open_pipe(self._capacity)
        self._scheduler.spawn(self._pump(writer), name=self._name)
        logger.debug("Started %s (capacity=%d)", self._name, self._capacity)
        return stream

    async def _pump(self, writer: PipeWriter) -> None:
        error: DifyError | None = None
        count = 0
        try:
            async with aclosing(decode_events(self._body.aiter_lines())) as events:
                async for payload in events:
                    await writer.send(payload)
                    count += 1
        except BrokenPipeError:
            logger.debug("%s: reader closed after %d event(s)", self._name, count)
        except (httpx.RequestError, httpx.StreamError) as e:
            logger.warning("%s interrupted after %d event(s): %s", self._name, count, e)
            error = TransportError(f"Event stream interrupted: {e}", "STREAM_INTERRUPTED")
        else:
            logger.debug("%s: finished after %d event(s)", self._name, count)
        finally:
            await writer.close(error)
            await self._connection.aclose()
            await self._body.aclose()
