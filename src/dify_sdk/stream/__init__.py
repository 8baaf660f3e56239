"""Streaming module for Dify SDK.

This module turns a live SSE response into an ``EventStream``: a background
task decodes the feed into a bounded pipe that the caller reads at its own
pace.
"""

from .bridge import LineSource, Releasable, StreamBridge
from .decoder import EventFrameDecoder, decode_events, iter_lines
from .pipe import EventStream, PipeWriter, open_pipe
from .scheduler import StreamScheduler

__all__ = [
    "EventFrameDecoder",
    "EventStream",
    "LineSource",
    "PipeWriter",
    "Releasable",
    "StreamBridge",
    "StreamScheduler",
    "decode_events",
    "iter_lines",
    "open_pipe",
]
