"""Shared fixtures for Dify SDK tests."""

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest

from dify_sdk import DifyClient, DifyConfig


class ChunkStream(httpx.AsyncByteStream):
    """Response body that yields given chunks, optionally failing or never ending.

    Counts how many chunks were produced and how often it was closed.
    """

    def __init__(
        self,
        chunks: list[bytes],
        *,
        error: Exception | None = None,
        endless: bool = False,
    ) -> None:
        self.chunks = chunks
        self.error = error
        self.endless = endless
        self.yielded = 0
        self.close_count = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.yielded += 1
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        while self.endless:
            self.yielded += 1
            yield b"data:tick\n\n"
            await asyncio.sleep(0)

    @staticmethod
    def frames(*payloads: str) -> list[bytes]:
        return [f"data:{p}\n\n".encode() for p in payloads]

    async def aclose(self) -> None:
        self.close_count += 1


@pytest.fixture
def chunk_stream() -> type[ChunkStream]:
    return ChunkStream


@pytest.fixture
def config() -> DifyConfig:
    return DifyConfig(base_url="http://localhost/v1", stream_buffer_size=4)


@pytest.fixture
async def client(config: DifyConfig) -> AsyncIterator[DifyClient]:
    async with DifyClient("chat-key", "kb-key", config=config) as client:
        yield client
