from __future__ import annotations

from typing import AsyncGenerator, Protocol, runtime_checkable

import httpx
from loguru import logger

from mystic_relay.errors import TransportLost
from mystic_relay.frames import Frame, SseDecoder, decode_payload


@runtime_checkable
class FrameStream(Protocol):
    @property
    def closed(self) -> bool: ...

    async def open(self) -> None: ...

    def frames(self) -> AsyncGenerator[Frame, None]: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class Connector(Protocol):
    def connect(self, question: str) -> FrameStream:
        """Build an unopened stream for one question."""
        ...


class HttpFrameStream:
    """One fortune event stream read over HTTP with httpx."""

    def __init__(self, client: httpx.AsyncClient, path: str, question: str):
        self._client = client
        self._path = path
        self._question = question
        self._response: httpx.Response | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._closed:
            raise TransportLost("Stream was closed before it opened")
        request = self._client.build_request(
            "GET",
            self._path,
            params={"question": self._question},
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as ex:
            raise TransportLost(f"Could not connect: {type(ex).__name__}: {ex}") from ex

        self._response = response
        if response.status_code != 200:
            await self.aclose()
            raise TransportLost(f"Unexpected status {response.status_code}")
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("text/event-stream"):
            await self.aclose()
            raise TransportLost(f"Unexpected content type {content_type!r}")

    async def frames(self) -> AsyncGenerator[Frame, None]:
        if self._response is None:
            raise TransportLost("Stream is not open")
        decoder = SseDecoder()
        try:
            async for line in self._response.aiter_lines():
                for data in decoder.feed_line(line):
                    frame = decode_payload(data)
                    if frame is None:
                        logger.debug(f"Skipping event without a frame field: {data[:200]}")
                        continue
                    yield frame
        except httpx.HTTPError as ex:
            raise TransportLost(f"Stream read failed: {type(ex).__name__}: {ex}") from ex
        decoder.reset()

    async def aclose(self) -> None:
        self._closed = True
        if self._response is not None:
            await self._response.aclose()


class HttpConnector:
    def __init__(self, client: httpx.AsyncClient, path: str = "/api/fortune"):
        self._client = client
        self._path = path

    def connect(self, question: str) -> HttpFrameStream:
        return HttpFrameStream(self._client, self._path, question)


class ConnectionSlot:
    """Owns at most one open FrameStream.

    Installing a stream always closes the previous one first.
    """

    def __init__(self) -> None:
        self._stream: FrameStream | None = None

    @property
    def current(self) -> FrameStream | None:
        return self._stream

    @property
    def is_open(self) -> bool:
        return self._stream is not None and not self._stream.closed

    async def replace(self, stream: FrameStream) -> FrameStream:
        await self.close()
        self._stream = stream
        return stream

    async def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None and not stream.closed:
            await stream.aclose()
