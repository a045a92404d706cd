"""
Test doubles for the manifest pipeline.

FakeSession/FakeResponse stand in for aiohttp's session and responses;
RecordingBodyTransform checks the exact bytes a transform receives; and
FakeManifestDownloader replaces the whole download stage for consumers.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import aiohttp

from featuremanifest.download.interfaces import (
    BodyTransform,
    ByteStream,
    BytesStream,
    ManifestDownloader,
)


class FakeContent:
    """Minimal stand-in for aiohttp.StreamReader."""

    def __init__(
        self,
        body: bytes = b"",
        chunk_size: int = 16,
        error: Optional[BaseException] = None,
    ) -> None:
        self._body = body
        self._position = 0
        self._chunk_size = chunk_size
        self._error = error

    def _take(self, size: int) -> bytes:
        if self._error is not None:
            raise self._error
        end = len(self._body) if size < 0 else min(self._position + size, len(self._body))
        chunk = self._body[self._position : end]
        self._position = end
        return chunk

    async def readany(self) -> bytes:
        return self._take(self._chunk_size)

    async def read(self, n: int = -1) -> bytes:
        return self._take(n)


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(
        self,
        status: int = 200,
        body: bytes = b"",
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        content_length: Optional[int] = None,
        read_error: Optional[BaseException] = None,
    ) -> None:
        self.status = status
        self.headers = headers or {}
        self.content_length = content_length
        self.content = FakeContent(body, error=read_error)
        self._json_data = json_data
        self.close_calls = 0
        self.released = False

    async def json(self, **_kwargs: Any) -> Any:
        if isinstance(self._json_data, BaseException):
            raise self._json_data
        return self._json_data

    def close(self) -> None:
        self.close_calls += 1

    def release(self) -> None:
        self.released = True


Route = Union[FakeResponse, BaseException, Callable[[], Any]]


class _FakeRequest:
    """Awaitable and async context manager, like aiohttp's request wrapper."""

    def __init__(self, url: str, route: Optional[Route]) -> None:
        self._url = url
        self._route = route
        self._response: Optional[FakeResponse] = None

    async def _resolve(self) -> FakeResponse:
        route = self._route
        if route is None:
            raise aiohttp.ClientConnectionError(f"No route for {self._url}")
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            return await route()
        return route

    def __await__(self):
        return self._resolve().__await__()

    async def __aenter__(self) -> FakeResponse:
        self._response = await self._resolve()
        return self._response

    async def __aexit__(self, *_exc: Any) -> None:
        if self._response is not None:
            self._response.release()


class FakeSession:
    """Routes GET requests by exact URL and records every request made."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[str] = []
        self.request_kwargs: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> _FakeRequest:
        self.requests.append(url)
        self.request_kwargs.append(kwargs)
        return _FakeRequest(url, self.routes.get(url))

    async def close(self) -> None:
        self.closed = True


async def hang() -> FakeResponse:
    """Route that never answers, for timeout and cancellation tests."""
    await asyncio.Event().wait()
    raise AssertionError("unreachable")


class TrackingStream(BytesStream):
    """BytesStream that counts how often its resource is released."""

    def __init__(self, data: bytes, read_error: Optional[BaseException] = None) -> None:
        super().__init__(data)
        self.release_count = 0
        self._read_error = read_error

    async def read(self, size: int = -1) -> bytes:
        if self._read_error is not None:
            self._check_open()
            raise self._read_error
        return await super().read(size)

    async def _release(self) -> None:
        self.release_count += 1


class RecordingBodyTransform(BodyTransform):
    """
    Body transform double that checks the exact bytes it is handed.

    Reads `raw` completely, closes it, records the bytes, and then returns
    `output` or raises `error`.
    """

    def __init__(
        self,
        expected_body: Optional[bytes] = None,
        output: bytes = b"",
        error: Optional[BaseException] = None,
    ) -> None:
        self.expected_body = expected_body
        self.output = output
        self.error = error
        self.received: List[bytes] = []

    async def transform(self, raw: ByteStream) -> ByteStream:
        async with raw:
            body = await raw.read()
        self.received.append(body)
        if self.expected_body is not None:
            assert body == self.expected_body
        if self.error is not None:
            raise self.error
        return BytesStream(self.output)


class FakeManifestDownloader(ManifestDownloader):
    """Downloader double returning a fixed payload or raising a fixed error."""

    def __init__(
        self, payload: bytes = b"", error: Optional[BaseException] = None
    ) -> None:
        self.payload = payload
        self.error = error
        self.calls: List[Optional[float]] = []

    async def download(self, timeout: Optional[float] = None) -> ByteStream:
        self.calls.append(timeout)
        if self.error is not None:
            raise self.error
        return TrackingStream(self.payload)
