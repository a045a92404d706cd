"""
Asset Fetcher

Retrieves the bytes of a release asset with a caller-supplied aiohttp session.
Retry, proxy and timeout policy belong to that session; the fetcher only
classifies the outcome.
"""

import asyncio
from typing import Awaitable, Optional

import aiohttp
from aiohttp import ClientResponse, ClientSession

from featuremanifest.constants import HTTP_STATUS_NO_CONTENT
from featuremanifest.exceptions import (
    DeadlineExceededError,
    EmptyBodyError,
    TransportError,
)
from featuremanifest.log_utils import logger
from featuremanifest.utils import is_retryable_status

from .interfaces import ByteStream


class ResponseStream(ByteStream):
    """
    ByteStream reading the body of a live aiohttp response.

    `has_data()` takes the first chunk off the response up front so an empty
    body can be detected before anyone reads; that chunk is served before
    anything else. Failures while reading are reported as TransportError,
    timeouts as DeadlineExceededError.
    """

    def __init__(self, response: ClientResponse, url: str) -> None:
        super().__init__()
        self._response = response
        self._url = url
        self._initial = b""

    async def has_data(self) -> bool:
        """Return True if the body holds at least one byte."""
        self._check_open()
        if not self._initial:
            self._initial = await self._guarded(self._response.content.readany())
        return bool(self._initial)

    async def read(self, size: int = -1) -> bytes:
        self._check_open()
        unbounded = size is None or size < 0
        if self._initial:
            if not unbounded:
                chunk, self._initial = self._initial[:size], self._initial[size:]
                return chunk
            head, self._initial = self._initial, b""
            return head + await self._guarded(self._response.content.read(-1))
        return await self._guarded(
            self._response.content.read(-1 if unbounded else size)
        )

    async def _guarded(self, pending: Awaitable[bytes]) -> bytes:
        try:
            return await pending
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out reading body of {self._url}")
            raise DeadlineExceededError(
                "Timed out while reading asset body", details=self._url
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Network error reading body of {self._url}: {e}")
            raise TransportError(
                f"Network error while reading asset body: {e}",
                url=self._url,
                is_retryable=True,
            ) from e

    async def _release(self) -> None:
        # A fully read body has already handed its connection back to the
        # pool, in which case close() only marks the response closed.
        self._response.close()


class AssetFetcher:
    """
    Issue the GET for a resolved asset and hand back its body as a stream.

    Usage:
        async with aiohttp.ClientSession() as session:
            stream = await AssetFetcher(session).fetch(asset.download_url)
    """

    def __init__(self, session: ClientSession) -> None:
        """
        Parameters:
            session (ClientSession): HTTP client used for the asset request.
        """
        self.session = session

    async def fetch(self, download_url: str) -> ByteStream:
        """
        Fetch `download_url` without buffering its body.

        Returns:
            ByteStream: Stream over the response body; the caller must close it.

        Raises:
            TransportError: If the request fails or the status is not 2xx.
            EmptyBodyError: If the response is 204 or carries no bytes.
            DeadlineExceededError: If the session's timeout expires.
        """
        logger.debug(f"Fetching asset from {download_url}")
        try:
            response = await self.session.get(download_url)
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out fetching {download_url}")
            raise DeadlineExceededError(
                "Timed out while fetching asset", details=download_url
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"Network error fetching {download_url}: {e}")
            raise TransportError(
                f"Network error: {e}", url=download_url, is_retryable=True
            ) from e

        try:
            return await self._open_body(response, download_url)
        except BaseException:
            response.close()
            raise

    async def _open_body(self, response: ClientResponse, url: str) -> ByteStream:
        status = response.status
        logger.debug(f"Received HTTP response status code: {status} for URL: {url}")

        if status == HTTP_STATUS_NO_CONTENT:
            raise EmptyBodyError(
                "Asset download returned no content", url=url, status_code=status
            )
        if not 200 <= status < 300:
            logger.error(f"HTTP error {status} fetching {url}")
            raise TransportError(
                f"HTTP error {status}",
                url=url,
                status_code=status,
                is_retryable=is_retryable_status(status),
            )

        content_length: Optional[int] = response.content_length
        if content_length == 0:
            raise EmptyBodyError(
                "Asset download returned an empty body", url=url, status_code=status
            )

        stream = ResponseStream(response, url)
        if not await stream.has_data():
            raise EmptyBodyError(
                "Asset download returned an empty body", url=url, status_code=status
            )

        logger.debug(f"Streaming asset body from {url}")
        return stream
