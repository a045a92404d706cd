"""
Core Interfaces for the featuremanifest Download Subsystem

This module defines the data structures and abstract seams of the manifest
pipeline: the release/asset model reported by the hosting service, the async
byte stream passed between stages, the pluggable body transform, and the
downloader contract that downstream consumers depend on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from featuremanifest.constants import DEFAULT_CHUNK_SIZE


@dataclass
class Asset:
    """Represents a downloadable asset attached to a release."""

    name: str
    """The filename of the asset"""

    download_url: str
    """Direct URL to download the asset"""

    size: Optional[int] = None
    """File size in bytes, when reported"""

    content_type: Optional[str] = None
    """MIME type of the asset"""


@dataclass
class Release:
    """Represents a published release of a repository."""

    tag_name: str
    """The release tag (e.g., 'merge_pr_12345')"""

    name: Optional[str] = None
    """Human readable release title"""

    published_at: Optional[str] = None
    """ISO 8601 timestamp when the release was published"""

    assets: List[Asset] = field(default_factory=list)
    """Assets attached to this release, in the order the API lists them"""


class DownloadStage(str, Enum):
    """Stages of a single manifest download."""

    START = "start"
    RESOLVING_ASSET = "resolving_asset"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    READY = "ready"
    FAILED = "failed"


class ByteStream(ABC):
    """
    Asynchronous, closeable stream of bytes.

    `read()` returns b"" at end of stream. `close()` releases the underlying
    resource exactly once; further calls are no-ops. Streams are async context
    managers and iterate over chunks.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def read(self, size: int = -1) -> bytes:
        """
        Read up to `size` bytes, or everything that is left when `size` is negative.

        Returns:
            bytes: The data read; empty once the stream is exhausted.
        """

    async def _release(self) -> None:
        """Release the underlying resource. Called at most once."""

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._release()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed stream")

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __aiter__(self) -> "ByteStream":
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read(DEFAULT_CHUNK_SIZE)
        if not chunk:
            raise StopAsyncIteration
        return chunk


class BytesStream(ByteStream):
    """ByteStream over an in-memory buffer."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._data = data
        self._position = 0

    async def read(self, size: int = -1) -> bytes:
        self._check_open()
        if size is None or size < 0:
            end = len(self._data)
        else:
            end = min(self._position + size, len(self._data))
        chunk = self._data[self._position : end]
        self._position = end
        return chunk


class BodyTransform(ABC):
    """
    Stateless strategy converting a raw byte stream into a decoded one.

    The returned stream owns `raw`: closing it closes `raw`. If the transform
    fails, `raw` is closed before the error propagates.
    """

    @abstractmethod
    async def transform(self, raw: ByteStream) -> ByteStream:
        """
        Wrap `raw` in a decoding stream.

        Raises:
            DecompressionError: If `raw` cannot be decoded by this transform.
        """


class ManifestDownloader(ABC):
    """
    Source of the encoded-then-decoded web features manifest.

    This is the unit downstream jobs depend on and replace with a double in
    their own tests.
    """

    @abstractmethod
    async def download(self, timeout: Optional[float] = None) -> ByteStream:
        """
        Produce the decoded manifest byte stream.

        Parameters:
            timeout (Optional[float]): Seconds allowed for the whole download; None for no limit.

        Returns:
            ByteStream: The decoded manifest; the caller must close it.

        Raises:
            ManifestError: A subclass naming the stage that failed.
        """
