"""
Body transforms applied to downloaded assets before parsing.
"""

import zlib
from typing import Optional

from featuremanifest.constants import (
    DEFAULT_CHUNK_SIZE,
    GZIP_DEFLATE_METHOD,
    GZIP_HEADER_SIZE,
    GZIP_MAGIC,
)
from featuremanifest.exceptions import DecompressionError
from featuremanifest.log_utils import logger

from .interfaces import BodyTransform, ByteStream

# zlib window bits selecting the gzip container format
GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipStream(ByteStream):
    """
    Lazily decompressing view over a gzip-compressed ByteStream.

    Data is inflated as the caller reads, never beyond the size asked for, so
    the compressed and decompressed payloads are never held in memory in
    full. Concatenated gzip members are decoded as one stream. Closing this
    stream closes the raw one.
    """

    def __init__(
        self, raw: ByteStream, head: bytes = b"", chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> None:
        super().__init__()
        self._raw = raw
        # compressed input not yet accepted by the current decompressor
        self._pending = head
        self._chunk_size = chunk_size
        self._decompressor = zlib.decompressobj(GZIP_WBITS)
        self._buffer = bytearray()
        self._eof = False

    def _feed(self, data: bytes, limit: Optional[int]) -> None:
        try:
            self._buffer += self._decompressor.decompress(data, limit or 0)
        except zlib.error as e:
            raise DecompressionError("Corrupt compressed stream", details=str(e)) from e
        self._pending = self._decompressor.unconsumed_tail

    async def _fill(self, limit: Optional[int]) -> None:
        if self._pending:
            self._feed(self._pending, limit)
            return

        if self._decompressor.eof:
            leftover = self._decompressor.unused_data
            if not leftover:
                leftover = await self._raw.read(self._chunk_size)
                if not leftover:
                    self._eof = True
                    return
            self._decompressor = zlib.decompressobj(GZIP_WBITS)
            self._feed(leftover, limit)
            return

        chunk = await self._raw.read(self._chunk_size)
        if not chunk:
            # output held back by an earlier limit can still be pending
            before = len(self._buffer)
            self._feed(b"", limit)
            if len(self._buffer) == before and not self._decompressor.eof:
                raise DecompressionError(
                    "Compressed stream ended unexpectedly",
                    details="truncated gzip data",
                )
            return
        self._feed(chunk, limit)

    async def read(self, size: int = -1) -> bytes:
        self._check_open()
        unbounded = size is None or size < 0
        while not self._eof and (unbounded or len(self._buffer) < size):
            await self._fill(None if unbounded else size - len(self._buffer))

        if unbounded:
            size = len(self._buffer)
        chunk = bytes(self._buffer[:size])
        del self._buffer[:size]
        return chunk

    async def _release(self) -> None:
        await self._raw.close()


async def _read_exactly(stream: ByteStream, size: int) -> bytes:
    """Read up to `size` bytes, stopping early only at end of stream."""
    data = b""
    while len(data) < size:
        chunk = await stream.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


class GzipBodyTransform(BodyTransform):
    """
    Decompress a gzip-encoded body.

    The gzip header is validated eagerly so a body in the wrong format fails
    here rather than on the first read; everything after the header is
    decompressed lazily by the returned GzipStream.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    async def transform(self, raw: ByteStream) -> ByteStream:
        try:
            head = await _read_exactly(raw, GZIP_HEADER_SIZE)
            problem: Optional[str] = None
            if len(head) < GZIP_HEADER_SIZE:
                problem = f"stream too short for a gzip header ({len(head)} bytes)"
            elif head[:2] != GZIP_MAGIC:
                problem = f"bad magic number {head[:2].hex()}"
            elif head[2] != GZIP_DEFLATE_METHOD:
                problem = f"unsupported compression method {head[2]}"
            if problem is not None:
                logger.error(f"Rejecting compressed body: {problem}")
                raise DecompressionError("Invalid gzip header", details=problem)
        except BaseException:
            await raw.close()
            raise

        logger.debug("Gzip header validated; decompressing lazily")
        return GzipStream(raw, head=head, chunk_size=self.chunk_size)


class PassthroughBodyTransform(BodyTransform):
    """Transform for bodies that are served uncompressed."""

    async def transform(self, raw: ByteStream) -> ByteStream:
        return raw
