"""
Web features manifest model and parser.

The manifest travels as a versioned JSON envelope:

    {"version": 1, "data": {"<feature>": ["<test path>", ...], ...}}

Parsing is a pure function of the envelope bytes, so the parser works the same
on a freshly downloaded stream and on a file kept on disk.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Union,
)

import aiofiles

from featuremanifest.constants import SUPPORTED_MANIFEST_VERSION
from featuremanifest.download.interfaces import BodyTransform, ByteStream
from featuremanifest.download.transforms import (
    GzipBodyTransform,
    PassthroughBodyTransform,
)
from featuremanifest.exceptions import (
    DeadlineExceededError,
    MalformedManifestError,
    UnsupportedManifestVersionError,
)
from featuremanifest.log_utils import logger


class WebFeaturesData(Mapping[str, FrozenSet[str]]):
    """
    Immutable mapping from web feature identifier to its set of test paths.

    Equality is plain mapping equality, so two values parsed from the same
    envelope compare equal however the paths were ordered on the wire.
    """

    def __init__(self, data: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        self._data: Dict[str, FrozenSet[str]] = {
            feature: frozenset(tests) for feature, tests in (data or {}).items()
        }

    def __getitem__(self, feature: str) -> FrozenSet[str]:
        return self._data[feature]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        body = ", ".join(
            f"{feature!r}: {sorted(tests)!r}" for feature, tests in sorted(self._data.items())
        )
        return f"WebFeaturesData({{{body}}})"

    def tests_for_feature(self, feature: str) -> FrozenSet[str]:
        """Return the test paths of `feature`; empty for unknown features."""
        return self._data.get(feature, frozenset())

    def features_for_test(self, test: str) -> FrozenSet[str]:
        """Return every feature whose test set contains `test`."""
        return frozenset(
            feature for feature, tests in self._data.items() if test in tests
        )

    def test_matches_feature(self, test: str, feature: str) -> bool:
        return test in self.tests_for_feature(feature)

    def test_count(self) -> int:
        """Number of distinct test paths across all features."""
        return len(frozenset().union(*self._data.values())) if self._data else 0

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize back into a version 1 envelope with sorted path lists."""
        return {
            "version": SUPPORTED_MANIFEST_VERSION,
            "data": {feature: sorted(tests) for feature, tests in sorted(self._data.items())},
        }


class ManifestParser(ABC):
    """Turns a decoded manifest byte stream into WebFeaturesData."""

    @abstractmethod
    async def parse(
        self, stream: ByteStream, timeout: Optional[float] = None
    ) -> WebFeaturesData:
        """
        Read `stream` to the end, close it, and decode the manifest.

        Parameters:
            stream (ByteStream): Decoded manifest bytes. Always closed on return.
            timeout (Optional[float]): Seconds allowed for reading; None for no limit.

        Raises:
            MalformedManifestError: If the payload is not a valid envelope.
            UnsupportedManifestVersionError: If the envelope version is not understood.
            DeadlineExceededError: If `timeout` expires while reading.
        """


class JSONManifestParser(ManifestParser):
    """Parser for the JSON envelope."""

    async def parse(
        self, stream: ByteStream, timeout: Optional[float] = None
    ) -> WebFeaturesData:
        try:
            if timeout is None:
                payload = await stream.read()
            else:
                try:
                    payload = await asyncio.wait_for(stream.read(), timeout)
                except asyncio.TimeoutError as e:
                    logger.error(f"Reading the manifest did not finish within {timeout}s")
                    raise DeadlineExceededError(
                        "Timed out while reading the manifest", timeout=timeout
                    ) from e
        finally:
            await stream.close()

        return self.parse_bytes(payload)

    def parse_bytes(self, payload: bytes) -> WebFeaturesData:
        """Decode a complete envelope held in memory."""
        try:
            envelope = json.loads(
                payload.decode("utf-8"), parse_constant=_reject_constant
            )
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            logger.error(f"Manifest is not valid UTF-8 JSON: {e}")
            raise MalformedManifestError(
                "Manifest is not valid JSON", details=str(e)
            ) from e

        if not isinstance(envelope, dict):
            raise MalformedManifestError(
                "Manifest envelope must be a JSON object",
                details=f"got {type(envelope).__name__}",
            )

        version = envelope.get("version")
        if version is not None and (
            isinstance(version, bool) or not isinstance(version, int)
        ):
            raise MalformedManifestError(
                "Manifest version must be an integer", details=f"got {version!r}"
            )
        if version != SUPPORTED_MANIFEST_VERSION:
            logger.error(f"Unsupported manifest version: {version}")
            raise UnsupportedManifestVersionError(
                f"Unsupported manifest version {version}",
                version=version,
                details=f"supported version is {SUPPORTED_MANIFEST_VERSION}",
            )

        data = _validate_v1_data(envelope.get("data"))
        manifest = WebFeaturesData(data)
        logger.debug(f"Parsed manifest with {len(manifest)} features")
        return manifest


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"invalid JSON constant {name}")


def _validate_v1_data(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedManifestError(
            "Manifest data must be a JSON object",
            details=f"got {type(data).__name__}",
        )
    for feature, tests in data.items():
        if not isinstance(tests, list) or not all(isinstance(t, str) for t in tests):
            raise MalformedManifestError(
                "Manifest feature entries must be lists of strings",
                details=f"feature {feature!r}",
            )
    return data


class FileStream(ByteStream):
    """ByteStream over a file opened with aiofiles."""

    def __init__(self, handle: Any) -> None:
        super().__init__()
        self._handle = handle

    async def read(self, size: int = -1) -> bytes:
        self._check_open()
        return await self._handle.read(-1 if size is None else size)

    async def _release(self) -> None:
        await self._handle.close()


async def open_file_stream(path: Union[str, Path]) -> FileStream:
    """Open `path` for binary reading as a ByteStream."""
    handle = await aiofiles.open(path, "rb")
    return FileStream(handle)


async def load_manifest_file(
    path: Union[str, Path],
    parser: Optional[ManifestParser] = None,
    body_transform: Optional[BodyTransform] = None,
) -> WebFeaturesData:
    """
    Parse a manifest stored on disk.

    Files ending in `.gz` go through the gzip transform unless another
    transform is given.

    Parameters:
        path (Union[str, Path]): Manifest file (`.json` or `.json.gz`).
        parser (Optional[ManifestParser]): Parser to use; JSONManifestParser by default.
        body_transform (Optional[BodyTransform]): Transform applied before parsing.

    Returns:
        WebFeaturesData: The decoded manifest.

    Raises:
        OSError: If the file cannot be opened.
        ManifestError: If decoding fails.
    """
    path = Path(path)
    if body_transform is None:
        if path.suffix == ".gz":
            body_transform = GzipBodyTransform()
        else:
            body_transform = PassthroughBodyTransform()

    logger.debug(f"Loading manifest from {path}")
    raw = await open_file_stream(path)
    decoded = await body_transform.transform(raw)
    return await (parser or JSONManifestParser()).parse(decoded)
