"""
featuremanifest Download Subsystem

Pipeline stages for acquiring the web features manifest:

- interfaces: data structures, byte streams and abstract seams
- github_source: latest-release lookup and exact-name asset resolution
- fetcher: asset GET over an injected aiohttp session
- transforms: gzip and passthrough body transforms
- downloader: the composed resolve -> fetch -> transform pipeline
"""

from .downloader import GitHubManifestDownloader
from .fetcher import AssetFetcher, ResponseStream
from .github_source import GitHubReleaseResolver, create_release_from_github_data, find_asset
from .interfaces import (
    Asset,
    BodyTransform,
    ByteStream,
    BytesStream,
    DownloadStage,
    ManifestDownloader,
    Release,
)
from .transforms import GzipBodyTransform, GzipStream, PassthroughBodyTransform

__all__ = [
    # Interfaces
    "Asset",
    "BodyTransform",
    "ByteStream",
    "BytesStream",
    "DownloadStage",
    "ManifestDownloader",
    "Release",
    # Pipeline stages
    "AssetFetcher",
    "GitHubManifestDownloader",
    "GitHubReleaseResolver",
    "GzipBodyTransform",
    "GzipStream",
    "PassthroughBodyTransform",
    "ResponseStream",
    "create_release_from_github_data",
    "find_asset",
]
