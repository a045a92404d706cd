"""
Manifest Downloader

Chains release lookup, asset fetch and body transform into the one call
downstream jobs depend on.
"""

import asyncio
from typing import Optional

from aiohttp import ClientSession

from featuremanifest.config import ManifestSettings
from featuremanifest.exceptions import DeadlineExceededError, ManifestError
from featuremanifest.log_utils import logger

from .fetcher import AssetFetcher
from .github_source import GitHubReleaseResolver
from .interfaces import (
    BodyTransform,
    ByteStream,
    DownloadStage,
    ManifestDownloader,
)
from .transforms import GzipBodyTransform


class GitHubManifestDownloader(ManifestDownloader):
    """
    Downloads the web features manifest from the latest GitHub release.

    Each call walks START -> RESOLVING_ASSET -> FETCHING -> TRANSFORMING ->
    READY and stops at the first failure. The stage lives in the call, not on
    the instance, so concurrent downloads share nothing.

    Usage:
        async with aiohttp.ClientSession() as session:
            downloader = GitHubManifestDownloader(session, settings=settings)
            stream = await downloader.download(timeout=60)
    """

    def __init__(
        self,
        session: ClientSession,
        settings: Optional[ManifestSettings] = None,
        resolver: Optional[GitHubReleaseResolver] = None,
        body_transform: Optional[BodyTransform] = None,
    ) -> None:
        """
        Parameters:
            session (ClientSession): HTTP client for the asset fetch (and the
                release lookup when no resolver is given).
            settings (Optional[ManifestSettings]): Repository and asset to use; defaults apply when omitted.
            resolver (Optional[GitHubReleaseResolver]): Release lookup to use instead of one built from settings.
            body_transform (Optional[BodyTransform]): Decoder for the asset body; gzip by default.
        """
        self.settings = settings or ManifestSettings()
        self.resolver = resolver or GitHubReleaseResolver(
            session,
            api_base=self.settings.api_base,
            github_token=self.settings.github_token,
            allow_env_token=self.settings.allow_env_token,
        )
        self.fetcher = AssetFetcher(session)
        self.body_transform = body_transform or GzipBodyTransform()

    async def download(self, timeout: Optional[float] = None) -> ByteStream:
        if timeout is None:
            return await self._download()
        try:
            return await asyncio.wait_for(self._download(), timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Manifest download did not finish within {timeout}s")
            raise DeadlineExceededError(
                "Manifest download timed out", timeout=timeout
            ) from e

    async def _download(self) -> ByteStream:
        settings = self.settings
        stage = DownloadStage.START
        try:
            stage = self._enter(DownloadStage.RESOLVING_ASSET)
            asset = await self.resolver.resolve_asset(
                settings.repo_owner, settings.repo_name, settings.asset_name
            )

            stage = self._enter(DownloadStage.FETCHING)
            raw = await self.fetcher.fetch(asset.download_url)

            stage = self._enter(DownloadStage.TRANSFORMING)
            decoded = await self.body_transform.transform(raw)
        except ManifestError as e:
            if e.stage is None:
                e.stage = stage.value
            logger.debug(
                f"Manifest download {DownloadStage.FAILED.value} while {stage.value}: "
                f"{type(e).__name__}"
            )
            raise

        self._enter(DownloadStage.READY)
        return decoded

    @staticmethod
    def _enter(stage: DownloadStage) -> DownloadStage:
        logger.debug(f"Manifest download stage: {stage.value}")
        return stage
