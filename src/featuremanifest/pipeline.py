"""
End-to-end acquisition of the web features manifest.
"""

from typing import Optional

from aiohttp import ClientSession

from featuremanifest.config import ManifestSettings
from featuremanifest.download.downloader import GitHubManifestDownloader
from featuremanifest.download.interfaces import ManifestDownloader
from featuremanifest.log_utils import logger
from featuremanifest.manifest import JSONManifestParser, ManifestParser, WebFeaturesData
from featuremanifest.utils import create_session


async def fetch_web_features_manifest(
    settings: Optional[ManifestSettings] = None,
    session: Optional[ClientSession] = None,
    downloader: Optional[ManifestDownloader] = None,
    parser: Optional[ManifestParser] = None,
    timeout: Optional[float] = None,
) -> WebFeaturesData:
    """
    Download and parse the manifest of the configured repository's latest release.

    A session is created (and closed again) when none is supplied. Passing a
    `downloader` skips the GitHub pipeline entirely, which is how consumers
    substitute a double.

    Parameters:
        settings (Optional[ManifestSettings]): Source settings; defaults when omitted.
        session (Optional[ClientSession]): HTTP client to use; owned by the caller.
        downloader (Optional[ManifestDownloader]): Downloader to use instead of the GitHub one.
        parser (Optional[ManifestParser]): Parser to use; JSONManifestParser by default.
        timeout (Optional[float]): Seconds allowed for the download; None for no limit.

    Returns:
        WebFeaturesData: The decoded manifest.

    Raises:
        ManifestError: A subclass identifying the failing step.
    """
    settings = settings or ManifestSettings()
    parser = parser or JSONManifestParser()

    if downloader is not None:
        stream = await downloader.download(timeout=timeout)
        return await parser.parse(stream)

    owned_session = session is None
    active_session = session or create_session(timeout=settings.request_timeout)
    try:
        downloader = GitHubManifestDownloader(active_session, settings=settings)
        stream = await downloader.download(timeout=timeout)
        manifest = await parser.parse(stream)
    finally:
        if owned_session:
            await active_session.close()

    logger.info(
        f"Loaded web features manifest from {settings.repo_owner}/{settings.repo_name}: "
        f"{len(manifest)} features, {manifest.test_count()} tests"
    )
    return manifest
