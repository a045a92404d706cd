"""
GitHub Release Source

This module resolves the manifest asset of a repository's latest GitHub
release. It is read-only: one call to the "latest release" endpoint, then an
exact-name search through the release's assets.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp
from aiohttp import ClientResponse, ClientSession

from featuremanifest.constants import (
    GITHUB_API_BASE,
    LATEST_RELEASE_PATH,
    RATE_LIMIT_WARNING_THRESHOLD,
)
from featuremanifest.exceptions import (
    AssetNotFoundError,
    DeadlineExceededError,
    RateLimitError,
    ReleaseLookupError,
)
from featuremanifest.log_utils import logger
from featuremanifest.utils import (
    build_github_headers,
    get_effective_github_token,
    is_retryable_status,
)

from .interfaces import Asset, Release


def _parse_int_header(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class GitHubReleaseResolver:
    """
    Looks up the latest release of a repository and finds an asset on it.

    Usage:
        resolver = GitHubReleaseResolver(session, github_token=token)
        asset = await resolver.resolve_asset(
            "web-platform-tests", "wpt", "WEB_FEATURES_MANIFEST.json.gz"
        )
    """

    def __init__(
        self,
        session: ClientSession,
        api_base: str = GITHUB_API_BASE,
        github_token: Optional[str] = None,
        allow_env_token: bool = True,
    ) -> None:
        """
        Initialize the resolver.

        Parameters:
            session (ClientSession): HTTP client used for API requests.
            api_base (str): Base URL of the GitHub REST API.
            github_token (Optional[str]): Explicit API token.
            allow_env_token (bool): Whether GITHUB_TOKEN may be used when no explicit token is given.
        """
        self.session = session
        self.api_base = api_base.rstrip("/")
        self.github_token = get_effective_github_token(github_token, allow_env_token)

    def latest_release_url(self, owner: str, repo: str) -> str:
        return self.api_base + LATEST_RELEASE_PATH.format(
            owner=quote(owner, safe=""), repo=quote(repo, safe="")
        )

    async def get_latest_release(self, owner: str, repo: str) -> Release:
        """
        Fetch the latest published release of `owner/repo`.

        Returns:
            Release: The release with its assets.

        Raises:
            ReleaseLookupError: If the request fails, returns a non-2xx status,
                or returns a payload that is not a release object.
            RateLimitError: If the API rate limit is exhausted.
            DeadlineExceededError: If the session's timeout expires.
        """
        url = self.latest_release_url(owner, repo)
        logger.debug(f"Making GitHub API request: {url}")
        try:
            async with self.session.get(
                url, headers=build_github_headers(self.github_token)
            ) as response:
                self._log_rate_limit(response)
                self._raise_for_status(response, url)
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    logger.error(f"Invalid JSON in release response from {url}: {e}")
                    raise ReleaseLookupError(
                        "Invalid release payload",
                        endpoint=url,
                        status_code=response.status,
                        details=str(e),
                    ) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out fetching latest release from {url}")
            raise DeadlineExceededError(
                "Timed out while looking up the latest release", details=url
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Network error fetching latest release from {url}: {e}")
            raise ReleaseLookupError(
                f"Network error: {e}", endpoint=url, is_retryable=True
            ) from e

        if not isinstance(data, dict):
            logger.error(
                f"Unexpected release payload type from {url}: expected dict, got {type(data).__name__}"
            )
            raise ReleaseLookupError(
                "Invalid release payload",
                endpoint=url,
                details=f"expected an object, got {type(data).__name__}",
            )

        release = create_release_from_github_data(data)
        logger.debug(
            f"Latest release of {owner}/{repo} is {release.tag_name or '<untagged>'} "
            f"with {len(release.assets)} assets"
        )
        return release

    async def resolve_asset(
        self,
        owner: str,
        repo: str,
        asset_name: str,
        timeout: Optional[float] = None,
    ) -> Asset:
        """
        Find the asset named exactly `asset_name` on the latest release of `owner/repo`.

        Parameters:
            owner (str): Repository owner.
            repo (str): Repository name.
            asset_name (str): Exact, case-sensitive asset filename.
            timeout (Optional[float]): Seconds allowed for the lookup; None for no limit.

        Returns:
            Asset: The first asset whose name equals `asset_name`.

        Raises:
            ReleaseLookupError: If the release cannot be retrieved.
            AssetNotFoundError: If no asset matches.
            DeadlineExceededError: If `timeout` expires.
        """
        if timeout is None:
            release = await self.get_latest_release(owner, repo)
        else:
            try:
                release = await asyncio.wait_for(
                    self.get_latest_release(owner, repo), timeout
                )
            except asyncio.TimeoutError as e:
                raise DeadlineExceededError(
                    "Timed out while looking up the latest release", timeout=timeout
                ) from e
        return find_asset(release, asset_name)

    def _raise_for_status(self, response: ClientResponse, url: str) -> None:
        status = response.status
        if 200 <= status < 300:
            return

        if status == 403:
            remaining = _parse_int_header(response.headers.get("X-RateLimit-Remaining"))
            if remaining == 0:
                reset_time = _parse_int_header(response.headers.get("X-RateLimit-Reset"))
                logger.error(
                    f"GitHub API rate limit exceeded for {url}. Resets at {reset_time}"
                )
                raise RateLimitError(reset_time=reset_time, remaining=0, endpoint=url)

        logger.error(f"HTTP error fetching latest release from {url}: {status}")
        raise ReleaseLookupError(
            f"HTTP error {status}",
            endpoint=url,
            status_code=status,
            is_retryable=is_retryable_status(status),
        )

    def _log_rate_limit(self, response: ClientResponse) -> None:
        headers = getattr(response, "headers", None) or {}
        remaining = _parse_int_header(headers.get("X-RateLimit-Remaining"))
        if remaining is None:
            return

        logger.debug(f"GitHub API rate-limit remaining: {remaining}")
        if remaining <= RATE_LIMIT_WARNING_THRESHOLD:
            logger.warning(
                f"GitHub API rate limit running low: {remaining} requests remaining"
            )

        reset = _parse_int_header(headers.get("X-RateLimit-Reset"))
        if reset is not None:
            try:
                reset_time = datetime.fromtimestamp(reset, timezone.utc)
            except (ValueError, OverflowError, OSError):
                return
            seconds_left = (reset_time - datetime.now(timezone.utc)).total_seconds()
            if seconds_left > 0:
                logger.debug(
                    f"GitHub API rate limit resets in ~{int(seconds_left / 60)} minutes"
                )


def create_release_from_github_data(release_data: Dict[str, Any]) -> Release:
    """
    Create a Release object from GitHub API release data.

    Malformed asset entries (non-objects, missing or non-string names) are
    skipped with a warning; a missing download URL is kept as an empty string
    so the asset can still be reported by name.

    Parameters:
        release_data (Dict[str, Any]): Raw release object from the GitHub API.

    Returns:
        Release: The release with every well-formed asset, in API order.
    """
    tag_name = release_data.get("tag_name")
    if not isinstance(tag_name, str):
        tag_name = ""

    release = Release(
        tag_name=tag_name.strip(),
        name=release_data.get("name"),
        published_at=release_data.get("published_at"),
    )

    assets_data = release_data.get("assets") or []
    if not isinstance(assets_data, list):
        logger.warning(
            f"Ignoring assets of release {tag_name or '<untagged>'} due to invalid type "
            f"{type(assets_data).__name__}"
        )
        assets_data = []

    for asset_data in assets_data:
        if not isinstance(asset_data, dict):
            logger.warning(
                f"Skipping malformed asset in release {tag_name or '<untagged>'}"
            )
            continue
        asset_name = asset_data.get("name")
        if not isinstance(asset_name, str) or not asset_name:
            logger.warning(
                f"Skipping asset with invalid name in release {tag_name or '<untagged>'}"
            )
            continue
        download_url = asset_data.get("browser_download_url")
        size = asset_data.get("size")
        release.assets.append(
            Asset(
                name=asset_name,
                download_url=download_url if isinstance(download_url, str) else "",
                size=size if isinstance(size, int) and not isinstance(size, bool) else None,
                content_type=asset_data.get("content_type"),
            )
        )

    return release


def find_asset(release: Release, asset_name: str) -> Asset:
    """
    Return the first asset of `release` whose name equals `asset_name` exactly.

    Matching is case-sensitive with no partial or fuzzy fallback.

    Raises:
        AssetNotFoundError: If no asset matches, or the match has no download URL.
    """
    available = [asset.name for asset in release.assets]
    for asset in release.assets:
        if asset.name != asset_name:
            continue
        if not asset.download_url:
            logger.error(f"Asset {asset_name} has no download URL")
            raise AssetNotFoundError(
                f"Asset {asset_name} has no download URL",
                asset_name=asset_name,
                available=available,
            )
        return asset

    logger.error(
        f"No asset named {asset_name} in release {release.tag_name or '<untagged>'}"
    )
    raise AssetNotFoundError(
        f"No asset named {asset_name} found in the latest release",
        asset_name=asset_name,
        available=available,
        details=f"available assets: {', '.join(available) or 'none'}",
    )
