"""
Tests for GitHubManifestDownloader.

The scenarios run the full resolve -> fetch -> transform chain over a
FakeSession, so each failure point is exercised with the requests that
actually reach the wire.
"""

import asyncio

import aiohttp
import pytest

from featuremanifest.config import ManifestSettings
from featuremanifest.download.downloader import GitHubManifestDownloader
from featuremanifest.download.transforms import GzipBodyTransform
from featuremanifest.exceptions import (
    AssetNotFoundError,
    DeadlineExceededError,
    DecompressionError,
    EmptyBodyError,
    ReleaseLookupError,
    TransportError,
)
from featuremanifest.manifest import JSONManifestParser
from tests.conftest import (
    LATEST_RELEASE_URL,
    MANIFEST_ASSET_NAME,
    MANIFEST_DOWNLOAD_URL,
)
from tests.doubles import FakeResponse, FakeSession, RecordingBodyTransform, hang

pytestmark = [pytest.mark.integration, pytest.mark.core_downloads]


@pytest.mark.asyncio
class TestGitHubManifestDownloader:
    async def test_download_and_parse(self, github_session, compressed_manifest_bytes):
        """The stored release asset decodes into the expected feature sets."""
        github_session.routes[MANIFEST_DOWNLOAD_URL] = FakeResponse(
            status=200, body=compressed_manifest_bytes
        )
        downloader = GitHubManifestDownloader(github_session)

        stream = await downloader.download()
        manifest = await JSONManifestParser().parse(stream)

        assert dict(manifest) == {
            "grid": frozenset({"test1.js", "test2.js"}),
            "subgrid": frozenset({"test3.js", "test4.js"}),
        }
        assert github_session.requests == [LATEST_RELEASE_URL, MANIFEST_DOWNLOAD_URL]
        assert stream.closed

    async def test_transform_receives_exact_asset_bytes(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = FakeResponse(
            status=200, body=b"raw data"
        )
        transform = RecordingBodyTransform(expected_body=b"raw data", output=b"decoded")
        downloader = GitHubManifestDownloader(github_session, body_transform=transform)

        stream = await downloader.download()

        assert transform.received == [b"raw data"]
        assert await stream.read() == b"decoded"

    async def test_release_lookup_failure(self):
        session = FakeSession({LATEST_RELEASE_URL: FakeResponse(status=500)})
        downloader = GitHubManifestDownloader(session)

        with pytest.raises(ReleaseLookupError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "resolving_asset"
        assert session.requests == [LATEST_RELEASE_URL]

    async def test_release_without_assets(self):
        session = FakeSession(
            {
                LATEST_RELEASE_URL: FakeResponse(
                    status=200, json_data={"tag_name": "v1", "assets": []}
                )
            }
        )
        downloader = GitHubManifestDownloader(session)

        with pytest.raises(AssetNotFoundError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "resolving_asset"
        assert session.requests == [LATEST_RELEASE_URL]

    async def test_asset_name_is_case_sensitive(self, github_session):
        settings = ManifestSettings(asset_name=MANIFEST_ASSET_NAME.lower())
        downloader = GitHubManifestDownloader(github_session, settings=settings)

        with pytest.raises(AssetNotFoundError):
            await downloader.download()

        assert MANIFEST_DOWNLOAD_URL not in github_session.requests

    async def test_transport_failure(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = aiohttp.ClientConnectionError(
            "connection reset by peer"
        )
        downloader = GitHubManifestDownloader(github_session)

        with pytest.raises(TransportError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "fetching"
        assert exc_info.value.url == MANIFEST_DOWNLOAD_URL

    async def test_http_error_on_asset(self, github_session):
        response = FakeResponse(status=503)
        github_session.routes[MANIFEST_DOWNLOAD_URL] = response
        downloader = GitHubManifestDownloader(github_session)

        with pytest.raises(TransportError) as exc_info:
            await downloader.download()

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_retryable is True
        assert response.close_calls == 1

    async def test_no_content(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = FakeResponse(status=204)
        downloader = GitHubManifestDownloader(github_session)

        with pytest.raises(EmptyBodyError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "fetching"

    async def test_body_is_not_gzip(self, github_session):
        response = FakeResponse(status=200, body=b'{"version": 1, "data": {}}')
        github_session.routes[MANIFEST_DOWNLOAD_URL] = response
        downloader = GitHubManifestDownloader(github_session)

        with pytest.raises(DecompressionError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "transforming"
        assert response.close_calls == 1

    async def test_transform_error_stage(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = FakeResponse(
            status=200, body=b"raw data"
        )
        transform = RecordingBodyTransform(error=DecompressionError("bad body"))
        downloader = GitHubManifestDownloader(github_session, body_transform=transform)

        with pytest.raises(DecompressionError) as exc_info:
            await downloader.download()

        assert exc_info.value.stage == "transforming"

    async def test_settings_select_repository(self, manifest_release_data):
        custom_url = "https://ghe.example.com/api/v3/repos/me/features/releases/latest"
        session = FakeSession(
            {custom_url: FakeResponse(status=200, json_data=manifest_release_data)}
        )
        settings = ManifestSettings(
            repo_owner="me",
            repo_name="features",
            api_base="https://ghe.example.com/api/v3",
        )
        downloader = GitHubManifestDownloader(
            session,
            settings=settings,
            body_transform=RecordingBodyTransform(),
        )
        session.routes[MANIFEST_DOWNLOAD_URL] = FakeResponse(status=200, body=b"x")

        await downloader.download()

        assert session.requests == [custom_url, MANIFEST_DOWNLOAD_URL]

    async def test_timeout(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = hang
        downloader = GitHubManifestDownloader(github_session)

        with pytest.raises(DeadlineExceededError) as exc_info:
            await downloader.download(timeout=0.05)

        assert exc_info.value.timeout == 0.05
        assert exc_info.value.is_retryable is True

    async def test_cancellation_is_not_wrapped(self, github_session):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = hang
        downloader = GitHubManifestDownloader(github_session)

        task = asyncio.ensure_future(downloader.download())
        while MANIFEST_DOWNLOAD_URL not in github_session.requests:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_concurrent_downloads_are_independent(
        self, github_session, compressed_manifest_bytes
    ):
        github_session.routes[MANIFEST_DOWNLOAD_URL] = lambda: _fresh_response(
            compressed_manifest_bytes
        )
        downloader = GitHubManifestDownloader(
            github_session, body_transform=GzipBodyTransform(chunk_size=8)
        )
        parser = JSONManifestParser()

        async def download_and_parse():
            return await parser.parse(await downloader.download())

        first, second = await asyncio.gather(download_and_parse(), download_and_parse())

        assert first == second
        assert len(first) == 2


async def _fresh_response(body: bytes) -> FakeResponse:
    return FakeResponse(status=200, body=body)
