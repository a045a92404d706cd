from pathlib import Path

import pytest

from tests.doubles import FakeResponse, FakeSession

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Use tests.doubles.FakeSession "
    "or mock aiohttp.ClientSession."
)

TESTDATA_DIR = Path(__file__).parent / "testdata"

MANIFEST_ASSET_NAME = "WEB_FEATURES_MANIFEST.json.gz"
MANIFEST_DOWNLOAD_URL = "https://example.com/WEB_FEATURES_MANIFEST.json.gz"
LATEST_RELEASE_URL = "https://api.github.com/repos/web-platform-tests/wpt/releases/latest"


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG` explaining that async network access is blocked.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used across the suite.

    Parameters:
        config: pytest.Config
    """
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test (auto-detected)"
    )
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line(
        "markers", "core_downloads: manifest download pipeline tests"
    )
    config.addinivalue_line(
        "markers", "integration: end-to-end pipeline scenarios over fake transports"
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests.

    Replaces aiohttp's top-level request and ClientSession HTTP methods with an
    async blocker.
    """
    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession._request = _async_block_network  # type: ignore[assignment]


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Keep tests away from the user's configuration and credentials.

    Points the configuration file into a temporary directory and removes
    GITHUB_TOKEN and FEATUREMANIFEST_LOG_LEVEL from the environment.
    """
    from featuremanifest import config

    config_dir = tmp_path_factory.mktemp("featuremanifest-config")
    monkeypatch.setattr(config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(config, "CONFIG_FILE", str(config_dir / "config.yaml"))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("FEATUREMANIFEST_LOG_LEVEL", raising=False)


@pytest.fixture
def compressed_manifest_bytes():
    """Gzip-compressed version 1 manifest with features grid and subgrid."""
    return (TESTDATA_DIR / "WEB_FEATURES_MANIFEST.json.gz").read_bytes()


@pytest.fixture
def manifest_release_data():
    """Latest-release payload carrying exactly one manifest asset."""
    return {
        "tag_name": "merge_pr_48000",
        "name": "merge_pr_48000",
        "published_at": "2024-09-01T00:00:00Z",
        "assets": [
            {
                "name": MANIFEST_ASSET_NAME,
                "browser_download_url": MANIFEST_DOWNLOAD_URL,
                "size": 80,
                "content_type": "application/gzip",
            }
        ],
    }


@pytest.fixture
def github_session(manifest_release_data):
    """
    Provide a FakeSession serving the latest-release endpoint.

    Tests add a route for MANIFEST_DOWNLOAD_URL as needed.
    """
    return FakeSession(
        {LATEST_RELEASE_URL: FakeResponse(status=200, json_data=manifest_release_data)}
    )
