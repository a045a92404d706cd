import importlib.metadata
import os
from typing import Dict, Optional

from aiohttp import ClientSession, ClientTimeout, TCPConnector

from featuremanifest.constants import (
    APP_NAME,
    DEFAULT_CONNECTOR_LIMIT,
    DEFAULT_REQUEST_TIMEOUT,
    GITHUB_ACCEPT_HEADER,
    GITHUB_API_VERSION,
    GITHUB_TOKEN_ENV_VAR,
    HTTP_STATUS_RETRY_THRESHOLD,
    RETRYABLE_HTTP_STATUSES,
)
from featuremanifest.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE: Optional[str] = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `featuremanifest/{version}`, where `{version}` is the installed package version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def get_effective_github_token(
    github_token: Optional[str], allow_env_token: bool = True
) -> Optional[str]:
    """
    Determine the GitHub token to use, preferring the explicit argument over the environment.

    Parameters:
        github_token (Optional[str]): Explicit token to use; leading and trailing whitespace are ignored.
        allow_env_token (bool): If True, fall back to the `GITHUB_TOKEN` environment variable when no explicit token is provided.

    Returns:
        Optional[str]: The chosen token with surrounding whitespace removed, or `None` if no token is available.
    """
    candidate = (github_token or "").strip()
    if candidate:
        return candidate
    if not allow_env_token:
        return None
    env_token = os.environ.get(GITHUB_TOKEN_ENV_VAR)
    return env_token.strip() if env_token and env_token.strip() else None


def build_github_headers(github_token: Optional[str] = None) -> Dict[str, str]:
    """
    Build the HTTP headers for GitHub API requests.

    Includes Accept, GitHub API version, and User-Agent headers, plus an
    Authorization header when a token is given.
    """
    headers = {
        "Accept": GITHUB_ACCEPT_HEADER,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": get_user_agent(),
    }
    if github_token:
        headers["Authorization"] = f"token {github_token}"
        logger.debug("Using GitHub token for API authentication")
    else:
        logger.debug("No GitHub token available - using unauthenticated API requests")
    return headers


def is_retryable_status(status: Optional[int]) -> bool:
    """Return True for HTTP statuses worth retrying (408, 429 and 5xx)."""
    if status is None:
        return False
    return status >= HTTP_STATUS_RETRY_THRESHOLD or status in RETRYABLE_HTTP_STATUSES


def create_session(
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    connector_limit: int = DEFAULT_CONNECTOR_LIMIT,
) -> ClientSession:
    """
    Create the aiohttp session used for asset downloads.

    The session carries the transport policy (timeouts, connection pool and
    User-Agent); the pipeline itself never retries.

    Parameters:
        timeout (float): Total request timeout in seconds.
        connector_limit (int): Maximum number of pooled connections.

    Returns:
        aiohttp.ClientSession: A new session; the caller owns and closes it.
    """
    connector = TCPConnector(limit=connector_limit, enable_cleanup_closed=True)
    return ClientSession(
        connector=connector,
        timeout=ClientTimeout(total=timeout),
        headers={"User-Agent": get_user_agent()},
    )
