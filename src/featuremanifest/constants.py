"""
Constants and configuration values for featuremanifest.

This module contains the hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# GitHub API
GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_ACCEPT_HEADER = "application/vnd.github+json"
LATEST_RELEASE_PATH = "/repos/{owner}/{repo}/releases/latest"

# Manifest source defaults
DEFAULT_REPO_OWNER = "web-platform-tests"
DEFAULT_REPO_NAME = "wpt"
WEB_FEATURES_MANIFEST_ASSET_NAME = "WEB_FEATURES_MANIFEST.json.gz"

# Manifest envelope
SUPPORTED_MANIFEST_VERSION = 1

# Network timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONNECTOR_LIMIT = 10

# Streaming
DEFAULT_CHUNK_SIZE = 64 * 1024
GZIP_MAGIC = b"\x1f\x8b"
GZIP_DEFLATE_METHOD = 8
GZIP_HEADER_SIZE = 10

# HTTP status handling
HTTP_STATUS_NO_CONTENT = 204
HTTP_STATUS_RETRY_THRESHOLD = 500
RETRYABLE_HTTP_STATUSES = frozenset({408, 429})
RATE_LIMIT_WARNING_THRESHOLD = 10

# Pagination
PAGE_WINDOW_GAP_MS = 1

# Logging
LOGGER_NAME = "featuremanifest"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "featuremanifest.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_LEVEL_ENV_VAR = "FEATUREMANIFEST_LOG_LEVEL"

# Configuration
APP_NAME = "featuremanifest"
CONFIG_FILE_NAME = "config.yaml"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"
