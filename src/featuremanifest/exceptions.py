"""
Custom exceptions for featuremanifest.

This module defines the error taxonomy of the manifest pipeline. Every failure
point of the download and parse stages has its own exception type so callers
can react to each one differently (for example retrying transport failures but
not a missing asset or an unsupported manifest version).
"""

from typing import List, Optional


class FeatureManifestError(Exception):
    """
    Base exception for all featuremanifest errors.

    All custom exceptions in featuremanifest inherit from this class
    to allow for easy catching of all application-specific errors.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(FeatureManifestError):
    """
    Exception raised when configuration is invalid.

    This includes:
    - Values of the wrong type
    - Empty repository or asset names
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Pipeline Errors
# =============================================================================


class ManifestError(FeatureManifestError):
    """
    Base exception for failures of the manifest pipeline.

    Attributes:
        stage: Name of the pipeline stage that failed, filled in by the
            downloader when the error crosses it.
        is_retryable: Whether repeating the same operation could succeed.
    """

    is_retryable_default = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        is_retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message, details)
        self.stage: Optional[str] = None
        self.is_retryable = (
            self.is_retryable_default if is_retryable is None else is_retryable
        )


class ReleaseLookupError(ManifestError):
    """
    Exception raised when the latest release of a repository cannot be retrieved.

    Attributes:
        endpoint: The API endpoint that was accessed.
        status_code: The HTTP status code returned, if a response was received.
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        is_retryable: bool = False,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details, is_retryable)
        self.endpoint = endpoint
        self.status_code = status_code


class RateLimitError(ReleaseLookupError):
    """
    Exception raised when the GitHub API rate limit is exhausted.

    Attributes:
        reset_time: When the rate limit will reset (Unix timestamp).
        remaining: Number of requests remaining.
    """

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded",
        reset_time: Optional[int] = None,
        remaining: int = 0,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            endpoint=endpoint,
            status_code=403,
            is_retryable=True,
            details=f"Resets at: {reset_time}, Remaining: {remaining}",
        )
        self.reset_time = reset_time
        self.remaining = remaining


class AssetNotFoundError(ManifestError):
    """
    Exception raised when the latest release has no asset with the configured name.

    Attributes:
        asset_name: The exact asset name that was searched for.
        available: Names of the assets the release does carry.
    """

    def __init__(
        self,
        message: str,
        asset_name: Optional[str] = None,
        available: Optional[List[str]] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.asset_name = asset_name
        self.available = list(available or [])


class TransportError(ManifestError):
    """
    Exception raised when fetching an asset fails at the HTTP level.

    This includes:
    - Connection failures, DNS resolution failures, TLS errors
    - Non-2xx response statuses
    - Connections dropped while the body is being read

    Attributes:
        url: The URL that was being fetched.
        status_code: The HTTP status code, when a response was received.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        is_retryable: bool = False,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details, is_retryable)
        self.url = url
        self.status_code = status_code


class EmptyBodyError(ManifestError):
    """
    Exception raised when an asset fetch succeeds but carries no payload.

    The release exists and is reachable, it just returned nothing.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


class DecompressionError(ManifestError):
    """Exception raised when a compressed stream is corrupt or in the wrong format."""

    pass


class MalformedManifestError(ManifestError):
    """Exception raised when the manifest payload is not a structurally valid envelope."""

    pass


class UnsupportedManifestVersionError(ManifestError):
    """
    Exception raised when the manifest envelope declares an unknown version.

    Attributes:
        version: The version found in the envelope (None when absent).
    """

    def __init__(
        self,
        message: str,
        version: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.version = version


class DeadlineExceededError(ManifestError):
    """
    Exception raised when an operation does not finish within its timeout.

    Kept apart from TransportError so callers can tell a slow service from a
    broken one.
    """

    is_retryable_default = True

    def __init__(
        self,
        message: str,
        timeout: Optional[float] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.timeout = timeout
