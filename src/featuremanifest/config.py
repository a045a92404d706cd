"""
Configuration for featuremanifest.

Settings are read from a YAML file using the same upper-case keys the
configuration file has always used. A missing file means defaults; a file that
exists but cannot be read or holds values of the wrong type is an error.
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import platformdirs
import yaml

from featuremanifest.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_REPO_NAME,
    DEFAULT_REPO_OWNER,
    DEFAULT_REQUEST_TIMEOUT,
    GITHUB_API_BASE,
    WEB_FEATURES_MANIFEST_ASSET_NAME,
)
from featuremanifest.exceptions import ConfigFileError, ConfigurationError
from featuremanifest.log_utils import logger

CONFIG_DIR = platformdirs.user_config_dir(APP_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)


@dataclass(frozen=True)
class ManifestSettings:
    """Immutable settings for one manifest source."""

    repo_owner: str = DEFAULT_REPO_OWNER
    """Owner of the repository whose latest release carries the manifest"""

    repo_name: str = DEFAULT_REPO_NAME
    """Name of that repository"""

    asset_name: str = WEB_FEATURES_MANIFEST_ASSET_NAME
    """Exact (case-sensitive) filename of the manifest asset"""

    api_base: str = GITHUB_API_BASE
    """Base URL of the GitHub REST API"""

    github_token: Optional[str] = None
    """Explicit API token; None falls back to GITHUB_TOKEN when allowed"""

    allow_env_token: bool = True
    """Whether the GITHUB_TOKEN environment variable may be used"""

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    """Total timeout in seconds for each HTTP request"""

    def __post_init__(self) -> None:
        for field_name in ("repo_owner", "repo_name", "asset_name", "api_base"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"Invalid {field_name}", details=f"expected a non-empty string, got {value!r}"
                )
        if self.github_token is not None and not isinstance(self.github_token, str):
            raise ConfigurationError("Invalid github_token", details="expected a string")
        if isinstance(self.request_timeout, bool) or not isinstance(
            self.request_timeout, (int, float)
        ):
            raise ConfigurationError(
                "Invalid request_timeout",
                details=f"expected a number, got {self.request_timeout!r}",
            )
        if self.request_timeout <= 0:
            raise ConfigurationError(
                "Invalid request_timeout", details="must be greater than zero"
            )

    def with_overrides(self, **overrides: Any) -> "ManifestSettings":
        """Return a copy with every override that is not None applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


# Config file key -> ManifestSettings field
_CONFIG_KEYS = {
    "REPO_OWNER": "repo_owner",
    "REPO_NAME": "repo_name",
    "ASSET_NAME": "asset_name",
    "GITHUB_API_BASE": "api_base",
    "GITHUB_TOKEN": "github_token",
    "ALLOW_ENV_TOKEN": "allow_env_token",
    "REQUEST_TIMEOUT": "request_timeout",
}


def settings_from_mapping(config: Dict[str, Any]) -> ManifestSettings:
    """
    Build ManifestSettings from a configuration mapping.

    Parameters:
        config (Dict[str, Any]): Mapping keyed by the upper-case config file keys.
            Unknown keys are ignored.

    Returns:
        ManifestSettings: Settings with defaults for every key not present.

    Raises:
        ConfigurationError: If a value has the wrong type.
    """
    values: Dict[str, Any] = {}
    for key, value in config.items():
        field_name = _CONFIG_KEYS.get(str(key).upper())
        if field_name is None:
            logger.debug(f"Ignoring unknown configuration key: {key}")
            continue
        values[field_name] = value

    allow_env = values.get("allow_env_token", True)
    if not isinstance(allow_env, bool):
        raise ConfigurationError(
            "Invalid ALLOW_ENV_TOKEN", details=f"expected true or false, got {allow_env!r}"
        )
    return ManifestSettings(**values)


def load_settings(path: Optional[str] = None) -> ManifestSettings:
    """
    Load settings from a YAML configuration file.

    If `path` is None, the platformdirs-managed CONFIG_FILE is used when it
    exists; otherwise defaults are returned. An explicit `path` must exist.

    Parameters:
        path (Optional[str]): Path to the YAML file to load.

    Returns:
        ManifestSettings: The loaded settings.

    Raises:
        ConfigFileError: If the file is missing (explicit path only), unreadable, or not a YAML mapping.
        ConfigurationError: If a value has the wrong type.
    """
    config_path = path or CONFIG_FILE
    if not os.path.exists(config_path):
        if path is not None:
            raise ConfigFileError("Configuration file not found", path=config_path)
        logger.debug(f"No configuration file at {config_path}; using defaults")
        return ManifestSettings()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(
            "Failed to load configuration", path=config_path, details=str(e)
        ) from e

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigFileError(
            "Configuration file must contain a mapping",
            path=config_path,
            details=f"got {type(config).__name__}",
        )

    logger.debug(f"Loaded configuration from {config_path}")
    return settings_from_mapping(config)
