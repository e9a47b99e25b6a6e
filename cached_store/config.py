"""
Store configuration.

Configuration can be provided directly, via environment variables, or via
the ``cached_store`` section of a YAML settings file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError
from .policy import DEFAULT_POLICY, CachePolicy, parse_policy

DEFAULT_SETTINGS_PATH = Path.home() / ".cached_store" / "settings.yaml"

LOG_FORMATS = ("text", "json")


@dataclass
class StoreConfig:
    """Configuration for a cached store.

    Environment Variables:
        CACHED_STORE_POLICY: Default cache policy (default: networkfirst)
        CACHED_STORE_LOCAL_PATH: Directory for the local store
        CACHED_STORE_API_URL: Base URL of the remote data API
        CACHED_STORE_APP_KEY: Application key
        CACHED_STORE_APP_SECRET: Application secret
        CACHED_STORE_TIMEOUT: Remote request timeout in seconds (default: 30)
        CACHED_STORE_LOG_FORMAT: "text" or "json" (default: text)
        CACHED_STORE_LOG_LEVEL: Level for JSON store logs (default: INFO)

    Attributes:
        policy: Default cache policy for stores built from this config
        local_path: Directory for the local store (default: ~/.cached_store/data)
        api_url: Base URL of the remote data API
        app_key: Application key
        app_secret: Application secret
        request_timeout: Remote request timeout in seconds
        store_options: Default backend sub-options
        log_format: "json" installs the structured log handler on store creation
        log_level: Level name for store logs under log_format "json"
    """

    policy: CachePolicy = DEFAULT_POLICY
    local_path: str | None = None
    api_url: str | None = None
    app_key: str | None = None
    app_secret: str | None = None
    request_timeout: float = 30.0
    store_options: dict[str, Any] = field(default_factory=dict)
    log_format: str = "text"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.policy = parse_policy(self.policy)
        self.log_format = str(self.log_format).lower()
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                "log_format", f"must be one of {LOG_FORMATS}", self.log_format
            )
        self.log_level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigurationError("log_level", "unknown level", self.log_level)

    @classmethod
    def from_environment(cls) -> StoreConfig:
        """Create configuration from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        timeout_str = os.environ.get("CACHED_STORE_TIMEOUT", "30")
        try:
            timeout = float(timeout_str)
        except ValueError as e:
            raise ConfigurationError("request_timeout", "must be a number", timeout_str) from e

        return cls(
            policy=parse_policy(os.environ.get("CACHED_STORE_POLICY", DEFAULT_POLICY.value)),
            local_path=os.environ.get("CACHED_STORE_LOCAL_PATH"),
            api_url=os.environ.get("CACHED_STORE_API_URL"),
            app_key=os.environ.get("CACHED_STORE_APP_KEY"),
            app_secret=os.environ.get("CACHED_STORE_APP_SECRET"),
            request_timeout=timeout,
            log_format=os.environ.get("CACHED_STORE_LOG_FORMAT", "text"),
            log_level=os.environ.get("CACHED_STORE_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_file(cls, config_path: Path | None = None) -> StoreConfig:
        """Create configuration from a YAML settings file.

        ```yaml
        cached_store:
          policy: cachefirst
          local_path: /var/cache/app
          api_url: https://api.example.com
          app_key: kid_123
          app_secret: secret
          request_timeout: 10
          log_format: json
          log_level: DEBUG
          store:
            headers:
              X-Client: my-app
        ```

        A missing file or section yields the defaults.
        """
        path = config_path or DEFAULT_SETTINGS_PATH
        if not path.exists():
            return cls()

        try:
            content = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError("settings", f"invalid YAML in {path}: {e}") from e

        if not isinstance(content, dict):
            raise ConfigurationError("settings", f"{path} must contain a mapping")

        section = content.get("cached_store") or {}
        if not isinstance(section, dict):
            raise ConfigurationError("cached_store", "section must be a mapping")

        return cls(
            policy=parse_policy(section.get("policy", DEFAULT_POLICY.value)),
            local_path=section.get("local_path"),
            api_url=section.get("api_url"),
            app_key=section.get("app_key"),
            app_secret=section.get("app_secret"),
            request_timeout=float(section.get("request_timeout", 30.0)),
            store_options=dict(section.get("store") or {}),
            log_format=section.get("log_format", "text"),
            log_level=section.get("log_level", "INFO"),
        )
