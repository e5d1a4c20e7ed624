"""Client configuration for the remote workflow API.

Configuration file location priority:
1. Explicit path passed to HubConfigLoader
2. WORKFLOW_HUB_CONFIG environment variable
3. Standard location: ~/.workflow-hub/config.yml
4. Built-in defaults (if no config file found)

Environment variables override file values:
    WORKFLOW_HUB_TOKEN          Access token (sent as a Bearer credential)
    WORKFLOW_HUB_API_BASE_URL   API base URL
    WORKFLOW_HUB_TIMEOUT        Transport timeout in seconds
    WORKFLOW_HUB_STATE_DIR      State directory (history and settings blobs)

Example config file:
```yaml
api_base_url: "https://api.coze.cn"
token: "pat_xxx"
timeout: 120
history_limit: 100
default_page_size: 20
```
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from .state_config import StateConfig

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.coze.cn"

# Environment variable -> config field
ENV_OVERRIDES = {
    "WORKFLOW_HUB_TOKEN": "token",
    "WORKFLOW_HUB_API_BASE_URL": "api_base_url",
    "WORKFLOW_HUB_TIMEOUT": "timeout",
    "WORKFLOW_HUB_STATE_DIR": "state_dir",
}


class HubConfig(BaseModel):
    """Root configuration model."""

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Base URL of the workflow API (no trailing slash)",
    )
    token: str = Field(
        default="",
        description="Access token, accepted as given (no lifecycle management)",
    )
    timeout: float = Field(
        default=60,
        ge=1,
        le=1800,
        description="Transport timeout in seconds",
    )
    state_dir: str | None = Field(
        default=None,
        description="Directory for history and settings blobs (default: ~/.workflow-hub)",
    )
    history_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum number of history records kept",
    )
    default_page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Page size used when listing workflows",
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def history_path(self) -> Path:
        return StateConfig.get_history_path(self.state_dir)

    @property
    def settings_path(self) -> Path:
        return StateConfig.get_settings_path(self.state_dir)


class HubConfigLoader:
    """Loader for client configuration from YAML file plus environment.

    Usage:
        loader = HubConfigLoader()
        config = loader.load_config()

    Config is loaded once and cached.
    """

    def __init__(self, config_path: str | Path | None = None):
        """Initialize config loader with optional explicit path.

        Args:
            config_path: Explicit path to config file (optional).
                If not provided, uses environment variable or standard location.
        """
        self._config: HubConfig | None = None
        self._explicit_path = Path(config_path) if config_path else None

    def get_config_path(self) -> Path | None:
        """Determine config file path using priority order.

        Returns:
            Path to config file, or None if file doesn't exist
        """
        if self._explicit_path:
            if self._explicit_path.exists():
                return self._explicit_path
            logger.warning(f"Explicit config path does not exist: {self._explicit_path}")
            return None

        env_path_str = os.getenv("WORKFLOW_HUB_CONFIG")
        if env_path_str:
            env_path = Path(env_path_str).expanduser()
            if env_path.exists():
                return env_path
            logger.warning(f"WORKFLOW_HUB_CONFIG path does not exist: {env_path}")
            return None

        standard_path = StateConfig.get_config_path()
        if standard_path.exists():
            return standard_path

        return None

    def load_config(self) -> HubConfig:
        """Load and validate configuration.

        Returns:
            Validated HubConfig (defaults when no file is found)

        Raises:
            ValueError: If the config file or an environment override is invalid
        """
        if self._config is not None:
            return self._config

        raw_config: dict[str, Any] = {}
        config_path = self.get_config_path()

        if config_path is None:
            logger.info("No config file found, using defaults and environment")
        else:
            logger.info(f"Loading config from: {config_path}")
            try:
                with open(config_path, encoding="utf-8") as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to load config from {config_path}: {e}") from e

            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"Config file must contain a YAML dictionary: {config_path}")
            raw_config.update(loaded or {})

        for env_name, field_name in ENV_OVERRIDES.items():
            env_value = os.getenv(env_name)
            if env_value is not None and env_value.strip():
                raw_config[field_name] = env_value.strip()
                logger.debug(f"Config field '{field_name}' overridden by {env_name}")

        try:
            config = HubConfig(**raw_config)
        except ValueError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        if not config.token:
            logger.warning("No access token configured. Set WORKFLOW_HUB_TOKEN to call the API.")

        self._config = config
        return config


__all__ = ["HubConfig", "HubConfigLoader", "DEFAULT_API_BASE_URL"]
