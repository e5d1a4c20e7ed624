"""State directory configuration and management.

All persisted client state lives in one directory:

Architecture:
    ~/.workflow-hub/
      config.yml        # Optional configuration file (see config.py)
      history.json      # Execution history blob {"records": [...]}
      settings.json     # Last-used workflow id / workspace id

The directory can be relocated with the WORKFLOW_HUB_STATE_DIR environment
variable (or the ``state_dir`` configuration field).
"""

from __future__ import annotations

import os
from pathlib import Path

HISTORY_FILENAME = "history.json"
SETTINGS_FILENAME = "settings.json"
CONFIG_FILENAME = "config.yml"


class StateConfig:
    """State directory configuration for the workflow hub.

    Example:
        state_dir = StateConfig.get_state_dir()
        # Returns: ~/.workflow-hub/

        history_path = StateConfig.get_history_path(Path("/tmp/hub"))
        # Returns: /tmp/hub/history.json
    """

    @staticmethod
    def get_default_dir() -> Path:
        """Get the default state directory without creating it.

        Returns:
            WORKFLOW_HUB_STATE_DIR if set, otherwise ~/.workflow-hub/
        """
        override = os.getenv("WORKFLOW_HUB_STATE_DIR", "").strip()
        if override:
            return Path(override).expanduser()
        return Path.home() / ".workflow-hub"

    @staticmethod
    def get_state_dir(state_dir: Path | str | None = None) -> Path:
        """Get the state directory, creating it if it doesn't exist.

        Args:
            state_dir: Explicit directory (takes precedence over the default)

        Returns:
            Path to the state directory
        """
        path = Path(state_dir).expanduser() if state_dir else StateConfig.get_default_dir()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def get_history_path(state_dir: Path | str | None = None) -> Path:
        """Get the history blob path: <state_dir>/history.json"""
        return StateConfig.get_state_dir(state_dir) / HISTORY_FILENAME

    @staticmethod
    def get_settings_path(state_dir: Path | str | None = None) -> Path:
        """Get the settings blob path: <state_dir>/settings.json"""
        return StateConfig.get_state_dir(state_dir) / SETTINGS_FILENAME

    @staticmethod
    def get_config_path() -> Path:
        """Get the standard configuration file location (not created)."""
        return StateConfig.get_default_dir() / CONFIG_FILENAME


__all__ = ["StateConfig", "HISTORY_FILENAME", "SETTINGS_FILENAME", "CONFIG_FILENAME"]
