"""Shared context types for MCP server.

This module contains context types used across server and tools modules,
separated to avoid circular imports.
"""

from dataclasses import dataclass

from mcp.server.fastmcp import Context
from mcp.server.session import ServerSession

from .engine import (
    ExecutionEngine,
    HistoryStore,
    HubConfig,
    SettingsStore,
    WorkflowApiClient,
    WorkflowDirectoryClient,
)


@dataclass
class AppContext:
    """Application context containing shared resources for MCP tools.

    Created during server startup and made available to all tools via the
    Context parameter. One engine per server process: the MCP client is the
    single caller and drives one invocation at a time.
    """

    config: HubConfig
    api_client: WorkflowApiClient
    history: HistoryStore
    settings: SettingsStore
    engine: ExecutionEngine
    directory: WorkflowDirectoryClient

    @classmethod
    def from_config(cls, config: HubConfig) -> "AppContext":
        """Wire all collaborators from a loaded configuration."""
        api_client = WorkflowApiClient.from_config(config)
        history = HistoryStore(config.history_path, max_records=config.history_limit)
        settings = SettingsStore(config.settings_path)
        return cls(
            config=config,
            api_client=api_client,
            history=history,
            settings=settings,
            engine=ExecutionEngine(api_client, history, settings),
            directory=WorkflowDirectoryClient(api_client, settings),
        )


# Type alias for MCP tool context parameter
AppContextType = Context[ServerSession, AppContext]


__all__ = ["AppContext", "AppContextType"]
