"""FastMCP server for workflow-hub.

Owns the process-wide resources (HTTP client, history and settings stores,
execution engine, directory client). They are built once in the lifespan
handler and handed to every tool through the request context; the tools
themselves live in the tools module.
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from .context import AppContext, AppContextType
from .engine import HubConfigLoader

logger = logging.getLogger(__name__)

# =============================================================================
# Shared Resources and Lifespan Management
# =============================================================================


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Load configuration, wire the AppContext and close the HTTP client on exit.

    Configuration comes from the YAML file plus WORKFLOW_HUB_* environment
    variables; an invalid configuration aborts startup with ValueError.
    """
    logger.info("Loading workflow hub configuration...")

    config = HubConfigLoader().load_config()
    app_context = AppContext.from_config(config)

    logger.info(f"API base URL: {config.api_base_url}")
    logger.info(f"History file: {app_context.history.path} (limit {config.history_limit})")

    last_workflow_id = await app_context.settings.get_last_workflow_id()
    if last_workflow_id:
        logger.info(f"Last used workflow: {last_workflow_id}")

    try:
        yield app_context
    finally:
        await app_context.api_client.aclose()
        logger.info("Workflow API client closed")


# Initialize MCP server with lifespan management
mcp = FastMCP("workflow_hub", lifespan=app_lifespan)


# =============================================================================
# Server Entry Point
# =============================================================================


def configure_logging() -> None:
    """Configure logging to stderr with the level from WORKFLOW_HUB_LOG_LEVEL."""
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level_str = os.getenv("WORKFLOW_HUB_LOG_LEVEL", "INFO").upper()

    if log_level_str not in valid_log_levels:
        print(
            f"Warning: Invalid WORKFLOW_HUB_LOG_LEVEL '{log_level_str}'. "
            f"Valid levels: {', '.join(sorted(valid_log_levels))}. "
            "Using INFO.",
            file=sys.stderr,
        )
        log_level_str = "INFO"

    # stdout is reserved for the MCP protocol
    logging.basicConfig(
        level=getattr(logging, log_level_str),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    """Run the server over stdio until interrupted."""
    configure_logging()
    logger.info("workflow-hub MCP server starting on stdio")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)

    logger.info("workflow-hub MCP server stopped")


# =============================================================================
# Exports
# =============================================================================

__all__ = ["mcp", "main", "app_lifespan", "configure_logging", "AppContextType"]
