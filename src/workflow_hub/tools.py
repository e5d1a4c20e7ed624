"""MCP tools over the execution engine, the workflow directory and the history.

Each tool takes flat Annotated parameters (they become the JSON schema the
client sees) and reads shared resources from the lifespan context. Outcomes
are returned as dicts; listing tools can also render markdown.
"""

import json
from typing import Annotated, Any, Literal

from mcp.types import ToolAnnotations
from pydantic import BaseModel, Field

from .context import AppContext, AppContextType
from .engine import ExecutionMode, Parameter, ParameterType, WorkflowHubError
from .formatting import (
    format_error,
    format_history_markdown,
    format_history_record_not_found_error,
    format_result,
    format_result_markdown,
    format_workflow_page_markdown,
)
from .server import mcp

CONTEXT_UNAVAILABLE = "Server context not available. Tool requires context to access resources."


class ParameterInput(BaseModel):
    """One workflow parameter as supplied by the MCP client."""

    name: str = Field(description="Parameter name expected by the workflow")
    value: Any = Field(
        default="",
        description=(
            "Parameter value. Strings are used verbatim as the raw text; "
            "other JSON values are serialized to JSON text first"
        ),
    )
    type: ParameterType = Field(
        default=ParameterType.STRING,
        description="Declared type: string, number, boolean, object or array",
    )

    def to_parameter(self) -> Parameter:
        if isinstance(self.value, str):
            raw = self.value
        elif self.value is None:
            raw = ""
        else:
            raw = json.dumps(self.value, ensure_ascii=False)
        return Parameter(name=self.name, value=raw, type=self.type)


def _app_context(ctx: AppContextType | None) -> AppContext | None:
    if ctx is None:
        return None
    return ctx.request_context.lifespan_context


# =============================================================================
# Execution Tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="Execute Workflow",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,  # Every run is recorded to history
        openWorldHint=True,  # Calls the remote workflow API
    )
)
async def execute_workflow(
    parameters: Annotated[
        list[ParameterInput],
        Field(description="Ordered workflow parameters (at least one, names and values non-blank)"),
    ],
    workflow_id: Annotated[
        str,
        Field(description="Remote workflow ID (blank = last used workflow)", max_length=100),
    ] = "",
    mode: Annotated[
        Literal["stream", "async"],
        Field(description="stream=wait for the result, async=return an execution ID to query"),
    ] = "stream",
    include_progress: Annotated[
        bool,
        Field(description="Include the progress log of the attempt in the response"),
    ] = False,
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Run a remote workflow. Required: parameters. Optional: workflow_id, mode (stream|async)."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return {"status": "failure", "error": CONTEXT_UNAVAILABLE}

    workflow_id = workflow_id.strip() or (await app_ctx.settings.get_last_workflow_id() or "")
    outcome = await app_ctx.engine.execute(
        workflow_id,
        [p.to_parameter() for p in parameters],
        ExecutionMode(mode),
    )
    return outcome.to_response(include_progress=include_progress)


@mcp.tool(
    annotations=ToolAnnotations(
        title="Query Async Execution",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,  # Terminal results are recorded to history
        openWorldHint=True,
    )
)
async def query_async_execution(
    workflow_id: Annotated[
        str,
        Field(description="Workflow ID (blank = the pending async execution)", max_length=100),
    ] = "",
    execute_id: Annotated[
        str,
        Field(description="Execution ID returned by execute_workflow in async mode"),
    ] = "",
    include_progress: Annotated[
        bool,
        Field(description="Include the progress log of the query in the response"),
    ] = False,
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Check the status of an async workflow execution and fetch its result when done.

    The server never polls: call this again while status is 'pending'.
    """
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return {"status": "failure", "error": CONTEXT_UNAVAILABLE}

    outcome = await app_ctx.engine.query(
        workflow_id=workflow_id.strip() or None,
        execute_id=execute_id.strip() or None,
    )
    return outcome.to_response(include_progress=include_progress)


# =============================================================================
# Directory Tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="List Workflows",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
async def list_workflows(
    workspace_id: Annotated[
        str,
        Field(description="Numeric workspace ID, at least 10 digits (blank = last used)"),
    ] = "",
    page: Annotated[
        int,
        Field(description="Page number, starting at 1", ge=1),
    ] = 1,
    page_size: Annotated[
        int | None,
        Field(description="Workflows per page, 1-100 (default from configuration)", ge=1, le=100),
    ] = None,
    publish_status: Annotated[
        Literal["all", "published", "draft"],
        Field(description="Filter by publish status"),
    ] = "all",
    format: Annotated[  # noqa: A002
        Literal["json", "markdown"],
        Field(
            description=(
                "Response format: 'json' for structured data, 'markdown' for human-readable output"
            )
        ),
    ] = "json",
    *,
    ctx: AppContextType,
) -> str | dict[str, Any]:
    """List invocable workflows in a workspace, one page at a time."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return format_error(CONTEXT_UNAVAILABLE, format)

    workspace_id = workspace_id.strip() or (await app_ctx.settings.get_last_workspace_id() or "")
    size = page_size or app_ctx.config.default_page_size

    try:
        result = await app_ctx.directory.list_workflows(
            workspace_id, page=page, page_size=size, publish_status=publish_status
        )
    except WorkflowHubError as e:
        return format_error(e, format)

    if format == "markdown":
        return format_workflow_page_markdown(result, workspace_id, page)

    return {
        "workspace_id": workspace_id,
        "page": page,
        "page_size": size,
        "total": result.total,
        "has_more": result.has_more,
        "workflows": [item.model_dump(exclude_none=True) for item in result.items],
    }


# =============================================================================
# History Tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="List Execution History",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def list_history(
    limit: Annotated[
        int,
        Field(description="Maximum number of records to return (newest first)", ge=1, le=1000),
    ] = 20,
    format: Annotated[  # noqa: A002
        Literal["json", "markdown"],
        Field(
            description=(
                "Response format: 'json' for structured data, 'markdown' for human-readable output"
            )
        ),
    ] = "json",
    *,
    ctx: AppContextType,
) -> str | dict[str, Any]:
    """List past execution attempts, newest first."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return format_error(CONTEXT_UNAVAILABLE, format)

    records = await app_ctx.history.list()
    shown = records[:limit]

    if format == "markdown":
        return format_history_markdown(shown)

    return {
        "total": len(records),
        "records": [
            {**record.model_dump(), "time": app_ctx.history.format_timestamp(record.timestamp)}
            for record in shown
        ],
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Get History Record",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def get_history_record(
    record_id: Annotated[str, Field(description="History record ID", min_length=1)],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Get one execution history record by ID."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return {"found": False, "error": CONTEXT_UNAVAILABLE}

    record = await app_ctx.history.get(record_id)
    if record is None:
        return format_history_record_not_found_error(record_id)

    return {
        "found": True,
        "record": {
            **record.model_dump(),
            "time": app_ctx.history.format_timestamp(record.timestamp),
        },
    }


@mcp.tool(
    annotations=ToolAnnotations(
        title="Delete History Record",
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def delete_history_record(
    record_id: Annotated[str, Field(description="History record ID", min_length=1)],
    *,
    ctx: AppContextType,
) -> dict[str, Any]:
    """Delete one execution history record."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return {"deleted": False, "error": CONTEXT_UNAVAILABLE}

    if await app_ctx.history.get(record_id) is None:
        return {"deleted": False, **format_history_record_not_found_error(record_id)}

    await app_ctx.history.remove(record_id)
    return {"deleted": True, "record_id": record_id}


@mcp.tool(
    annotations=ToolAnnotations(
        title="Clear Execution History",
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def clear_history(*, ctx: AppContextType) -> dict[str, Any]:
    """Delete all execution history records."""
    app_ctx = _app_context(ctx)
    if app_ctx is None:
        return {"cleared": False, "error": CONTEXT_UNAVAILABLE}

    removed = len(await app_ctx.history.list())
    await app_ctx.history.clear()
    return {"cleared": True, "removed": removed}


# =============================================================================
# Result Formatting Tools
# =============================================================================


@mcp.tool(
    annotations=ToolAnnotations(
        title="Format Result",
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
async def format_result_text(
    text: Annotated[str, Field(description="Workflow result text (JSON or plain text)")],
    format: Annotated[  # noqa: A002
        Literal["json", "markdown"],
        Field(description="Response format"),
    ] = "json",
) -> str | dict[str, Any]:
    """Pretty-print a workflow result and extract the links it contains."""
    formatted = format_result(text)

    if format == "markdown":
        return format_result_markdown(formatted)

    return {
        "text": formatted.text,
        "is_json": formatted.is_json,
        "links": formatted.links,
        "segments": [{"kind": s.kind, "value": s.value} for s in formatted.segments],
    }


__all__ = [
    "ParameterInput",
    "execute_workflow",
    "query_async_execution",
    "list_workflows",
    "list_history",
    "get_history_record",
    "delete_history_record",
    "clear_history",
    "format_result_text",
]
