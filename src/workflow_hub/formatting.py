"""Result rendering and shared formatting utilities for tool responses.

Result formatting:
- Payloads that parse as JSON are re-serialized with 2-space indentation
- Absolute http(s) URLs are split out as separate link segments so callers
  can expose them as addressable units (e.g. click-to-copy)
- A markdown artifact seen in upstream payloads, a link wrapped in backticks
  and followed by a quote, is normalized into a plain quoted link

Tool formatting:
- Markdown format: Human-readable with headers, lists, and formatting
- JSON format: Machine-readable structured data for programmatic access
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from .engine.directory import WorkflowPage
    from .engine.history_store import HistoryRecord

# URL token stops at whitespace, backtick, double quote and single quote
URL_PATTERN = re.compile(r"(https?://[^\s`\"']+)")
# `...` followed by optional whitespace and a double quote
BACKTICK_LINK_PATTERN = re.compile(r"`([^`]*)`\s*\"")


# =============================================================================
# Result Formatting
# =============================================================================


@dataclass(frozen=True)
class ResultSegment:
    """A literal text run or a link inside a rendered result."""

    kind: Literal["text", "link"]
    value: str

    @property
    def is_link(self) -> bool:
        return self.kind == "link"


@dataclass(frozen=True)
class FormattedResult:
    """Display form of a terminal payload."""

    text: str
    is_json: bool = False
    segments: list[ResultSegment] = field(default_factory=list)

    @property
    def links(self) -> list[str]:
        return [segment.value for segment in self.segments if segment.is_link]

    @property
    def has_links(self) -> bool:
        return any(segment.is_link for segment in self.segments)


def normalize_backtick_links(text: str) -> str:
    """Turn `` `https://x.test/path/` " `` into ``"https://x.test/path"``.

    One trailing slash is stripped from the wrapped value and the backticks
    are replaced by the quote. Already-normalized text is left unchanged.
    """

    def _replace(match: re.Match[str]) -> str:
        url = match.group(1)
        if url.endswith("/"):
            url = url[:-1]
        return f'"{url}"'

    return BACKTICK_LINK_PATTERN.sub(_replace, text)


def split_links(text: str) -> list[ResultSegment]:
    """Split text into ordered literal and link segments.

    Joining the segment values reproduces the input exactly.
    """
    segments = []
    for index, part in enumerate(URL_PATTERN.split(text)):
        if not part:
            continue
        # re.split puts captured groups (the URLs) at odd positions
        kind: Literal["text", "link"] = "link" if index % 2 else "text"
        segments.append(ResultSegment(kind=kind, value=part))
    return segments


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def format_result(payload: str) -> FormattedResult:
    """Render a terminal payload for display.

    Args:
        payload: Terminal payload text (JSON or plain text)

    Returns:
        FormattedResult with display text and link segments
    """
    text = normalize_backtick_links(payload)
    is_json = False
    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        pass
    else:
        text = json.dumps(parsed, indent=2, ensure_ascii=False)
        is_json = True
    return FormattedResult(text=text, is_json=is_json, segments=split_links(text))


def format_timestamp(timestamp: int) -> str:
    """Render a millisecond timestamp as local time, e.g. 2025/01/31 14:05:09."""
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y/%m/%d %H:%M:%S")


# =============================================================================
# Markdown Formatting Utilities
# =============================================================================


def format_result_markdown(formatted: FormattedResult) -> str:
    """Format a rendered result as markdown, listing links separately."""
    if not formatted.text:
        return "_No result_"

    fence = "```json" if formatted.is_json else "```"
    lines = [fence, formatted.text, "```"]
    if formatted.links:
        lines.append("")
        lines.append("## Links")
        lines.extend(f"- {link}" for link in formatted.links)
    return "\n".join(lines)


def format_workflow_page_markdown(page: WorkflowPage, workspace_id: str, page_num: int) -> str:
    """Format one directory page as markdown.

    Args:
        page: Page returned by the directory client
        workspace_id: Workspace the page belongs to
        page_num: Page number (for display)

    Returns:
        Markdown-formatted workflow list with headers
    """
    if not page.items:
        return f"No workflows found in workspace {workspace_id}"

    lines = [f"## Workflows in {workspace_id} (page {page_num}, {page.total} shown)", ""]
    for workflow in page.items:
        line = f"- **{workflow.workflow_name or workflow.workflow_id}** (`{workflow.workflow_id}`)"
        if workflow.publish_status:
            line += f" [{workflow.publish_status}]"
        if workflow.description:
            line += f": {workflow.description}"
        lines.append(line)

    if page.has_more:
        lines.append("")
        lines.append(f"More workflows available, request page {page_num + 1}.")

    return "\n".join(lines)


def format_history_markdown(records: list[HistoryRecord]) -> str:
    """Format history records (newest first) as markdown."""
    if not records:
        return "No execution history"

    lines = [f"## Execution History ({len(records)})", ""]
    for record in records:
        marker = "succeeded" if record.success else "failed"
        lines.append(f"### {format_timestamp(record.timestamp)} ({marker})")
        lines.append(f"- **ID**: {record.id}")
        lines.append(f"- **Input**: {record.input}")
        if record.result:
            lines.append(f"- **Result**: {record.result}")
        if record.error:
            lines.append(f"- **Error**: {record.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


# =============================================================================
# Error Formatting Utilities
# =============================================================================


def format_error(error: Exception | str, format_type: str = "json") -> dict[str, Any] | str:
    """Format an error raised outside an execution attempt (directory, history).

    Args:
        error: Exception or message
        format_type: Response format ("json" or "markdown")
    """
    message = str(error)
    if format_type == "markdown":
        return f"**Error**: {message}"

    response: dict[str, Any] = {"status": "failure", "error": message}
    if isinstance(error, Exception):
        response["error_type"] = error.__class__.__name__
        status = getattr(error, "status", None)
        if status:
            response["http_status"] = status
    return response


def format_history_record_not_found_error(record_id: str) -> dict[str, Any]:
    return {"found": False, "error": f"History record {record_id} not found"}


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Result formatting
    "ResultSegment",
    "FormattedResult",
    "normalize_backtick_links",
    "split_links",
    "format_result",
    "format_timestamp",
    # Markdown formatters
    "format_result_markdown",
    "format_workflow_page_markdown",
    "format_history_markdown",
    # Error formatters
    "format_error",
    "format_history_record_not_found_error",
]
