"""
Execution outcome monad for workflow invocations.

Design Principles:
- Status determines interpretation (success/failure/pending)
- Factory methods ensure valid state combinations
- Progress log of the attempt is always attached
- to_response() is single source of truth for tool response formatting
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from ..formatting import FormattedResult, format_result


class ExecutionMode(str, Enum):
    """How a workflow is invoked."""

    STREAM = "stream"
    ASYNC = "async"


@dataclass
class ExecutionOutcome:
    """
    Result of one engine call (execute or query).

    - success: terminal, ``result`` holds the rendered payload
    - failure: terminal, ``error`` holds the message, ``error_type`` the class
    - pending: async execution submitted or still running; query again

    Example Usage:
        outcome = await engine.execute("7549...", params, ExecutionMode.ASYNC)
        if outcome.status == "pending":
            outcome = await engine.query()
        return outcome.to_response()
    """

    status: Literal["success", "failure", "pending"]
    workflow_id: str
    mode: ExecutionMode
    result: str = ""
    error: str | None = None
    error_type: str | None = None
    execute_id: str | None = None
    execution_status: str | None = None  # Remote status for async queries
    progress: list[str] = field(default_factory=list)

    # Factory Methods

    @staticmethod
    def success(
        workflow_id: str,
        mode: ExecutionMode,
        result: str,
        progress: list[str],
        execute_id: str | None = None,
        execution_status: str | None = None,
    ) -> ExecutionOutcome:
        return ExecutionOutcome(
            status="success",
            workflow_id=workflow_id,
            mode=mode,
            result=result,
            execute_id=execute_id,
            execution_status=execution_status,
            progress=list(progress),
        )

    @staticmethod
    def failure(
        workflow_id: str,
        mode: ExecutionMode,
        error: Exception | str,
        progress: list[str],
        execute_id: str | None = None,
        execution_status: str | None = None,
    ) -> ExecutionOutcome:
        """
        Create failure result.

        Args:
            error: The exception (its class name becomes error_type) or a message
        """
        if isinstance(error, Exception):
            message = str(error) or error.__class__.__name__
            error_type: str | None = error.__class__.__name__
        else:
            message = error
            error_type = None
        return ExecutionOutcome(
            status="failure",
            workflow_id=workflow_id,
            mode=mode,
            error=message,
            error_type=error_type,
            execute_id=execute_id,
            execution_status=execution_status,
            progress=list(progress),
        )

    @staticmethod
    def pending(
        workflow_id: str,
        execute_id: str,
        result: str,
        progress: list[str],
        execution_status: str | None = None,
    ) -> ExecutionOutcome:
        return ExecutionOutcome(
            status="pending",
            workflow_id=workflow_id,
            mode=ExecutionMode.ASYNC,
            result=result,
            execute_id=execute_id,
            execution_status=execution_status,
            progress=list(progress),
        )

    # Properties

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    @property
    def query_available(self) -> bool:
        """True when the caller may query this execution (again)."""
        return self.mode == ExecutionMode.ASYNC and self.execute_id is not None and (
            self.status == "pending" or self.error_type in ("NoResultData", "TransportError")
        )

    @property
    def formatted(self) -> FormattedResult:
        return format_result(self.result)

    # Formatting

    def to_response(self, include_progress: bool = False) -> dict[str, Any]:
        """
        Format outcome for a tool response.

        Examples:
            {"status": "success", "workflow_id": "...", "mode": "stream", "result": "..."}
            {"status": "failure", "workflow_id": "...", "mode": "stream",
             "error": "...", "error_type": "TransportError"}
            {"status": "pending", "workflow_id": "...", "mode": "async",
             "result": "...", "execute_id": "...", "query_available": true}
        """
        response: dict[str, Any] = {
            "status": self.status,
            "workflow_id": self.workflow_id,
            "mode": self.mode.value,
        }

        if self.status == "failure":
            response["error"] = self.error
            response["error_type"] = self.error_type
        else:
            formatted = self.formatted
            response["result"] = formatted.text
            if formatted.links:
                response["links"] = formatted.links

        if self.execute_id:
            response["execute_id"] = self.execute_id
            response["query_available"] = self.query_available
        if self.execution_status:
            response["execution_status"] = self.execution_status

        if include_progress:
            response["progress"] = self.progress

        return response


__all__ = ["ExecutionMode", "ExecutionOutcome"]
