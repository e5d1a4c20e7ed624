"""Execution engine: drives one workflow invocation to a terminal outcome.

State machine (per invocation):

    Idle -> Submitting -> {Streaming | AsyncPending} -> Terminal(Success | Failure)
    AsyncPending -> AsyncQuerying -> AsyncPending | Terminal(Success | Failure)

Architecture:
- execute() validates, coerces and submits in stream or async mode
- Stream chunks are drained sequentially; every chunk is logged verbatim
  before it is interpreted
- Async submissions return immediately with an execution id; the engine never
  polls, each query() is triggered by the caller
- Validation failures short-circuit before any network call and leave no
  history; every other error is caught at the top of the attempt, recorded to
  history and returned as a failure ExecutionOutcome
- Invocations are serialized by an asyncio.Lock: a concurrent execute() or
  query() waits until the running one has returned
- No cancellation and no engine-level timeout (transport timeout applies)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..formatting import normalize_backtick_links
from .api_client import WorkflowApiClient
from .exceptions import (
    MissingExecutionId,
    MissingWorkflowId,
    NoResultData,
    WorkflowExecutionError,
)
from .execution_result import ExecutionMode, ExecutionOutcome
from .history_store import HistoryStore
from .parameters import (
    Parameter,
    coerce_parameters,
    encode_parameters,
    validate_parameters,
)
from .settings_store import SettingsStore
from .stream import ChunkKind

logger = logging.getLogger(__name__)

NO_RESULT_PLACEHOLDER = "Workflow completed with no result"
STILL_RUNNING_MESSAGE = "Workflow is still running, query again later"

STATUS_SUCCESS = "Success"
STATUS_FAILED = "Failed"
STATUS_RUNNING = "Running"


class EngineState(str, Enum):
    """Lifecycle state of the current invocation."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    ASYNC_PENDING = "async_pending"
    ASYNC_QUERYING = "async_querying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EngineState.SUCCEEDED, EngineState.FAILED)


@dataclass(frozen=True)
class AsyncExecution:
    """Async execution awaiting caller-triggered queries."""

    workflow_id: str
    execute_id: str


class ExecutionEngine:
    """
    Runs one workflow invocation at a time.

    Example:
        engine = ExecutionEngine(api_client, history_store, settings_store)

        outcome = await engine.execute(workflow_id, params, ExecutionMode.STREAM)
        print(outcome.result)

        outcome = await engine.execute(workflow_id, params, ExecutionMode.ASYNC)
        while outcome.status == "pending":
            outcome = await engine.query()   # caller decides when to query

    The engine is shared by all tool calls of a server session. execute() and
    query() hold the engine lock for their whole duration, so the progress
    log, state and pending execution always belong to a single invocation.
    """

    def __init__(
        self,
        api_client: WorkflowApiClient,
        history: HistoryStore,
        settings: SettingsStore,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self._api = api_client
        self._history = history
        self._settings = settings
        self._on_progress = on_progress
        self._state = EngineState.IDLE
        self._progress: list[str] = []
        self._pending: AsyncExecution | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def progress(self) -> list[str]:
        """Progress log of the current invocation (copy)."""
        return list(self._progress)

    @property
    def pending(self) -> AsyncExecution | None:
        return self._pending

    @property
    def query_available(self) -> bool:
        return self._pending is not None

    # =========================================================================
    # Submission
    # =========================================================================

    async def execute(
        self,
        workflow_id: str,
        parameters: Iterable[Parameter],
        mode: ExecutionMode = ExecutionMode.STREAM,
    ) -> ExecutionOutcome:
        """Validate, coerce and run one invocation.

        Args:
            workflow_id: Remote workflow identifier
            parameters: Ordered typed parameters (not mutated)
            mode: Stream or async

        Returns:
            success / pending (async submission) / failure outcome; never raises
            for remote or transport errors
        """
        async with self._lock:
            return await self._execute(workflow_id, list(parameters), mode)

    async def _execute(
        self, workflow_id: str, params: list[Parameter], mode: ExecutionMode
    ) -> ExecutionOutcome:
        workflow_id = (workflow_id or "").strip()
        self._progress = []

        guard_error = validate_parameters(params).error
        if guard_error is None and not workflow_id:
            guard_error = MissingWorkflowId()
        if guard_error is not None:
            self._state = EngineState.FAILED
            self._emit(f"Validation failed: {guard_error}")
            logger.warning(f"Execution rejected: {guard_error}")
            return ExecutionOutcome.failure(workflow_id, mode, guard_error, self._progress)

        await self._settings.set_last_workflow_id(workflow_id)
        self._state = EngineState.SUBMITTING

        coerced = coerce_parameters(params)
        input_text = encode_parameters(coerced)
        self._emit_request(workflow_id, params, coerced, mode)

        try:
            if mode == ExecutionMode.STREAM:
                return await self._execute_stream(workflow_id, coerced, input_text)
            return await self._execute_async(workflow_id, coerced, input_text)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            self._state = EngineState.FAILED
            self._emit(f"Execution failed: {message}")
            logger.error(f"Workflow {workflow_id} failed ({mode.value}): {message}")
            await self._history.append(input=input_text, result="", success=False, error=message)
            return ExecutionOutcome.failure(workflow_id, mode, e, self._progress)

    async def _execute_stream(
        self, workflow_id: str, coerced: dict[str, Any], input_text: str
    ) -> ExecutionOutcome:
        """Drain the chunk stream, accumulating data until completion or error."""
        self._state = EngineState.STREAMING
        result = ""
        has_content = False

        async with aclosing(self._api.stream_run(workflow_id, coerced)) as chunks:
            async for chunk in chunks:
                self._emit(f"Received chunk: {chunk.describe()}")

                if chunk.kind == ChunkKind.COMPLETION:
                    if chunk.payload is not None:
                        result = chunk.payload.render()
                        has_content = True
                    self._emit("Workflow completed")
                    break

                if chunk.kind == ChunkKind.ERROR:
                    raise WorkflowExecutionError(chunk.error_message())

                if chunk.payload is not None:
                    result += chunk.payload.render() + "\n"
                    has_content = True

        if not has_content:
            result = NO_RESULT_PLACEHOLDER
        result = normalize_backtick_links(result)

        self._state = EngineState.SUCCEEDED
        self._emit("Workflow succeeded, result received")
        logger.info(f"Workflow {workflow_id} completed (stream)")
        await self._history.append(input=input_text, result=result, success=True)
        return ExecutionOutcome.success(workflow_id, ExecutionMode.STREAM, result, self._progress)

    async def _execute_async(
        self, workflow_id: str, coerced: dict[str, Any], input_text: str
    ) -> ExecutionOutcome:
        """Submit in async mode and park the execution id for later queries."""
        body = await self._api.run_async(workflow_id, coerced)
        self._emit(f"Async submission response: {json.dumps(body, indent=2, ensure_ascii=False)}")

        data = body.get("data")
        execute_id = data.get("execute_id") if isinstance(data, dict) else None
        execute_id = execute_id or body.get("execute_id")
        if not execute_id:
            raise WorkflowExecutionError("No execution id returned")
        execute_id = str(execute_id)

        self._pending = AsyncExecution(workflow_id=workflow_id, execute_id=execute_id)
        self._state = EngineState.ASYNC_PENDING
        self._emit(f"Async workflow started, execution ID: {execute_id}")
        logger.info(f"Workflow {workflow_id} submitted (async), execute_id={execute_id}")

        await self._history.append(
            input=input_text, result=f"Async execution ID: {execute_id}", success=True
        )
        message = (
            f"Async workflow started\nExecution ID: {execute_id}\n\n"
            "Query the execution to check its status and result."
        )
        return ExecutionOutcome.pending(workflow_id, execute_id, message, self._progress)

    # =========================================================================
    # Async query
    # =========================================================================

    async def query(
        self, workflow_id: str | None = None, execute_id: str | None = None
    ) -> ExecutionOutcome:
        """Fetch the latest run record of an async execution.

        Defaults to the pending execution. Only the first run record returned
        by the API is consulted.

        Returns:
            success / failure (terminal) or pending (Running or other status)
        """
        async with self._lock:
            return await self._query(workflow_id, execute_id)

    async def _query(self, workflow_id: str | None, execute_id: str | None) -> ExecutionOutcome:
        pending = self._pending
        workflow_id = (workflow_id or (pending.workflow_id if pending else "")).strip()
        execute_id = (execute_id or (pending.execute_id if pending else "")).strip()

        if not workflow_id or not execute_id:
            error = MissingExecutionId()
            self._emit(f"Query rejected: {error}")
            return ExecutionOutcome.failure(
                workflow_id,
                ExecutionMode.ASYNC,
                error,
                self._progress,
                execute_id=execute_id or None,
            )

        self._pending = AsyncExecution(workflow_id=workflow_id, execute_id=execute_id)
        self._state = EngineState.ASYNC_QUERYING
        history_input = f"Query async execution result (ID: {execute_id})"

        try:
            records = await self._api.get_run_history(workflow_id, execute_id)
            self._emit(f"Query response: {len(records)} run record(s)")
            if not records:
                raise NoResultData(execute_id)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            self._state = EngineState.FAILED
            self._emit(f"Query failed: {message}")
            logger.error(f"Query of execution {execute_id} failed: {message}")
            await self._history.append(input=history_input, result="", success=False, error=message)
            return ExecutionOutcome.failure(
                workflow_id, ExecutionMode.ASYNC, e, self._progress, execute_id=execute_id
            )

        record = records[0]
        status = record.execute_status
        self._emit(f"Query succeeded, status: {status}")
        self._emit(f"Execution ID: {execute_id}")

        if status == STATUS_SUCCESS and record.output is not None:
            result = normalize_backtick_links(record.output.render())
            self._pending = None
            self._state = EngineState.SUCCEEDED
            self._emit("Workflow succeeded, final result retrieved")
            await self._history.append(input=history_input, result=result, success=True)
            return ExecutionOutcome.success(
                workflow_id,
                ExecutionMode.ASYNC,
                result,
                self._progress,
                execute_id=execute_id,
                execution_status=status,
            )

        if status == STATUS_FAILED:
            error = WorkflowExecutionError(
                f"Execution failed: {record.error_message or 'Unknown error'}"
            )
            self._pending = None
            self._state = EngineState.FAILED
            self._emit(str(error))
            await self._history.append(
                input=history_input, result=f"Status: {status}", success=False, error=str(error)
            )
            return ExecutionOutcome.failure(
                workflow_id,
                ExecutionMode.ASYNC,
                error,
                self._progress,
                execute_id=execute_id,
                execution_status=status,
            )

        if status == STATUS_RUNNING:
            message = STILL_RUNNING_MESSAGE
        else:
            message = f"Current execution status: {status}"
        self._state = EngineState.ASYNC_PENDING
        self._emit(message)
        return ExecutionOutcome.pending(
            workflow_id, execute_id, message, self._progress, execution_status=status
        )

    # =========================================================================
    # Progress log
    # =========================================================================

    def _emit(self, line: str) -> None:
        self._progress.append(line)
        logger.debug(line)
        if self._on_progress is not None:
            self._on_progress(line)

    def _emit_request(
        self,
        workflow_id: str,
        params: list[Parameter],
        coerced: dict[str, Any],
        mode: ExecutionMode,
    ) -> None:
        self._emit(f"Calling workflow API ({mode.value} mode)...")
        self._emit(f"Base URL: {self._api.base_url}")
        self._emit(f"Token: {self._api.masked_token}")
        self._emit(f"Workflow ID: {workflow_id}")
        self._emit(f"Parameter count: {len(params)}")
        for param in params:
            self._emit(f"{param.name}: {param.value} ({param.type.value})")
        self._emit(f"Parameters: {json.dumps(coerced, indent=2, ensure_ascii=False)}")


__all__ = [
    "ExecutionEngine",
    "EngineState",
    "AsyncExecution",
    "NO_RESULT_PLACEHOLDER",
    "STILL_RUNNING_MESSAGE",
]
