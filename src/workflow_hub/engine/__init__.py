"""Workflow invocation core.

Key Components:

- Parameter / ParameterSet: typed parameters, validation and coercion
- WorkflowApiClient: httpx transport (stream, async submit, run history, directory)
- ExecutionEngine: stream / async state machine producing ExecutionOutcome
- ExecutionOutcome: result monad (success / failure / pending)
- HistoryStore: bounded, persisted execution history
- SettingsStore: last-used workflow id and workspace id
- WorkflowDirectoryClient: paginated workflow listing
- HubConfig / HubConfigLoader: configuration from YAML file and environment

Architecture:
- Payload shapes (text vs structured) are decoded at the transport boundary
- Stream chunks are consumed strictly in arrival order from an async iterator
- Validation errors never reach the network; all other errors become failure
  outcomes recorded to history
- History persistence failures are logged and swallowed
"""

from .api_client import RunRecord, WorkflowApiClient
from .config import HubConfig, HubConfigLoader
from .directory import WorkflowDescriptor, WorkflowDirectoryClient, WorkflowPage
from .exceptions import (
    DirectoryFetchError,
    EmptyParameterSet,
    IncompleteParameter,
    InvalidCredential,
    InvalidPage,
    InvalidPageSize,
    InvalidPublishStatus,
    InvalidWorkspaceId,
    MissingExecutionId,
    MissingWorkflowId,
    NoResultData,
    PersistenceError,
    TransportError,
    ValidationError,
    WorkflowExecutionError,
    WorkflowHubError,
)
from .execution_engine import AsyncExecution, EngineState, ExecutionEngine
from .execution_result import ExecutionMode, ExecutionOutcome
from .history_store import HistoryRecord, HistoryStore
from .parameters import (
    Parameter,
    ParameterSet,
    ParameterType,
    ParameterValidation,
    coerce_parameters,
    encode_parameters,
    validate_parameters,
)
from .payload import Payload, StructuredPayload, TextPayload
from .settings_store import SettingsStore
from .state_config import StateConfig
from .stream import ChunkKind, StreamChunk

__all__ = [
    # Parameters
    "Parameter",
    "ParameterSet",
    "ParameterType",
    "ParameterValidation",
    "validate_parameters",
    "coerce_parameters",
    "encode_parameters",
    # Transport
    "WorkflowApiClient",
    "RunRecord",
    "StreamChunk",
    "ChunkKind",
    "Payload",
    "TextPayload",
    "StructuredPayload",
    # Execution
    "ExecutionEngine",
    "EngineState",
    "AsyncExecution",
    "ExecutionMode",
    "ExecutionOutcome",
    # Persistence
    "HistoryRecord",
    "HistoryStore",
    "SettingsStore",
    "StateConfig",
    # Directory
    "WorkflowDirectoryClient",
    "WorkflowDescriptor",
    "WorkflowPage",
    # Configuration
    "HubConfig",
    "HubConfigLoader",
    # Errors
    "WorkflowHubError",
    "ValidationError",
    "EmptyParameterSet",
    "IncompleteParameter",
    "MissingWorkflowId",
    "MissingExecutionId",
    "InvalidCredential",
    "InvalidWorkspaceId",
    "InvalidPage",
    "InvalidPageSize",
    "InvalidPublishStatus",
    "TransportError",
    "DirectoryFetchError",
    "WorkflowExecutionError",
    "NoResultData",
    "PersistenceError",
]
