"""Exception taxonomy for workflow invocation, directory listing and history.

Exception Hierarchy:
    WorkflowHubError (base)
    ├── ValidationError (bad input, never reaches the network)
    │   ├── EmptyParameterSet
    │   ├── IncompleteParameter
    │   ├── MissingWorkflowId
    │   ├── MissingExecutionId
    │   ├── InvalidCredential
    │   ├── InvalidWorkspaceId
    │   ├── InvalidPage
    │   ├── InvalidPageSize
    │   └── InvalidPublishStatus
    ├── TransportError (non-success response or network failure)
    │   └── DirectoryFetchError
    ├── WorkflowExecutionError (remote-signaled failure)
    ├── NoResultData (async query returned no run record)
    └── PersistenceError (history/settings read or write failure)

Propagation:
    ValidationError aborts an attempt before any network call. Every other
    error raised during an attempt is converted by the ExecutionEngine into a
    failure ExecutionOutcome. PersistenceError never leaves the stores.
"""

from __future__ import annotations


class WorkflowHubError(Exception):
    """Base exception for all workflow hub errors."""

    pass


# =============================================================================
# Validation
# =============================================================================


class ValidationError(WorkflowHubError):
    """Input rejected before any network call."""

    pass


class EmptyParameterSet(ValidationError):  # noqa: N818
    """Raised when an execution is requested with no parameters."""

    def __init__(self) -> None:
        super().__init__("At least one parameter is required")


class IncompleteParameter(ValidationError):  # noqa: N818
    """Raised when a parameter has a blank name or value.

    Attributes:
        names: Names of the offending parameters (blank names included as "")
    """

    def __init__(self, names: list[str]) -> None:
        self.names = names
        super().__init__("Every parameter must have a name and a value")


class MissingWorkflowId(ValidationError):  # noqa: N818
    def __init__(self) -> None:
        super().__init__("A workflow id is required")


class MissingExecutionId(ValidationError):  # noqa: N818
    def __init__(self) -> None:
        super().__init__("No execution id or workflow id available to query")


class InvalidCredential(ValidationError):  # noqa: N818
    def __init__(self) -> None:
        super().__init__("An access token is required")


class InvalidWorkspaceId(ValidationError):  # noqa: N818
    """Raised when a workspace id is blank, non-numeric or too short."""

    def __init__(self, workspace_id: str, reason: str) -> None:
        self.workspace_id = workspace_id
        self.reason = reason
        super().__init__(f"Invalid workspace id {workspace_id!r}: {reason}")


class InvalidPage(ValidationError):  # noqa: N818
    def __init__(self, page: int) -> None:
        self.page = page
        super().__init__(f"Page number must be an integer >= 1 (got {page!r})")


class InvalidPageSize(ValidationError):  # noqa: N818
    def __init__(self, page_size: int) -> None:
        self.page_size = page_size
        super().__init__(f"Page size must be an integer between 1 and 100 (got {page_size!r})")


class InvalidPublishStatus(ValidationError):  # noqa: N818
    def __init__(self, publish_status: str) -> None:
        self.publish_status = publish_status
        super().__init__(
            f"Publish status must be one of 'all', 'published', 'draft' (got {publish_status!r})"
        )


# =============================================================================
# Transport
# =============================================================================


class TransportError(WorkflowHubError):
    """Non-success response from the remote API, or a network failure.

    Attributes:
        status: HTTP status code (0 if no response was received)
        message: Message extracted from the response body, or a description
            of the network failure
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, message={self.message!r})"


class DirectoryFetchError(TransportError):
    """Workflow directory listing failed on the remote side."""

    pass


# =============================================================================
# Execution
# =============================================================================


class WorkflowExecutionError(WorkflowHubError):
    """Remote-signaled failure mid-stream or in a run record."""

    pass


class NoResultData(WorkflowHubError):  # noqa: N818
    """An async query returned no run record for the execution id."""

    def __init__(self, execute_id: str) -> None:
        self.execute_id = execute_id
        super().__init__(f"No result data returned for execution {execute_id}")


class PersistenceError(WorkflowHubError):
    """Reading or writing a persisted blob failed."""

    pass


__all__ = [
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
