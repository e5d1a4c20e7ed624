"""Workflow directory: paginated listing of invocable workflows.

Independent of execution: directory errors are raised to the caller and
never touch ExecutionEngine state.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .api_client import WorkflowApiClient
from .exceptions import (
    DirectoryFetchError,
    InvalidCredential,
    InvalidPage,
    InvalidPageSize,
    InvalidPublishStatus,
    InvalidWorkspaceId,
)
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

PublishStatus = Literal["all", "published", "draft"]
PUBLISH_STATUSES: tuple[str, ...] = ("all", "published", "draft")
MIN_WORKSPACE_ID_LENGTH = 10
MAX_PAGE_SIZE = 100


class WorkflowDescriptor(BaseModel):
    """Read-only description of one invocable workflow."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    workflow_id: str = Field(description="Workflow ID")
    workflow_name: str = Field(default="", description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    publish_status: str | None = Field(default=None, description="Publish status")
    create_time: int | None = Field(default=None, description="Creation time (epoch seconds)")
    update_time: int | None = Field(default=None, description="Update time (epoch seconds)")
    icon_url: str | None = Field(default=None, description="Icon URL")

    @field_validator("workflow_id", mode="before")
    @classmethod
    def _validate_workflow_id(cls, v: Any) -> Any:
        """Accept numeric ids as sent by some API versions."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("workflow_name", "description", mode="before")
    @classmethod
    def _validate_text(cls, v: Any) -> Any:
        """Treat explicit nulls as empty text."""
        return "" if v is None else v


class WorkflowPage(BaseModel):
    """One page of the directory."""

    items: list[WorkflowDescriptor] = Field(default_factory=list)
    has_more: bool = False

    @property
    def total(self) -> int:
        """Number of workflows on this page."""
        return len(self.items)


def validate_workspace_id(workspace_id: str) -> None:
    """Workspace ids are purely numeric and at least 10 digits long.

    Raises:
        InvalidWorkspaceId: With the failing rule as reason
    """
    if not workspace_id or not workspace_id.strip():
        raise InvalidWorkspaceId(workspace_id, "must not be empty")
    if not workspace_id.isdigit() or not workspace_id.isascii():
        raise InvalidWorkspaceId(workspace_id, "must be purely numeric")
    if len(workspace_id) < MIN_WORKSPACE_ID_LENGTH:
        raise InvalidWorkspaceId(workspace_id, "is too short")


class WorkflowDirectoryClient:
    """Fetch pages of workflow descriptors for a workspace.

    Usage:
        directory = WorkflowDirectoryClient(api_client, settings)
        page = await directory.list_workflows("7549775278664024079", page=1)
        for workflow in page.items:
            print(workflow.workflow_id, workflow.workflow_name)
    """

    def __init__(self, api_client: WorkflowApiClient, settings: SettingsStore) -> None:
        self._api = api_client
        self._settings = settings

    async def list_workflows(
        self,
        workspace_id: str,
        page: int = 1,
        page_size: int = 20,
        publish_status: str = "all",
    ) -> WorkflowPage:
        """List one page of workflows.

        Raises:
            InvalidCredential: Token is empty
            InvalidWorkspaceId: Workspace id is empty, non-numeric or too short
            InvalidPage: page < 1
            InvalidPageSize: page_size outside [1, 100]
            InvalidPublishStatus: Unknown publish status filter
            DirectoryFetchError: Remote returned a non-success response or a
                malformed page
            TransportError: Network failure
        """
        if not self._api.token or not self._api.token.strip():
            raise InvalidCredential()
        validate_workspace_id(workspace_id)
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidPage(page)
        if (
            isinstance(page_size, bool)
            or not isinstance(page_size, int)
            or not 1 <= page_size <= MAX_PAGE_SIZE
        ):
            raise InvalidPageSize(page_size)
        if publish_status not in PUBLISH_STATUSES:
            raise InvalidPublishStatus(publish_status)

        params = {
            "workspace_id": workspace_id,
            "page_num": str(page),
            "page_size": str(page_size),
            "publish_status": publish_status,
        }
        logger.debug(
            f"Listing workflows: workspace={workspace_id} page={page} size={page_size} "
            f"status={publish_status} token={self._api.masked_token}"
        )

        response = await self._api.list_workflows(params)

        if not response.is_success:
            raise DirectoryFetchError(
                response.status_code, self._describe_error(response.status_code, response.text)
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DirectoryFetchError(
                response.status_code, f"Invalid JSON in directory response: {e}"
            ) from e

        code = body.get("code") if isinstance(body, dict) else None
        if code not in (None, 0):
            raise DirectoryFetchError(response.status_code, body.get("msg") or f"code {code}")

        result = self._parse_page(response.status_code, body)
        logger.info(f"Fetched {result.total} workflows (has_more={result.has_more})")

        await self._settings.set_last_workspace_id(workspace_id)
        return result

    @staticmethod
    def _parse_page(status: int, body: Any) -> WorkflowPage:
        """Build a WorkflowPage from a success body.

        Raises:
            DirectoryFetchError: Body, data or an item has an unexpected shape
        """
        if not isinstance(body, dict):
            raise DirectoryFetchError(
                status, f"Unexpected directory response: body is {type(body).__name__}"
            )
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise DirectoryFetchError(
                status, f"Unexpected directory response: data is {type(data).__name__}"
            )
        items = data.get("items") or []
        if not isinstance(items, list):
            raise DirectoryFetchError(
                status, f"Unexpected directory response: items is {type(items).__name__}"
            )
        try:
            return WorkflowPage(
                items=[WorkflowDescriptor.model_validate(item) for item in items],
                has_more=bool(data.get("has_more", False)),
            )
        except ValidationError as e:
            raise DirectoryFetchError(status, f"Invalid workflow in directory response: {e}") from e

    @staticmethod
    def _describe_error(status: int, text: str) -> str:
        """Build ``HTTP error! status: N - msg (code: C)`` from an error body."""
        message = f"HTTP error! status: {status}"
        try:
            error_data = json.loads(text)
        except ValueError:
            return f"{message} - {text}"
        if isinstance(error_data, dict):
            if error_data.get("msg"):
                message += f" - {error_data['msg']}"
            if error_data.get("code"):
                message += f" (code: {error_data['code']})"
        return message


__all__ = [
    "WorkflowDescriptor",
    "WorkflowPage",
    "WorkflowDirectoryClient",
    "PublishStatus",
    "validate_workspace_id",
]
