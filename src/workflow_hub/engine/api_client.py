"""HTTP transport for the remote workflow API.

Endpoints:
    POST /v1/workflow/stream_run                               (stream mode, SSE)
    POST /v1/workflow/run  {"is_async": true}                  (async submission)
    GET  /v1/workflows/{workflow_id}/run_histories/{execute_id} (run history)
    GET  /v1/workflows?workspace_id=...                        (directory listing)

Every request carries ``Authorization: Bearer <token>``. Non-success
responses and network failures are raised as TransportError; payload shapes
are decoded into the tagged Payload variant before leaving this module.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from .config import DEFAULT_API_BASE_URL, HubConfig
from .exceptions import TransportError
from .parameters import to_wire_value
from .payload import Payload, decode_value
from .stream import StreamChunk, iter_chunks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunRecord:
    """Remote snapshot of one execution's status and output."""

    execute_id: str | None = None
    execute_status: str = ""  # Running / Success / Failed / ...
    output: Payload | None = None
    error_message: str | None = None
    debug_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RunRecord:
        error_message = data.get("error_message")
        return cls(
            execute_id=str(data["execute_id"]) if data.get("execute_id") else None,
            execute_status=str(data.get("execute_status") or ""),
            output=decode_value(data.get("output")),
            error_message=str(error_message) if error_message else None,
            debug_url=data.get("debug_url"),
        )


def mask_token(token: str) -> str:
    """Show only the first 20 characters of a credential."""
    return f"{token[:20]}..."


def _error_message(response: httpx.Response) -> str:
    """Extract the remote ``msg`` from an error body, or describe the status."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("msg"):
        return str(body["msg"])
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class WorkflowApiClient:
    """Async client for workflow invocation, run history and directory listing.

    Usage:
        async with WorkflowApiClient.from_config(config) as client:
            async for chunk in client.stream_run("7549...", {"url": "..."}):
                ...
            execute_id = await client.run_async("7549...", {"url": "..."})
            records = await client.get_run_history("7549...", execute_id)

    The transport timeout is the only timeout applied to an invocation.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: HubConfig) -> WorkflowApiClient:
        return cls(token=config.token, base_url=config.api_base_url, timeout=config.timeout)

    @property
    def token(self) -> str:
        return self._token

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def masked_token(self) -> str:
        return mask_token(self._token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> WorkflowApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # Invocation

    async def stream_run(
        self, workflow_id: str, parameters: dict[str, Any]
    ) -> AsyncIterator[StreamChunk]:
        """Invoke a workflow in stream mode and yield chunks in arrival order.

        Raises:
            TransportError: Non-success response or network failure
        """
        body = {"workflow_id": workflow_id, "parameters": to_wire_value(parameters)}
        try:
            async with self._client.stream(
                "POST",
                "/v1/workflow/stream_run",
                content=self._encode(body),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise TransportError(response.status_code, _error_message(response))

                content_type = response.headers.get("content-type", "")
                if "text/event-stream" not in content_type.lower():
                    # Errors may arrive as a plain JSON body with a non-zero code
                    await response.aread()
                    self._check_body(response)

                async for chunk in iter_chunks(response.aiter_lines()):
                    yield chunk
        except httpx.HTTPError as e:
            raise TransportError(0, f"Network error: {e}") from e

    async def run_async(self, workflow_id: str, parameters: dict[str, Any]) -> dict[str, Any]:
        """Submit a workflow in async mode.

        Returns:
            The decoded response body (contains the execution id)

        Raises:
            TransportError: Non-success response or network failure
        """
        body = {
            "is_async": True,
            "workflow_id": workflow_id,
            "parameters": to_wire_value(parameters),
        }
        return await self._request("POST", "/v1/workflow/run", content=self._encode(body))

    async def get_run_history(self, workflow_id: str, execute_id: str) -> list[RunRecord]:
        """Fetch the run records of one async execution (possibly empty).

        Raises:
            TransportError: Non-success response or network failure
        """
        body = await self._request(
            "GET", f"/v1/workflows/{workflow_id}/run_histories/{execute_id}"
        )
        data = body.get("data") or []
        if isinstance(data, dict):
            data = [data]
        return [RunRecord.from_api(item) for item in data if isinstance(item, dict)]

    # Directory

    async def list_workflows(self, params: dict[str, Any]) -> httpx.Response:
        """Fetch one page of the workflow directory.

        The raw response is returned so the directory client can apply its
        own error reporting.

        Raises:
            TransportError: Network failure
        """
        try:
            return await self._client.get("/v1/workflows", params=params)
        except httpx.HTTPError as e:
            raise TransportError(0, f"Network error: {e}") from e

    # Internals

    @staticmethod
    def _encode(body: dict[str, Any]) -> bytes:
        return json.dumps(body, ensure_ascii=False).encode("utf-8")

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(0, f"Network error: {e}") from e

        if not response.is_success:
            raise TransportError(response.status_code, _error_message(response))

        return self._check_body(response)

    @staticmethod
    def _check_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(response.status_code, f"Invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise TransportError(response.status_code, "Unexpected response shape")

        code = body.get("code")
        if code not in (None, 0):
            message = body.get("msg") or f"API error code {code}"
            raise TransportError(response.status_code, f"{message} (code: {code})")
        return body


__all__ = ["WorkflowApiClient", "RunRecord", "mask_token"]
