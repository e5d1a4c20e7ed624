"""Shared test configuration for workflow-hub tests.

Provides:
- A local mock of the remote workflow API (replaces api.coze.cn)
- API client, history store, settings store and engine wired against the
  mock server and tmp_path
- Helpers for building server-sent event bodies
"""

import json
from collections.abc import AsyncIterator, Iterable
from typing import Any

import pytest
from pytest_httpserver import HTTPServer
from werkzeug.wrappers import Request, Response

from workflow_hub.engine import (
    ExecutionEngine,
    HistoryStore,
    Parameter,
    ParameterType,
    SettingsStore,
    WorkflowApiClient,
)

TEST_TOKEN = "pat_test_0123456789abcdefghijklmnopqrstuvwxyz"
WORKFLOW_ID = "7549775278664024079"
WORKSPACE_ID = "7480000000000000001"
EXECUTE_ID = "7550000000000000042"

HUB_ENV_VARS = (
    "WORKFLOW_HUB_TOKEN",
    "WORKFLOW_HUB_API_BASE_URL",
    "WORKFLOW_HUB_TIMEOUT",
    "WORKFLOW_HUB_STATE_DIR",
    "WORKFLOW_HUB_CONFIG",
    "WORKFLOW_HUB_LOG_LEVEL",
)


def sse_body(events: Iterable[tuple[str, Any]]) -> str:
    """Build a text/event-stream body from (event, data) pairs.

    ``data`` may be None (no data line), a str (sent verbatim) or any JSON
    value (serialized).
    """
    lines = []
    for index, (event, data) in enumerate(events):
        lines.append(f"id: {index}")
        lines.append(f"event: {event}")
        if data is not None:
            text = data if isinstance(data, str) else json.dumps(data)
            lines.append(f"data: {text}")
        lines.append("")
    return "\n".join(lines) + "\n"


def make_parameter(name: str, value: str, type: str = "string") -> Parameter:
    return Parameter(name=name, value=value, type=ParameterType(type))


class WorkflowApiMock:
    """Local stand-in for the remote workflow API.

    Every handled request is recorded in ``requests`` so tests can assert on
    request bodies, query strings and headers, or on the absence of calls.
    """

    def __init__(self, server: HTTPServer) -> None:
        self.server = server
        self.requests: list[dict[str, Any]] = []

    @property
    def base_url(self) -> str:
        return self.server.url_for("/").rstrip("/")

    def _record(self, request: Request) -> None:
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "args": dict(request.args),
                "json": request.get_json(silent=True),
                "headers": dict(request.headers),
            }
        )

    def _json(self, body: Any, status: int = 200) -> Response:
        return Response(json.dumps(body), status=status, content_type="application/json")

    def stream(self, events: Iterable[tuple[str, Any]]) -> None:
        """Answer the stream endpoint with the given events."""
        body = sse_body(events)

        def handler(request: Request) -> Response:
            self._record(request)
            return Response(body, content_type="text/event-stream")

        self.server.expect_request("/v1/workflow/stream_run", method="POST").respond_with_handler(
            handler
        )

    def stream_error(self, status: int, body: Any) -> None:
        """Answer the stream endpoint with a JSON error body."""

        def handler(request: Request) -> Response:
            self._record(request)
            return self._json(body, status)

        self.server.expect_request("/v1/workflow/stream_run", method="POST").respond_with_handler(
            handler
        )

    def submit(self, body: Any, status: int = 200) -> None:
        """Answer the async submission endpoint."""

        def handler(request: Request) -> Response:
            self._record(request)
            return self._json(body, status)

        self.server.expect_request("/v1/workflow/run", method="POST").respond_with_handler(handler)

    def run_history(
        self,
        *responses: list[dict[str, Any]],
        workflow_id: str = WORKFLOW_ID,
        execute_id: str = EXECUTE_ID,
    ) -> None:
        """Answer successive queries with successive record lists (last one repeats)."""
        remaining = list(responses)

        def handler(request: Request) -> Response:
            self._record(request)
            records = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            return self._json({"code": 0, "msg": "", "data": records})

        self.server.expect_request(
            f"/v1/workflows/{workflow_id}/run_histories/{execute_id}", method="GET"
        ).respond_with_handler(handler)

    def run_history_error(
        self, status: int, body: Any, workflow_id: str = WORKFLOW_ID, execute_id: str = EXECUTE_ID
    ) -> None:
        def handler(request: Request) -> Response:
            self._record(request)
            return self._json(body, status)

        self.server.expect_request(
            f"/v1/workflows/{workflow_id}/run_histories/{execute_id}", method="GET"
        ).respond_with_handler(handler)

    def directory(self, items: list[dict[str, Any]], has_more: bool = False) -> None:
        """Answer the directory endpoint with one page."""
        self.directory_raw({"code": 0, "msg": "", "data": {"items": items, "has_more": has_more}})

    def directory_raw(
        self, body: Any, status: int = 200, content_type: str = "application/json"
    ) -> None:
        text = body if isinstance(body, str) else json.dumps(body)

        def handler(request: Request) -> Response:
            self._record(request)
            return Response(text, status=status, content_type=content_type)

        self.server.expect_request("/v1/workflows", method="GET").respond_with_handler(handler)


@pytest.fixture
def api_mock(httpserver: HTTPServer) -> WorkflowApiMock:
    """Local mock of the remote workflow API."""
    return WorkflowApiMock(httpserver)


@pytest.fixture(autouse=True)
def clean_hub_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep WORKFLOW_HUB_* variables from the developer's shell out of tests."""
    for name in HUB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def api_client(api_mock: WorkflowApiMock) -> AsyncIterator[WorkflowApiClient]:
    client = WorkflowApiClient(token=TEST_TOKEN, base_url=api_mock.base_url, timeout=10)
    yield client
    await client.aclose()


@pytest.fixture
def history_store(tmp_path) -> HistoryStore:
    return HistoryStore(tmp_path / "history.json")


@pytest.fixture
def settings_store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def engine(
    api_client: WorkflowApiClient, history_store: HistoryStore, settings_store: SettingsStore
) -> ExecutionEngine:
    return ExecutionEngine(api_client, history_store, settings_store)
