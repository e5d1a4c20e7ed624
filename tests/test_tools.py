"""Tests for the MCP tool surface.

Tools are called directly with a mock context carrying the AppContext, the
same structure FastMCP injects at runtime.
"""

from collections.abc import AsyncIterator
from unittest.mock import MagicMock

import pytest
from conftest import EXECUTE_ID, TEST_TOKEN, WORKFLOW_ID, WORKSPACE_ID

from workflow_hub.context import AppContext
from workflow_hub.engine import HubConfig
from workflow_hub.server import app_lifespan, mcp
from workflow_hub.tools import (
    ParameterInput,
    clear_history,
    delete_history_record,
    execute_workflow,
    format_result_text,
    get_history_record,
    list_history,
    list_workflows,
    query_async_execution,
)

URL_PARAM = [ParameterInput(name="url", value="https://x.test/article")]


@pytest.fixture
async def app_context(api_mock, tmp_path) -> AsyncIterator[AppContext]:
    config = HubConfig(
        api_base_url=api_mock.base_url,
        token=TEST_TOKEN,
        timeout=10,
        state_dir=str(tmp_path / "state"),
    )
    app_ctx = AppContext.from_config(config)
    yield app_ctx
    await app_ctx.api_client.aclose()


@pytest.fixture
def mock_context(app_context):
    """Mock MCP context with request_context.lifespan_context structure."""
    mock_ctx = MagicMock()
    mock_ctx.request_context.lifespan_context = app_context
    return mock_ctx


class TestParameterInput:
    def test_string_value_is_kept_verbatim(self):
        param = ParameterInput(name="url", value="https://x.test").to_parameter()

        assert param.value == "https://x.test"
        assert param.type.value == "string"

    def test_structured_value_is_serialized(self):
        param = ParameterInput(name="opts", value={"depth": 2}, type="object").to_parameter()

        assert param.value == '{"depth": 2}'

    def test_number_value(self):
        param = ParameterInput(name="n", value=5, type="number").to_parameter()

        assert param.value == "5"


class TestExecutionTools:
    @pytest.mark.asyncio
    async def test_execute_stream(self, api_mock, mock_context):
        api_mock.stream([("Message", "see https://x.test/out"), ("Done", None)])

        response = await execute_workflow(URL_PARAM, workflow_id=WORKFLOW_ID, ctx=mock_context)

        assert response["status"] == "success"
        assert response["mode"] == "stream"
        assert response["result"] == "see https://x.test/out\n"
        assert response["links"] == ["https://x.test/out"]
        assert "progress" not in response

    @pytest.mark.asyncio
    async def test_include_progress(self, api_mock, mock_context):
        api_mock.stream([("Done", "ok")])

        response = await execute_workflow(
            URL_PARAM, workflow_id=WORKFLOW_ID, include_progress=True, ctx=mock_context
        )

        assert any(line.startswith("Calling workflow API") for line in response["progress"])

    @pytest.mark.asyncio
    async def test_blank_workflow_id_uses_last_used(self, api_mock, mock_context, app_context):
        await app_context.settings.set_last_workflow_id(WORKFLOW_ID)
        api_mock.stream([("Done", "ok")])

        response = await execute_workflow(URL_PARAM, ctx=mock_context)

        assert response["status"] == "success"
        assert response["workflow_id"] == WORKFLOW_ID

    @pytest.mark.asyncio
    async def test_blank_workflow_id_without_history(self, api_mock, mock_context):
        response = await execute_workflow(URL_PARAM, ctx=mock_context)

        assert response["status"] == "failure"
        assert response["error_type"] == "MissingWorkflowId"
        assert api_mock.requests == []

    @pytest.mark.asyncio
    async def test_async_then_query(self, api_mock, mock_context):
        api_mock.submit({"code": 0, "msg": "", "execute_id": EXECUTE_ID})
        api_mock.run_history([{"execute_status": "Success", "output": '{"a":1}'}])

        submitted = await execute_workflow(
            URL_PARAM, workflow_id=WORKFLOW_ID, mode="async", ctx=mock_context
        )
        queried = await query_async_execution(ctx=mock_context)

        assert submitted["status"] == "pending"
        assert submitted["execute_id"] == EXECUTE_ID
        assert submitted["query_available"] is True
        assert queried["status"] == "success"
        assert queried["result"] == '{\n  "a": 1\n}'
        assert queried["execution_status"] == "Success"

    @pytest.mark.asyncio
    async def test_query_with_nothing_pending(self, mock_context):
        response = await query_async_execution(ctx=mock_context)

        assert response["status"] == "failure"
        assert response["error_type"] == "MissingExecutionId"

    @pytest.mark.asyncio
    async def test_missing_context(self):
        response = await execute_workflow(URL_PARAM, workflow_id=WORKFLOW_ID, ctx=None)

        assert response["status"] == "failure"


class TestDirectoryTools:
    @pytest.mark.asyncio
    async def test_list_json(self, api_mock, mock_context):
        api_mock.directory([{"workflow_id": WORKFLOW_ID, "workflow_name": "summarize"}])

        response = await list_workflows(workspace_id=WORKSPACE_ID, ctx=mock_context)

        assert response["total"] == 1
        assert response["page_size"] == 20
        assert response["workflows"][0]["workflow_name"] == "summarize"

    @pytest.mark.asyncio
    async def test_list_markdown_with_last_workspace(self, api_mock, mock_context, app_context):
        await app_context.settings.set_last_workspace_id(WORKSPACE_ID)
        api_mock.directory([{"workflow_id": WORKFLOW_ID, "workflow_name": "summarize"}])

        response = await list_workflows(format="markdown", ctx=mock_context)

        assert isinstance(response, str)
        assert "summarize" in response
        assert api_mock.requests[0]["args"]["workspace_id"] == WORKSPACE_ID

    @pytest.mark.asyncio
    async def test_invalid_workspace(self, api_mock, mock_context):
        response = await list_workflows(workspace_id="123", ctx=mock_context)

        assert response["status"] == "failure"
        assert response["error_type"] == "InvalidWorkspaceId"
        assert api_mock.requests == []

    @pytest.mark.asyncio
    async def test_remote_error(self, api_mock, mock_context):
        api_mock.directory_raw({"code": 4100, "msg": "authentication is invalid"}, status=401)

        response = await list_workflows(
            workspace_id=WORKSPACE_ID, format="markdown", ctx=mock_context
        )

        assert response == (
            "**Error**: HTTP error! status: 401 - authentication is invalid (code: 4100)"
        )

    @pytest.mark.asyncio
    async def test_malformed_page_is_a_failure_response(self, api_mock, mock_context):
        api_mock.directory_raw({"code": 0, "data": [1, 2]})

        response = await list_workflows(workspace_id=WORKSPACE_ID, ctx=mock_context)

        assert response["status"] == "failure"
        assert response["error_type"] == "DirectoryFetchError"

    @pytest.mark.asyncio
    async def test_null_description_is_listed(self, api_mock, mock_context):
        api_mock.directory([{"workflow_id": WORKFLOW_ID, "description": None}])

        response = await list_workflows(workspace_id=WORKSPACE_ID, ctx=mock_context)

        assert response["workflows"][0]["description"] == ""


class TestHistoryTools:
    @pytest.mark.asyncio
    async def test_history_lifecycle(self, api_mock, mock_context):
        api_mock.stream([("Done", "ok")])
        await execute_workflow(URL_PARAM, workflow_id=WORKFLOW_ID, ctx=mock_context)

        listed = await list_history(ctx=mock_context)
        assert listed["total"] == 1
        record = listed["records"][0]
        assert record["input"] == "url: https://x.test/article"
        assert record["success"] is True

        found = await get_history_record(record["id"], ctx=mock_context)
        assert found["found"] is True
        assert found["record"]["result"] == "ok"

        deleted = await delete_history_record(record["id"], ctx=mock_context)
        assert deleted == {"deleted": True, "record_id": record["id"]}

        missing = await get_history_record(record["id"], ctx=mock_context)
        assert missing["found"] is False

    @pytest.mark.asyncio
    async def test_delete_unknown_record(self, mock_context):
        response = await delete_history_record("missing", ctx=mock_context)

        assert response["deleted"] is False

    @pytest.mark.asyncio
    async def test_clear(self, mock_context, app_context):
        await app_context.history.append(input="a", result="", success=True)
        await app_context.history.append(input="b", result="", success=False, error="boom")

        response = await clear_history(ctx=mock_context)

        assert response == {"cleared": True, "removed": 2}
        assert await list_history(format="markdown", ctx=mock_context) == "No execution history"


class TestFormatTool:
    @pytest.mark.asyncio
    async def test_json(self):
        response = await format_result_text('{"pdf":"https://x.test/a.pdf"}')

        assert response["is_json"] is True
        assert response["links"] == ["https://x.test/a.pdf"]
        assert "".join(s["value"] for s in response["segments"]) == response["text"]

    @pytest.mark.asyncio
    async def test_markdown(self):
        response = await format_result_text("plain", format="markdown")

        assert response == "```\nplain\n```"


class TestServer:
    @pytest.mark.asyncio
    async def test_lifespan_builds_context(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WORKFLOW_HUB_STATE_DIR", str(tmp_path))
        monkeypatch.setenv("WORKFLOW_HUB_TOKEN", TEST_TOKEN)

        async with app_lifespan(mcp) as app_ctx:
            assert app_ctx.config.token == TEST_TOKEN
            assert app_ctx.history.path == tmp_path / "history.json"
            assert app_ctx.engine.pending is None

    @pytest.mark.asyncio
    async def test_tools_are_registered(self):
        names = {tool.name for tool in await mcp.list_tools()}

        assert {
            "execute_workflow",
            "query_async_execution",
            "list_workflows",
            "list_history",
            "get_history_record",
            "delete_history_record",
            "clear_history",
            "format_result_text",
        } <= names
