"""Tests for async-mode submission and caller-triggered queries."""

import pytest
from conftest import EXECUTE_ID, WORKFLOW_ID, make_parameter

from workflow_hub.engine import AsyncExecution, EngineState, ExecutionMode
from workflow_hub.engine.execution_engine import STILL_RUNNING_MESSAGE

QUERY_INPUT = f"Query async execution result (ID: {EXECUTE_ID})"


@pytest.fixture
def params():
    return [make_parameter("url", "https://x.test/article")]


@pytest.fixture
async def submitted(api_mock, engine, params):
    """Engine with one async execution pending."""
    api_mock.submit({"code": 0, "msg": "", "execute_id": EXECUTE_ID})
    outcome = await engine.execute(WORKFLOW_ID, params, ExecutionMode.ASYNC)
    assert outcome.status == "pending"
    return engine


class TestAsyncSubmission:
    @pytest.mark.asyncio
    async def test_submission_returns_pending_outcome(
        self, api_mock, engine, history_store, params
    ):
        api_mock.submit({"code": 0, "msg": "", "execute_id": EXECUTE_ID})

        outcome = await engine.execute(WORKFLOW_ID, params, ExecutionMode.ASYNC)

        assert outcome.status == "pending"
        assert outcome.execute_id == EXECUTE_ID
        assert outcome.query_available is True
        assert EXECUTE_ID in outcome.result
        assert engine.state == EngineState.ASYNC_PENDING
        assert engine.pending == AsyncExecution(WORKFLOW_ID, EXECUTE_ID)

        assert api_mock.requests[0]["json"]["is_async"] is True

        records = await history_store.list()
        assert records[0].result == f"Async execution ID: {EXECUTE_ID}"
        assert records[0].success is True

    @pytest.mark.asyncio
    async def test_execute_id_nested_under_data(self, api_mock, engine, params):
        api_mock.submit({"code": 0, "data": {"execute_id": "123456"}})

        outcome = await engine.execute(WORKFLOW_ID, params, ExecutionMode.ASYNC)

        assert outcome.execute_id == "123456"

    @pytest.mark.asyncio
    async def test_missing_execute_id_is_a_failure(self, api_mock, engine, history_store, params):
        api_mock.submit({"code": 0, "msg": ""})

        outcome = await engine.execute(WORKFLOW_ID, params, ExecutionMode.ASYNC)

        assert outcome.status == "failure"
        assert outcome.error == "No execution id returned"
        assert engine.pending is None
        records = await history_store.list()
        assert records[0].success is False


class TestAsyncQuery:
    """Each query is one request; the engine never polls."""

    @pytest.mark.asyncio
    async def test_running_stays_pending(self, api_mock, submitted, history_store):
        api_mock.run_history([{"execute_id": EXECUTE_ID, "execute_status": "Running"}])

        outcome = await submitted.query()

        assert outcome.status == "pending"
        assert outcome.result == STILL_RUNNING_MESSAGE
        assert outcome.execution_status == "Running"
        assert submitted.query_available is True
        assert len(await history_store.list()) == 1  # submission only

    @pytest.mark.asyncio
    async def test_success_returns_formatted_output(self, api_mock, submitted, history_store):
        api_mock.run_history(
            [{"execute_id": EXECUTE_ID, "execute_status": "Success", "output": {"a": 1}}]
        )

        outcome = await submitted.query()

        assert outcome.status == "success"
        assert outcome.result == '{\n  "a": 1\n}'
        assert submitted.pending is None
        assert submitted.state == EngineState.SUCCEEDED

        latest = (await history_store.list())[0]
        assert latest.input == QUERY_INPUT
        assert latest.success is True
        assert latest.result == '{\n  "a": 1\n}'

    @pytest.mark.asyncio
    async def test_string_output_is_pretty_printed_in_response(self, api_mock, submitted):
        api_mock.run_history(
            [{"execute_id": EXECUTE_ID, "execute_status": "Success", "output": '{"a":1}'}]
        )

        outcome = await submitted.query()

        assert outcome.result == '{"a":1}'
        assert outcome.to_response()["result"] == '{\n  "a": 1\n}'

    @pytest.mark.asyncio
    async def test_running_then_success(self, api_mock, submitted):
        api_mock.run_history(
            [{"execute_status": "Running"}],
            [{"execute_status": "Success", "output": "done"}],
        )

        first = await submitted.query()
        second = await submitted.query()

        assert first.status == "pending"
        assert second.status == "success"
        assert second.result == "done"
        assert len(api_mock.requests) == 3  # submit + two queries

    @pytest.mark.asyncio
    async def test_failed_status(self, api_mock, submitted, history_store):
        api_mock.run_history([{"execute_status": "Failed", "error_message": "Node timeout"}])

        outcome = await submitted.query()

        assert outcome.status == "failure"
        assert outcome.error == "Execution failed: Node timeout"
        assert outcome.execution_status == "Failed"

        latest = (await history_store.list())[0]
        assert latest.success is False
        assert latest.result == "Status: Failed"
        assert latest.error == "Execution failed: Node timeout"

    @pytest.mark.asyncio
    async def test_failed_status_without_message(self, api_mock, submitted):
        api_mock.run_history([{"execute_status": "Failed"}])

        outcome = await submitted.query()

        assert outcome.error == "Execution failed: Unknown error"

    @pytest.mark.asyncio
    async def test_no_records_is_a_failure_that_can_be_retried(
        self, api_mock, submitted, history_store
    ):
        api_mock.run_history([])

        outcome = await submitted.query()

        assert outcome.status == "failure"
        assert outcome.error_type == "NoResultData"
        assert outcome.query_available is True
        assert submitted.pending == AsyncExecution(WORKFLOW_ID, EXECUTE_ID)
        assert (await history_store.list())[0].success is False

    @pytest.mark.asyncio
    async def test_transport_error_during_query(self, api_mock, submitted):
        api_mock.run_history_error(404, {"code": 4004, "msg": "execution not found"})

        outcome = await submitted.query()

        assert outcome.status == "failure"
        assert outcome.error_type == "TransportError"
        assert outcome.error == "execution not found"
        assert submitted.query_available is True

    @pytest.mark.asyncio
    async def test_other_status_is_reported(self, api_mock, submitted, history_store):
        api_mock.run_history([{"execute_status": "Queued"}])

        outcome = await submitted.query()

        assert outcome.status == "pending"
        assert outcome.result == "Current execution status: Queued"
        assert len(await history_store.list()) == 1

    @pytest.mark.asyncio
    async def test_query_without_pending_execution(self, api_mock, engine):
        outcome = await engine.query()

        assert outcome.status == "failure"
        assert outcome.error_type == "MissingExecutionId"
        assert api_mock.requests == []

    @pytest.mark.asyncio
    async def test_query_with_explicit_ids(self, api_mock, engine):
        api_mock.run_history([{"execute_status": "Success", "output": "done"}])

        outcome = await engine.query(workflow_id=WORKFLOW_ID, execute_id=EXECUTE_ID)

        assert outcome.status == "success"
        assert outcome.execute_id == EXECUTE_ID
