"""
Workflow retry tests

DocumentChainWorkflow.run is driven directly with the temporalio workflow
API patched out. A chain that may have committed documents must never be
scheduled twice; only connection failures are.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio.exceptions import (
    ActivityError,
    ApplicationError,
    RetryState,
    TimeoutError as ActivityTimeoutError,
    TimeoutType,
)

from activities.document_chain import DocumentChainInput
from workflows.document_chain_workflow import (
    ACTIVITY_OPTIONS,
    CONNECT_ATTEMPTS,
    ChainStatus,
    DocumentChainWorkflow,
    connect_retry_delay,
    is_connect_failure,
)

RESULT = {"succeeded": True, "summary": "Incoming Payment was added successfully"}


def activity_failure(cause: BaseException) -> ActivityError:
    error = ActivityError(
        "Activity task failed",
        scheduled_event_id=5,
        started_event_id=6,
        identity="worker-1",
        activity_type="post_document_chain",
        activity_id="1",
        retry_state=RetryState.MAXIMUM_ATTEMPTS_REACHED,
    )
    error.__cause__ = cause
    return error


def connect_failure() -> ActivityError:
    return activity_failure(ApplicationError("Could not connect to SBODEMOUS", type="ConnectError"))


def timeout_failure() -> ActivityError:
    return activity_failure(ActivityTimeoutError("activity timeout", type=TimeoutType.START_TO_CLOSE, last_heartbeat_details=[]))


def run_workflow(*outcomes):
    """Run the workflow with execute_activity returning/raising `outcomes` in order."""
    wf = DocumentChainWorkflow()
    execute = AsyncMock(side_effect=list(outcomes))
    sleep = AsyncMock()

    api = MagicMock()
    api.execute_activity = execute
    api.info.return_value = MagicMock(workflow_id="doc-chain-1a2b3c4d")

    input = DocumentChainInput(order={}, payment={})
    with patch("workflows.document_chain_workflow.workflow", api), \
            patch("workflows.document_chain_workflow.asyncio", MagicMock(sleep=sleep)):
        try:
            result = asyncio.run(wf.run(input))
        except ActivityError as e:
            result = e
    return wf, result, execute, sleep


class TestActivityOptions:

    def test_activity_is_attempted_once(self):
        assert ACTIVITY_OPTIONS["retry_policy"].maximum_attempts == 1
        assert ACTIVITY_OPTIONS["task_queue"] == "erp-documents"

    def test_connect_failure_detection(self):
        assert is_connect_failure(connect_failure())
        assert not is_connect_failure(timeout_failure())
        assert not is_connect_failure(activity_failure(ApplicationError("boom", type="KeyError")))
        assert not is_connect_failure(ApplicationError("x", type="ConnectError"))

    def test_retry_delay_backs_off_and_caps(self):
        assert connect_retry_delay(1) == timedelta(seconds=5)
        assert connect_retry_delay(2) == timedelta(seconds=10)
        assert connect_retry_delay(10) == timedelta(minutes=2)


class TestWorkflowRetries:

    def test_success_runs_chain_once(self):
        wf, result, execute, sleep = run_workflow(RESULT)

        assert result == RESULT
        assert execute.await_count == 1
        assert execute.await_args.args[1].run_id == "doc-chain-1a2b3c4d"
        sleep.assert_not_awaited()
        assert wf.status() == {"status": "COMPLETED", "summary": RESULT["summary"], "attempts": 1}

    def test_timeout_is_not_rescheduled(self):
        failure = timeout_failure()
        wf, result, execute, sleep = run_workflow(failure, RESULT)

        assert result is failure
        assert execute.await_count == 1
        sleep.assert_not_awaited()
        assert wf.status()["status"] == ChainStatus.FAILED.value

    def test_connect_failure_is_rescheduled(self):
        wf, result, execute, sleep = run_workflow(connect_failure(), connect_failure(), RESULT)

        assert result == RESULT
        assert execute.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 10.0]
        assert wf.status()["attempts"] == 3

    def test_connect_attempts_are_bounded(self):
        failures = [connect_failure() for _ in range(CONNECT_ATTEMPTS + 1)]
        wf, result, execute, sleep = run_workflow(*failures)

        assert isinstance(result, ActivityError)
        assert execute.await_count == CONNECT_ATTEMPTS
        assert sleep.await_count == CONNECT_ATTEMPTS - 1
        assert wf.status()["status"] == "FAILED"

    def test_stage_failure_is_a_result(self):
        failed = {"succeeded": False, "summary": "Sales Order could not be added: Invalid BP code"}
        wf, result, execute, sleep = run_workflow(failed)

        assert result == failed
        assert execute.await_count == 1
        assert wf.status()["status"] == "STAGE_FAILED"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
