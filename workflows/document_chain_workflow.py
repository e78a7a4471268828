"""
Document Chain Workflow

Durable wrapper around the post_document_chain activity:
SALES_ORDER → DOWN_PAYMENT_INVOICE → INCOMING_PAYMENT

The chain itself runs inside one activity because its documents share one
store session. The activity is attempted once per schedule: a timeout or a
lost worker may leave documents committed, so Temporal must not replay it.
The workflow schedules it again only after a connection failure, when nothing
can have been committed. A stage that fails is reported in the result.
"""

import asyncio
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError

with workflow.unsafe.imports_passed_through():
    from activities.document_chain import (
        post_document_chain,
        DocumentChainInput,
        TASK_QUEUE_ERP,
    )


CONNECT_ATTEMPTS = 5
CONNECT_RETRY_INITIAL = timedelta(seconds=5)
CONNECT_RETRY_MAX = timedelta(minutes=2)

ACTIVITY_OPTIONS = {
    "start_to_close_timeout": timedelta(minutes=5),
    "retry_policy": RetryPolicy(maximum_attempts=1),
    "task_queue": TASK_QUEUE_ERP,
}


class ChainStatus(str, Enum):
    """Overall workflow status"""
    PENDING = "PENDING"
    POSTING = "POSTING"
    COMPLETED = "COMPLETED"
    STAGE_FAILED = "STAGE_FAILED"
    FAILED = "FAILED"


def is_connect_failure(error: BaseException) -> bool:
    """True when the activity failed before a session was opened."""
    cause = error.cause if isinstance(error, ActivityError) else None
    return isinstance(cause, ApplicationError) and cause.type == "ConnectError"


def connect_retry_delay(attempt: int) -> timedelta:
    """Backoff before connection attempt `attempt + 1` (5s, 10s, 20s ... capped at 2 min)."""
    return min(CONNECT_RETRY_INITIAL * (2 ** (attempt - 1)), CONNECT_RETRY_MAX)


@workflow.defn
class DocumentChainWorkflow:
    """
    Create a sales order, its down payment invoice and the incoming payment.

    Query `status` for progress; the result is PipelineResult.to_dict().
    """

    def __init__(self):
        self._status = ChainStatus.PENDING
        self._summary: Optional[str] = None
        self._attempts = 0

    @workflow.run
    async def run(self, input: DocumentChainInput) -> Dict[str, Any]:
        workflow.logger.info(f"Starting document chain workflow {workflow.info().workflow_id}")

        if input.run_id is None:
            input.run_id = workflow.info().workflow_id

        self._status = ChainStatus.POSTING
        try:
            result = await self._post_with_connect_retries(input)
        except Exception:
            self._status = ChainStatus.FAILED
            raise

        self._summary = result.get("summary")
        self._status = ChainStatus.COMPLETED if result.get("succeeded") else ChainStatus.STAGE_FAILED
        workflow.logger.info(f"Document chain finished: {self._summary}")
        return result

    async def _post_with_connect_retries(self, input: DocumentChainInput) -> Dict[str, Any]:
        while True:
            self._attempts += 1
            try:
                return await workflow.execute_activity(post_document_chain, input, **ACTIVITY_OPTIONS)
            except ActivityError as e:
                if not is_connect_failure(e) or self._attempts >= CONNECT_ATTEMPTS:
                    raise
                delay = connect_retry_delay(self._attempts)
                workflow.logger.warning(
                    f"Connection failed (attempt {self._attempts}/{CONNECT_ATTEMPTS}), "
                    f"retrying in {delay.total_seconds():.0f}s: {e.cause}"
                )
                await asyncio.sleep(delay.total_seconds())

    @workflow.query
    def status(self) -> Dict[str, Any]:
        return {"status": self._status.value, "summary": self._summary, "attempts": self._attempts}
