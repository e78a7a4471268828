"""
Document Chain Activity

Runs the sales order -> down payment invoice -> incoming payment chain
against the configured company database.

Retry semantics:
- ConnectError: retryable, nothing has been committed yet (the workflow
  schedules the activity again; Temporal itself never retries it)
- Invalid input / configuration: non-retryable, retrying cannot fix it
- Any other fault: non-retryable, documents may already be committed
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError
from temporalio import activity
from temporalio.exceptions import ApplicationError

from core.config import load_company_config
from core.errors import ConnectError
from core.models.documents import PaymentDetails, SalesOrderInput
from core.observability.logging import with_correlation
from core.pipeline.orchestrator import DocumentChainPipeline


TASK_QUEUE_ERP = "erp-documents"


# =============================================================================
# Activity Input
# =============================================================================

@dataclass
class DocumentChainInput:
    """Input for post_document_chain activity"""
    order: Dict[str, Any]                 # SalesOrderInput as JSON
    payment: Dict[str, Any]               # PaymentDetails as JSON
    run_id: Optional[str] = None
    connector_type: Optional[str] = None  # Overrides SAP_B1_CONNECTOR


# =============================================================================
# post_document_chain Activity
# =============================================================================

@activity.defn
async def post_document_chain(input: DocumentChainInput) -> Dict[str, Any]:
    """
    Create the three linked documents.

    Returns:
        PipelineResult.to_dict(): one entry per attempted stage plus a summary
    """
    info = activity.info()

    try:
        order = SalesOrderInput.model_validate(input.order)
        payment = PaymentDetails.model_validate(input.payment)
    except ValidationError as e:
        raise ApplicationError(f"Invalid document chain input: {e}", type="ValidationError", non_retryable=True)

    try:
        config = load_company_config(connector_type=input.connector_type)
    except ValueError as e:
        raise ApplicationError(str(e), type="ConfigurationError", non_retryable=True)

    run_id = input.run_id or info.workflow_id

    with with_correlation(
        workflow_id=info.workflow_id,
        workflow_run_id=info.workflow_run_id,
        activity_id=info.activity_id,
    ):
        activity.logger.info(
            f"Posting document chain for {order.header.card_code} "
            f"(attempt {info.attempt}, run {run_id})"
        )

        try:
            result = await DocumentChainPipeline(config).run(order, payment, run_id=run_id)
        except ConnectError as e:
            raise ApplicationError(
                f"Could not connect to {config.company_db or config.connector_type}: {e.message}",
                e.error_code,
                type="ConnectError",
            )
        except Exception as e:
            raise ApplicationError(
                f"Document chain aborted: {type(e).__name__}: {e}",
                type=type(e).__name__,
                non_retryable=True,
            )

        summary = result.describe()
        if result.succeeded:
            activity.logger.info(summary)
        else:
            activity.logger.warning(summary)

        return result.to_dict()
