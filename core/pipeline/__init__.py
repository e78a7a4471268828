"""The document chain: connection handling, the three stages and the orchestrator."""

from core.pipeline.connection import ConnectionManager, leased, release
from core.pipeline.stages import (
    create_sales_order,
    create_down_payment_invoice,
    create_incoming_payment,
)
from core.pipeline.orchestrator import DocumentChainPipeline, new_run_id, run_document_chain

__all__ = [
    "ConnectionManager",
    "leased",
    "release",
    "create_sales_order",
    "create_down_payment_invoice",
    "create_incoming_payment",
    "DocumentChainPipeline",
    "new_run_id",
    "run_document_chain",
]
