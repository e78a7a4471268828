"""Start the document chain workflow on Temporal.

This script connects to Temporal, starts a DocumentChainWorkflow with the
sample records (or an input file) and prints the result.
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
import logging

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from activities.document_chain import DocumentChainInput, TASK_QUEUE_ERP
from core.models.samples import sample_payment_details, sample_sales_order
from core.observability.logging import configure_logging, get_logger
from workflows.document_chain_workflow import DocumentChainWorkflow


logger = get_logger(__name__)


def build_input(input_path: Path = None, connector_type: str = None) -> DocumentChainInput:
    if input_path:
        data = json.loads(input_path.read_text(encoding="utf-8"))
        order, payment = data["order"], data.get("payment") or {"reference": "PAY-123"}
    else:
        order = sample_sales_order().model_dump(mode="json")
        payment = sample_payment_details().model_dump(mode="json")
    return DocumentChainInput(order=order, payment=payment, connector_type=connector_type)


async def start_document_chain_workflow(input: DocumentChainInput) -> dict:
    """Start DocumentChainWorkflow and wait for its result.

    Raises:
        Exception: If workflow execution fails
    """
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    workflow_id = f"doc-chain-{uuid.uuid4().hex[:8]}"
    logger.info(f"Starting DocumentChainWorkflow on task queue '{TASK_QUEUE_ERP}'...")
    handle = await client.start_workflow(
        DocumentChainWorkflow.run,
        input,
        id=workflow_id,
        task_queue=TASK_QUEUE_ERP,
    )

    logger.info(f"Workflow started: {handle.id}")
    logger.info("Waiting for result...")
    return await handle.result()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Start the document chain workflow")
    parser.add_argument("--input", "-i", type=Path, help="JSON file with order and payment (default: sample records)")
    parser.add_argument("--connector", help="Override SAP_B1_CONNECTOR on the worker (e.g. sandbox)")
    args = parser.parse_args()

    configure_logging(level=logging.INFO)

    try:
        result = asyncio.run(start_document_chain_workflow(build_input(args.input, args.connector)))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0 if result.get("succeeded") else 1


if __name__ == "__main__":
    sys.exit(main())
