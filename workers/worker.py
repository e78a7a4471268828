"""Worker for the document chain.

Listens on the erp-documents task queue and runs DocumentChainWorkflow and
the post_document_chain activity. The activity talks to the company database
configured through SAP_B1_* environment variables.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.observability.logging import configure_logging, get_logger
from workflows.document_chain_workflow import DocumentChainWorkflow
from activities.document_chain import post_document_chain, TASK_QUEUE_ERP


logger = get_logger(__name__)

WORKFLOWS = [DocumentChainWorkflow]
ACTIVITIES = [post_document_chain]


async def run_worker(task_queue: str = TASK_QUEUE_ERP):
    """Start a worker polling the given task queue.

    Raises:
        Exception: If connection to Temporal fails
    """
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )

    logger.info(f"Worker created for queue '{task_queue}':")
    logger.info(f"  - Workflows: {len(WORKFLOWS)}")
    logger.info(f"  - Activities: {len(ACTIVITIES)}")

    logger.info("Worker running... (Ctrl+C to stop)")
    try:
        await worker.run()
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Document Chain Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE_ERP,
        help=f"Task queue to poll (default: {TASK_QUEUE_ERP})"
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON log lines"
    )

    args = parser.parse_args()
    configure_logging(level=logging.INFO, json_format=args.log_json)

    try:
        asyncio.run(run_worker(task_queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
