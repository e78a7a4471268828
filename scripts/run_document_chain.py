"""Run the document chain directly, without Temporal.

Creates the sales order, its down payment invoice and the incoming payment
against the company database configured through SAP_B1_* variables.

Usage:
    python scripts/run_document_chain.py                      # sample records, live store
    python scripts/run_document_chain.py --dry-run            # sample records, in-memory store
    python scripts/run_document_chain.py --input chain.json --json

The input file holds {"order": {...}, "payment": {...}}.

Exit codes: 0 all documents added, 1 a stage failed, 2 no connection.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Tuple

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from connectors.erp_base import CompanyConfig
from core.config import load_company_config
from core.errors import ConnectError
from core.models.documents import PaymentDetails, SalesOrderInput
from core.models.samples import sample_payment_details, sample_sales_order
from core.observability.logging import configure_logging, get_logger
from core.pipeline.orchestrator import DocumentChainPipeline


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_STAGE_FAILED = 1
EXIT_NO_CONNECTION = 2


def load_input(path: Path) -> Tuple[SalesOrderInput, PaymentDetails]:
    data = json.loads(path.read_text(encoding="utf-8"))
    order = SalesOrderInput.model_validate(data["order"])
    payment = PaymentDetails.model_validate(data.get("payment") or {"reference": "PAY-123"})
    return order, payment


async def run(config: CompanyConfig, order: SalesOrderInput, payment: PaymentDetails, as_json: bool) -> int:
    pipeline = DocumentChainPipeline(config)
    try:
        result = await pipeline.run(order, payment)
    except ConnectError as e:
        print(f"Could not connect: {e.message}", file=sys.stderr)
        return EXIT_NO_CONNECTION

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        for stage in result.stages:
            if stage.succeeded:
                print(f"✓ {stage.stage.label}: DocEntry {stage.document_entry}")
            else:
                print(f"✗ {stage.stage.label}: {stage.message}")
        print(result.describe())

    return EXIT_OK if result.succeeded else EXIT_STAGE_FAILED


def main():
    parser = argparse.ArgumentParser(description="Create a sales order, down payment invoice and incoming payment")
    parser.add_argument("--input", "-i", type=Path, help="JSON file with order and payment (default: sample records)")
    parser.add_argument("--dry-run", action="store_true", help="Use the in-memory sandbox store")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Print the result as JSON")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
        include_temporal=False,
    )

    if args.input:
        order, payment = load_input(args.input)
    else:
        order, payment = sample_sales_order(), sample_payment_details()

    if args.dry_run:
        config = CompanyConfig(connector_type="sandbox", company_db="SANDBOX")
    else:
        try:
            config = load_company_config()
        except ValueError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return EXIT_NO_CONNECTION

    return asyncio.run(run(config, order, payment, args.as_json))


if __name__ == "__main__":
    sys.exit(main())
