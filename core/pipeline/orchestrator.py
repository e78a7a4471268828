"""Runs the document chain against one company database.

Connect, then Sales Order -> Down Payment Invoice -> Incoming Payment, then
disconnect. The chain stops at the first failed stage; documents committed
before it stay committed. Only a failed connection is raised to the caller.

States:
    DISCONNECTED -> CONNECTED -> ORDER_PENDING -> ORDER_COMMITTED | ORDER_FAILED
    ORDER_COMMITTED -> INVOICE_PENDING -> INVOICE_COMMITTED | INVOICE_FAILED
    INVOICE_COMMITTED -> PAYMENT_PENDING -> PAYMENT_COMMITTED | PAYMENT_FAILED
    any -> DISCONNECTED (always, on the way out)
"""

import uuid
from datetime import datetime
from typing import List, Optional

from connectors.erp_base import CompanyConfig, DocumentStore
from core.models.documents import PaymentDetails, SalesOrderInput
from core.models.results import PipelineResult, PipelineState, StageResult
from core.observability.logging import get_logger, with_correlation
from core.pipeline.connection import ConnectionManager
from core.pipeline.stages import (
    create_down_payment_invoice,
    create_incoming_payment,
    create_sales_order,
)

logger = get_logger(__name__)


def new_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"


class DocumentChainPipeline:
    """Sequences the three stages over a single connection.

    Usage:
        pipeline = DocumentChainPipeline(config)
        result = await pipeline.run(order, payment)
        print(result.describe())
    """

    def __init__(self, config: CompanyConfig, manager: Optional[ConnectionManager] = None):
        self.config = config
        self.manager = manager or ConnectionManager()
        self._state = PipelineState.DISCONNECTED

    @property
    def state(self) -> PipelineState:
        return self._state

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"{self._state.value} -> {state.value}")
        self._state = state

    async def run(
        self,
        order: SalesOrderInput,
        payment: PaymentDetails,
        run_id: Optional[str] = None,
    ) -> PipelineResult:
        """Run the chain once.

        Returns:
            PipelineResult with one entry per attempted stage, in order

        Raises:
            ConnectError: The company database could not be reached or refused the login
        """
        run_id = run_id or new_run_id()
        started_at = datetime.utcnow()
        stages: List[StageResult] = []

        with with_correlation(run_id=run_id, company_db=self.config.company_db or None):
            logger.info(f"Starting document chain for {order.header.card_code}")
            connection = None
            try:
                connection = await self.manager.connect(self.config)
                self._transition(PipelineState.CONNECTED)
                outcome = await self._run_stages(connection, order, payment, stages)
            finally:
                await self.manager.disconnect(connection or self.manager.connection)
                self._transition(PipelineState.DISCONNECTED)

            result = PipelineResult(
                run_id=run_id,
                final_state=outcome,
                stages=stages,
                started_at=started_at,
                completed_at=datetime.utcnow(),
            )
            if result.succeeded:
                logger.info(result.describe())
            else:
                logger.warning(result.describe())
            return result

    async def _run_stages(
        self,
        connection: DocumentStore,
        order: SalesOrderInput,
        payment: PaymentDetails,
        stages: List[StageResult],
    ) -> PipelineState:
        self._transition(PipelineState.ORDER_PENDING)
        order_result = await create_sales_order(connection, order)
        stages.append(order_result)
        if not order_result.succeeded:
            self._transition(PipelineState.ORDER_FAILED)
            return self._state
        self._transition(PipelineState.ORDER_COMMITTED)

        self._transition(PipelineState.INVOICE_PENDING)
        invoice_result = await create_down_payment_invoice(connection, order_result.order)
        stages.append(invoice_result)
        if not invoice_result.succeeded:
            self._transition(PipelineState.INVOICE_FAILED)
            return self._state
        self._transition(PipelineState.INVOICE_COMMITTED)

        self._transition(PipelineState.PAYMENT_PENDING)
        payment_result = await create_incoming_payment(connection, invoice_result.invoice, payment)
        stages.append(payment_result)
        if not payment_result.succeeded:
            self._transition(PipelineState.PAYMENT_FAILED)
            return self._state
        self._transition(PipelineState.PAYMENT_COMMITTED)
        return self._state


async def run_document_chain(
    config: CompanyConfig,
    order: SalesOrderInput,
    payment: PaymentDetails,
    run_id: Optional[str] = None,
) -> PipelineResult:
    """Convenience wrapper: one pipeline, one run."""
    return await DocumentChainPipeline(config).run(order, payment, run_id=run_id)
