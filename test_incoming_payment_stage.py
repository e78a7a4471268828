"""
Incoming payment stage tests

The payment is a customer bank transfer for the invoice total, applied to the
down payment invoice.
"""

import asyncio
from datetime import date
from decimal import Decimal

from connectors import BoObjectType, SandboxStore
from core.models import ChainStage, CommittedInvoice, PaymentDetails
from core.models.samples import sample_payment_details, sample_sales_order
from core.pipeline.stages import (
    create_down_payment_invoice,
    create_incoming_payment,
    create_sales_order,
)

TODAY = date(2026, 10, 19)


def run_chain(store: SandboxStore, payment: PaymentDetails):
    async def run():
        await store.connect()
        order_result = await create_sales_order(store, sample_sales_order(TODAY))
        invoice_result = await create_down_payment_invoice(store, order_result.order)
        payment_result = await create_incoming_payment(store, invoice_result.invoice, payment)
        return invoice_result, payment_result

    return asyncio.run(run())


class TestPaymentCreated:

    def test_payment_applies_invoice_total(self):
        store = SandboxStore()
        invoice_result, result = run_chain(store, PaymentDetails(reference="PAY-123", processing_date=TODAY))

        assert result.stage == ChainStage.INCOMING_PAYMENT
        assert result.succeeded
        assert result.document_entry == 1

        object_type, payload = store.submissions[2]
        assert object_type == BoObjectType.INCOMING_PAYMENTS
        assert payload["DocType"] == "rCustomer"
        assert payload["IsPayToBank"] == "tNO"
        assert payload["CardCode"] == "C20000"
        assert payload["DocDate"] == TODAY
        assert payload["DueDate"] == TODAY
        assert payload["DocCurrency"] == "$"
        assert payload["TransferSum"] == Decimal("34")
        assert payload["TransferAccount"] == "_SYS00000000081"
        assert payload["TransferReference"] == "PAY-123"
        assert payload["Remarks"] == "Payment for Sales Order 1"

        applied = payload["PaymentInvoices"]
        assert len(applied) == 1
        assert applied[0]["InvoiceType"] == "it_DownPayment"
        assert applied[0]["DocEntry"] == invoice_result.document_entry
        assert applied[0]["SumApplied"] == Decimal("34")
        assert applied[0]["DiscountPercent"] == 0

    def test_processing_date_defaults_to_today(self):
        store = SandboxStore()
        run_chain(store, sample_payment_details())

        payload = store.submissions[2][1]
        assert payload["DocDate"] == date.today()

    def test_caller_remarks_and_account(self):
        store = SandboxStore()
        payment = PaymentDetails(reference="PAY-9", remarks="Deposit", transfer_account="_SYS00000000099")
        run_chain(store, payment)

        payload = store.submissions[2][1]
        assert payload["Remarks"] == "Deposit"
        assert payload["TransferAccount"] == "_SYS00000000099"
        assert store.outstanding_handles == 0


class TestPaymentFailed:

    def test_rejection_message_is_verbatim(self):
        store = SandboxStore(reject={BoObjectType.INCOMING_PAYMENTS: (-1, "Transfer account is not valid")})
        _, result = run_chain(store, sample_payment_details())

        assert not result.succeeded
        assert result.message == "Transfer account is not valid"
        assert result.document_entry is None
        assert store.outstanding_handles == 0

    def test_invoice_without_total(self):
        store = SandboxStore()
        asyncio.run(store.connect())
        invoice = CommittedInvoice(doc_entry=1, card_code="C20000", doc_total=None)

        result = asyncio.run(create_incoming_payment(store, invoice, sample_payment_details()))

        assert not result.succeeded
        assert result.message.startswith("ValueError:")
        assert store.submissions == []

    def test_unknown_invoice(self):
        store = SandboxStore()
        asyncio.run(store.connect())
        invoice = CommittedInvoice(doc_entry=5, card_code="C20000", doc_total=Decimal("34"), order_doc_entry=1)

        result = asyncio.run(create_incoming_payment(store, invoice, sample_payment_details()))

        assert not result.succeeded
        assert "down payment 5 not found" in result.message
