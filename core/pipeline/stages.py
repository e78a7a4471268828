"""The three document stages of the chain.

Each stage leases its business object, fills it, submits it and reports a
StageResult. Stages never raise: store rejections carry the store's diagnostic
verbatim, any other fault is described by its type and text. Handles are
released on every path and never leave the stage; what the next stage needs
travels in the committed view attached to the result.
"""

import time
from datetime import date
from typing import Any, Dict, List, Optional, Type

from connectors.erp_base import (
    OBJECT_TYPE_CODES,
    BoObjectType,
    BusinessObject,
    DocumentStore,
    DownPaymentType,
    FieldRecord,
    LineCollection,
    ReceiptInvoiceType,
    ReceiptType,
    YesNo,
)
from core.errors import LineCursorError, SubmissionError
from core.models.documents import (
    AddressBlock,
    BaseDocumentReference,
    CommittedInvoice,
    CommittedLine,
    CommittedOrder,
    DocumentLineInput,
    FreightCharge,
    OrderHeader,
    PaymentDetails,
    SalesOrderInput,
)
from core.models.results import (
    ChainStage,
    InvoiceStageResult,
    OrderStageResult,
    StageResult,
)
from core.observability.logging import (
    get_logger,
    log_stage_committed,
    log_stage_failed,
    log_stage_start,
    with_correlation,
)
from core.pipeline.connection import leased

logger = get_logger(__name__)

ORDER_BASE_TYPE = OBJECT_TYPE_CODES[BoObjectType.ORDERS]

_ADDRESS_FIELDS = {
    "street": "Street",
    "street_no": "StreetNo",
    "building": "Building",
    "city": "City",
    "country": "Country",
    "zip_code": "ZipCode",
}


# =============================================================================
# Helpers
# =============================================================================

def _apply(target: Any, fields: Dict[str, Any]) -> None:
    """Set each field that has a value."""
    for name, value in fields.items():
        if value is not None:
            target.set(name, value)


def _append_line(lines: LineCollection, position: int) -> None:
    """Make a fresh last line current.

    The collection starts with one empty slot, so the first line reuses it.
    """
    if position > 0:
        lines.add()
    lines.set_current_line(lines.count - 1)


async def _submit(connection: DocumentStore, document: BusinessObject, stage: ChainStage) -> int:
    """add() the document and return the store-assigned key.

    Raises:
        SubmissionError: The store rejected the document
    """
    code = await document.add()
    if code != 0:
        message = connection.get_last_error_description() or f"{stage.label} was rejected with code {code}"
        raise SubmissionError(stage.value, message, code)

    key = connection.get_new_object_key()
    try:
        return int(key)
    except (TypeError, ValueError):
        raise ValueError(f"{stage.label} was added but the store returned key {key!r}") from None


def _failed(result_type: Type[StageResult], stage: ChainStage, message: str, code: Optional[int] = None) -> StageResult:
    log_stage_failed(stage.value, message, error_code=code)
    return result_type(stage=stage, succeeded=False, message=message, error_code=code)


def _failure(result_type: Type[StageResult], stage: ChainStage, error: Exception) -> StageResult:
    if isinstance(error, SubmissionError):
        return _failed(result_type, stage, error.message, error.error_code)
    return _failed(result_type, stage, f"{type(error).__name__}: {error}")


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def _read_lines(lines: LineCollection) -> List[CommittedLine]:
    committed = []
    for index in range(lines.count):
        lines.set_current_line(index)
        base_reference = None
        if lines.get("BaseEntry") is not None:
            base_reference = BaseDocumentReference(
                base_type=lines.get("BaseType"),
                base_entry=lines.get("BaseEntry"),
                base_line=lines.get("BaseLine"),
            )
        line_num = lines.get("LineNum")
        committed.append(CommittedLine(
            doc_entry=lines.get("DocEntry"),
            line_num=index if line_num is None else line_num,
            item_code=lines.get("ItemCode"),
            quantity=lines.get("Quantity"),
            unit_price=lines.get("UnitPrice"),
            price_after_vat=lines.get("PriceAfterVAT"),
            currency=lines.get("Currency"),
            vat_group=lines.get("VatGroup"),
            base_reference=base_reference,
        ))
    return committed


# =============================================================================
# Sales order
# =============================================================================

def _fill_order_header(document: BusinessObject, header: OrderHeader) -> None:
    _apply(document, {
        "CardCode": header.card_code,
        "DocDate": header.document_date,
        "DocDueDate": header.due_date,
        "DocTotal": header.total,
        "DocCurrency": header.currency,
    })


def _fill_order_lines(lines: LineCollection, inputs: List[DocumentLineInput]) -> None:
    for position, line in enumerate(inputs):
        _append_line(lines, position)
        _apply(lines, {
            "ItemCode": line.item_code,
            "ItemDescription": line.description,
            "Quantity": line.quantity,
            "UnitPrice": line.unit_price,
            "Currency": line.currency,
            "WarehouseCode": line.warehouse_code,
            "VatGroup": line.vat_group,
        })


def _fill_addresses(record: FieldRecord, bill_to: Optional[AddressBlock], ship_to: Optional[AddressBlock]) -> None:
    for prefix, address in (("BillTo", bill_to), ("ShipTo", ship_to)):
        if address is None:
            continue
        _apply(record, {
            prefix + wire_name: getattr(address, attr)
            for attr, wire_name in _ADDRESS_FIELDS.items()
        })


def _fill_freight(expenses: LineCollection, freight: Optional[FreightCharge]) -> None:
    if freight is None:
        return
    _append_line(expenses, 0)
    _apply(expenses, {
        "ExpenseCode": freight.expense_code,
        "Remarks": freight.remarks,
        "VatGroup": freight.vat_group,
        "TaxCode": freight.tax_code,
        "LineTotal": freight.line_total,
        "DistributionMethod": freight.distribution_method,
    })


def _order_from_input(doc_entry: int, order: SalesOrderInput) -> CommittedOrder:
    """Committed view built from what was submitted, with positional line numbers."""
    header = order.header
    return CommittedOrder(
        doc_entry=doc_entry,
        card_code=header.card_code,
        doc_date=header.document_date,
        doc_due_date=header.due_date,
        doc_currency=header.currency,
        doc_total=header.total,
        lines=[
            CommittedLine(
                doc_entry=doc_entry,
                line_num=position,
                item_code=line.item_code,
                quantity=line.quantity,
                unit_price=line.unit_price,
                price_after_vat=None,
                currency=line.currency,
                vat_group=line.vat_group,
            )
            for position, line in enumerate(order.lines)
        ],
    )


async def _read_back_order(connection: DocumentStore, doc_entry: int, order: SalesOrderInput) -> CommittedOrder:
    try:
        with leased(connection, BoObjectType.ORDERS) as document:
            if await document.get_by_key(doc_entry):
                return CommittedOrder(
                    doc_entry=document.get("DocEntry", doc_entry),
                    doc_num=document.get("DocNum"),
                    card_code=document.get("CardCode", order.header.card_code),
                    doc_date=document.get("DocDate"),
                    doc_due_date=document.get("DocDueDate"),
                    doc_currency=document.get("DocCurrency"),
                    doc_total=document.get("DocTotal"),
                    lines=_read_lines(document.lines),
                )
            reason = connection.get_last_error_description()
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"

    logger.warning(f"Could not read back sales order {doc_entry}, using submitted values: {reason}")
    return _order_from_input(doc_entry, order)


async def create_sales_order(connection: DocumentStore, order: SalesOrderInput) -> OrderStageResult:
    """Create the sales order: header, lines, addresses and freight.

    An order without lines is refused before anything is leased or submitted.
    """
    stage = ChainStage.SALES_ORDER
    with with_correlation(stage=stage.value, card_code=order.header.card_code):
        log_stage_start(stage.value, line_count=len(order.lines))
        started = time.monotonic()

        if not order.lines:
            return _failed(OrderStageResult, stage, "Sales order has no lines, nothing was submitted")

        try:
            with leased(connection, BoObjectType.ORDERS) as document:
                _fill_order_header(document, order.header)
                _fill_order_lines(document.lines, order.lines)
                _fill_addresses(document.address_extension, order.bill_to, order.ship_to)
                _fill_freight(document.expenses, order.freight)
                doc_entry = await _submit(connection, document, stage)
        except Exception as e:
            return _failure(OrderStageResult, stage, e)

        with with_correlation(doc_entry=doc_entry):
            log_stage_committed(stage.value, doc_entry, _elapsed_ms(started))
            committed = await _read_back_order(connection, doc_entry, order)

        return OrderStageResult(stage=stage, succeeded=True, document_entry=doc_entry, order=committed)


# =============================================================================
# Down payment invoice
# =============================================================================

def _fill_invoice_lines(lines: LineCollection, order: CommittedOrder) -> None:
    """One invoice line per order line, same order, each linked to its source line."""
    for position, source in enumerate(order.lines):
        _append_line(lines, position)
        lines.set("BaseType", ORDER_BASE_TYPE)
        lines.set("BaseEntry", order.doc_entry)
        lines.set("BaseLine", source.line_num)
        _apply(lines, {
            "ItemCode": source.item_code,
            "Quantity": source.quantity,
            "UnitPrice": source.unit_price,
            "PriceAfterVAT": source.price_after_vat,
            "Currency": source.currency,
            "VatGroup": source.vat_group,
        })


def _invoice_from_order(doc_entry: int, order: CommittedOrder) -> CommittedInvoice:
    return CommittedInvoice(
        doc_entry=doc_entry,
        card_code=order.card_code,
        doc_date=order.doc_date,
        doc_due_date=order.doc_due_date,
        doc_currency=order.doc_currency,
        doc_total=order.doc_total,
        lines=[
            CommittedLine(
                doc_entry=doc_entry,
                line_num=position,
                item_code=source.item_code,
                quantity=source.quantity,
                unit_price=source.unit_price,
                price_after_vat=source.price_after_vat,
                currency=source.currency,
                vat_group=source.vat_group,
                base_reference=BaseDocumentReference(
                    base_type=ORDER_BASE_TYPE,
                    base_entry=order.doc_entry,
                    base_line=source.line_num,
                ),
            )
            for position, source in enumerate(order.lines)
        ],
        order_doc_entry=order.doc_entry,
        order_doc_num=order.doc_num,
    )


async def _read_back_invoice(connection: DocumentStore, doc_entry: int, order: CommittedOrder) -> CommittedInvoice:
    try:
        with leased(connection, BoObjectType.DOWN_PAYMENTS) as document:
            if await document.get_by_key(doc_entry):
                return CommittedInvoice(
                    doc_entry=document.get("DocEntry", doc_entry),
                    doc_num=document.get("DocNum"),
                    card_code=document.get("CardCode", order.card_code),
                    doc_date=document.get("DocDate", order.doc_date),
                    doc_due_date=document.get("DocDueDate", order.doc_due_date),
                    doc_currency=document.get("DocCurrency", order.doc_currency),
                    doc_total=document.get("DocTotal", order.doc_total),
                    lines=_read_lines(document.lines),
                    order_doc_entry=order.doc_entry,
                    order_doc_num=order.doc_num,
                )
            reason = connection.get_last_error_description()
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"

    logger.warning(f"Could not read back down payment invoice {doc_entry}, using submitted values: {reason}")
    return _invoice_from_order(doc_entry, order)


async def create_down_payment_invoice(connection: DocumentStore, order: CommittedOrder) -> InvoiceStageResult:
    """Create a down-payment invoice derived line-for-line from a committed order.

    Line i of the invoice references line i of the order (BaseType 17,
    BaseEntry = order DocEntry, BaseLine = the order line's LineNum).
    """
    stage = ChainStage.DOWN_PAYMENT_INVOICE
    with with_correlation(stage=stage.value, card_code=order.card_code):
        log_stage_start(stage.value, order_doc_entry=order.doc_entry, line_count=len(order.lines))
        started = time.monotonic()

        if not order.lines:
            return _failed(
                InvoiceStageResult, stage,
                f"Sales order {order.doc_entry} has no lines, nothing was submitted",
            )

        try:
            with leased(connection, BoObjectType.DOWN_PAYMENTS) as document:
                document.set("DownPaymentType", DownPaymentType.INVOICE)
                _apply(document, {
                    "CardCode": order.card_code,
                    "DocDate": order.doc_date,
                    "DocDueDate": order.doc_due_date,
                    "DocCurrency": order.doc_currency,
                    "DocTotal": order.doc_total,
                })
                _fill_invoice_lines(document.lines, order)
                if document.lines.count != len(order.lines):
                    raise LineCursorError(
                        f"invoice has {document.lines.count} lines, order {order.doc_entry} has {len(order.lines)}",
                        current=document.lines.current_line,
                        count=document.lines.count,
                    )
                doc_entry = await _submit(connection, document, stage)
        except Exception as e:
            return _failure(InvoiceStageResult, stage, e)

        with with_correlation(doc_entry=doc_entry):
            log_stage_committed(stage.value, doc_entry, _elapsed_ms(started), order_doc_entry=order.doc_entry)
            committed = await _read_back_invoice(connection, doc_entry, order)

        return InvoiceStageResult(stage=stage, succeeded=True, document_entry=doc_entry, invoice=committed)


# =============================================================================
# Incoming payment
# =============================================================================

def _payment_remarks(invoice: CommittedInvoice, payment: PaymentDetails) -> str:
    if payment.remarks is not None:
        return payment.remarks
    order_number = invoice.order_doc_num if invoice.order_doc_num is not None else invoice.order_doc_entry
    if order_number is None:
        return f"Payment for Down Payment Invoice {invoice.doc_entry}"
    return f"Payment for Sales Order {order_number}"


async def create_incoming_payment(
    connection: DocumentStore,
    invoice: CommittedInvoice,
    payment: PaymentDetails,
) -> StageResult:
    """Create a bank-transfer receipt applying the invoice total to the invoice."""
    stage = ChainStage.INCOMING_PAYMENT
    with with_correlation(stage=stage.value, card_code=invoice.card_code):
        log_stage_start(stage.value, invoice_doc_entry=invoice.doc_entry)
        started = time.monotonic()

        try:
            amount = invoice.doc_total
            if amount is None:
                raise ValueError(f"down payment invoice {invoice.doc_entry} has no total to apply")
            processing_date = payment.processing_date or date.today()

            with leased(connection, BoObjectType.INCOMING_PAYMENTS) as receipt:
                receipt.set("DocType", ReceiptType.CUSTOMER)
                receipt.set("IsPayToBank", YesNo.NO)
                _apply(receipt, {
                    "CardCode": invoice.card_code,
                    "DocDate": processing_date,
                    "DueDate": processing_date,
                    "DocCurrency": invoice.doc_currency,
                    "TransferSum": amount,
                    "TransferAccount": payment.transfer_account,
                    "TransferReference": payment.reference,
                    "Remarks": _payment_remarks(invoice, payment),
                })

                applied = receipt.invoices
                _append_line(applied, 0)
                applied.set("InvoiceType", ReceiptInvoiceType.DOWN_PAYMENT)
                applied.set("DocEntry", invoice.doc_entry)
                applied.set("SumApplied", amount)
                applied.set("DiscountPercent", 0)

                doc_entry = await _submit(connection, receipt, stage)
        except Exception as e:
            return _failure(StageResult, stage, e)

        with with_correlation(doc_entry=doc_entry):
            log_stage_committed(stage.value, doc_entry, _elapsed_ms(started), amount=str(amount))

        return StageResult(stage=stage, succeeded=True, document_entry=doc_entry)
