"""Document records for the sales-order chain.

Input records describe what to create (header, lines, addresses, freight,
payment details). Committed views are what the store reports back after a
document is accepted; they are the only data handed from one stage to the next.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated

from connectors.erp_base import ExpenseDistributionMethod


# Fixed internal transfer account used for incoming payments
DEFAULT_TRANSFER_ACCOUNT = "_SYS00000000081"


# =============================================================================
# Value Parsers (store values arrive as floats and ISO strings)
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from floats, ints and numeric strings."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        return Decimal(s)
    return value


def _parse_date(value):
    """Parse date from date, datetime or ISO strings (a time part is dropped)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        return datetime.strptime(s[:10], "%Y-%m-%d").date()
    return value


DecimalValue = Annotated[Optional[Decimal], BeforeValidator(_parse_decimal)]
DateValue = Annotated[Optional[date], BeforeValidator(_parse_date)]


# =============================================================================
# Input records
# =============================================================================

class DocumentLineInput(BaseModel):
    """One sales order line, in the order it must appear on the document."""
    item_code: str
    description: Optional[str] = None
    quantity: DecimalValue = Field(default=Decimal("1"))
    unit_price: DecimalValue = None
    currency: Optional[str] = None
    warehouse_code: Optional[str] = None
    vat_group: Optional[str] = Field(default=None, description="Tax group")


class OrderHeader(BaseModel):
    card_code: str = Field(..., description="Customer code")
    document_date: DateValue = Field(default_factory=date.today)
    due_date: DateValue = None
    total: DecimalValue = None
    currency: Optional[str] = None


class AddressBlock(BaseModel):
    street: Optional[str] = None
    street_no: Optional[str] = None
    building: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None


class FreightCharge(BaseModel):
    """Additional expense (freight) on the order."""
    remarks: Optional[str] = None
    expense_code: int
    vat_group: Optional[str] = None
    tax_code: Optional[str] = None
    line_total: DecimalValue = None
    distribution_method: ExpenseDistributionMethod = ExpenseDistributionMethod.ROW_TOTAL


class SalesOrderInput(BaseModel):
    """Everything needed to build the sales order."""
    header: OrderHeader
    lines: List[DocumentLineInput] = Field(default_factory=list)
    bill_to: Optional[AddressBlock] = None
    ship_to: Optional[AddressBlock] = None
    freight: Optional[FreightCharge] = None


class PaymentDetails(BaseModel):
    """Caller-supplied part of the incoming payment.

    Amount, currency and customer come from the committed invoice.
    """
    reference: str = Field(..., description="Transfer reference token")
    remarks: Optional[str] = Field(
        default=None,
        description="Free-text remarks; defaults to 'Payment for Sales Order <DocNum>'",
    )
    transfer_account: str = DEFAULT_TRANSFER_ACCOUNT
    processing_date: DateValue = Field(default=None, description="Defaults to today")


# =============================================================================
# Committed views (read back from the store)
# =============================================================================

class BaseDocumentReference(BaseModel):
    """Links a derived line to the source line it is funded by."""
    model_config = ConfigDict(frozen=True)

    base_type: int
    base_entry: int
    base_line: int


class CommittedLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    doc_entry: Optional[int] = None
    line_num: int
    item_code: Optional[str] = None
    quantity: DecimalValue = None
    unit_price: DecimalValue = None
    price_after_vat: DecimalValue = None
    currency: Optional[str] = None
    vat_group: Optional[str] = None
    base_reference: Optional[BaseDocumentReference] = None


class CommittedOrder(BaseModel):
    """A sales order as persisted."""
    model_config = ConfigDict(frozen=True)

    doc_entry: int
    doc_num: Optional[int] = None
    card_code: str
    doc_date: DateValue = None
    doc_due_date: DateValue = None
    doc_currency: Optional[str] = None
    doc_total: DecimalValue = None
    lines: List[CommittedLine] = Field(default_factory=list)


class CommittedInvoice(BaseModel):
    """A down-payment invoice as persisted."""
    model_config = ConfigDict(frozen=True)

    doc_entry: int
    doc_num: Optional[int] = None
    card_code: str
    doc_date: DateValue = None
    doc_due_date: DateValue = None
    doc_currency: Optional[str] = None
    doc_total: DecimalValue = None
    lines: List[CommittedLine] = Field(default_factory=list)

    # Source order, for payment remarks
    order_doc_entry: Optional[int] = None
    order_doc_num: Optional[int] = None
