"""Service Layer data models.

These map to the Service Layer JSON schema for the three documents of the
chain. They are separate from the pipeline models in /core/models/.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Service Layer API Models
# =============================================================================

class SLBaseModel(BaseModel):
    """Base model for Service Layer entities (unknown fields are kept)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class SLDocumentLine(SLBaseModel):
    """Marketing document line.

    Maps to: Orders(n)/DocumentLines, DownPayments(n)/DocumentLines
    """
    LineNum: Optional[int] = None
    DocEntry: Optional[int] = None
    ItemCode: Optional[str] = None
    ItemDescription: Optional[str] = None
    Quantity: Optional[Decimal] = None
    UnitPrice: Optional[Decimal] = None
    PriceAfterVAT: Optional[Decimal] = None
    Currency: Optional[str] = None
    WarehouseCode: Optional[str] = None
    VatGroup: Optional[str] = None
    BaseType: Optional[int] = None
    BaseEntry: Optional[int] = None
    BaseLine: Optional[int] = None


class SLDocument(SLBaseModel):
    """Marketing document header (sales order, down payment).

    Maps to: /Orders, /DownPayments
    """
    DocEntry: int
    DocNum: Optional[int] = None
    CardCode: Optional[str] = None
    DocDate: Optional[date] = None
    DocDueDate: Optional[date] = None
    DocCurrency: Optional[str] = None
    DocTotal: Optional[Decimal] = None
    DownPaymentType: Optional[str] = None
    DocumentLines: List[SLDocumentLine] = Field(default_factory=list)


class SLPaymentInvoice(SLBaseModel):
    """Invoice applied by an incoming payment.

    Maps to: IncomingPayments(n)/PaymentInvoices
    """
    LineNum: Optional[int] = None
    DocEntry: Optional[int] = None
    InvoiceType: Optional[str] = None
    SumApplied: Optional[Decimal] = None
    DiscountPercent: Optional[Decimal] = None


class SLIncomingPayment(SLBaseModel):
    """Incoming payment.

    Maps to: /IncomingPayments
    """
    DocEntry: int
    DocNum: Optional[int] = None
    DocType: Optional[str] = None
    CardCode: Optional[str] = None
    DocDate: Optional[date] = None
    DueDate: Optional[date] = None
    DocCurrency: Optional[str] = None
    TransferSum: Optional[Decimal] = None
    TransferAccount: Optional[str] = None
    TransferReference: Optional[str] = None
    Remarks: Optional[str] = None
    PaymentInvoices: List[SLPaymentInvoice] = Field(default_factory=list)


# =============================================================================
# Wire conversion
# =============================================================================

def to_wire(value: Any) -> Any:
    """Convert buffer values to JSON-safe Service Layer values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value
