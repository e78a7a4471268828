"""Core data models - store-neutral document chain types.

This package contains the input records, committed document views and
stage/pipeline results. They carry no handles and no transport details.
"""

from core.models.documents import (
    # Parsers
    DecimalValue,
    DateValue,
    DEFAULT_TRANSFER_ACCOUNT,

    # Input records
    DocumentLineInput,
    OrderHeader,
    AddressBlock,
    FreightCharge,
    SalesOrderInput,
    PaymentDetails,

    # Committed views
    BaseDocumentReference,
    CommittedLine,
    CommittedOrder,
    CommittedInvoice,
)

from core.models.results import (
    ChainStage,
    PipelineState,
    StageResult,
    OrderStageResult,
    InvoiceStageResult,
    PipelineResult,
)

__all__ = [
    # Parsers
    "DecimalValue",
    "DateValue",
    "DEFAULT_TRANSFER_ACCOUNT",

    # Input records
    "DocumentLineInput",
    "OrderHeader",
    "AddressBlock",
    "FreightCharge",
    "SalesOrderInput",
    "PaymentDetails",

    # Committed views
    "BaseDocumentReference",
    "CommittedLine",
    "CommittedOrder",
    "CommittedInvoice",

    # Results
    "ChainStage",
    "PipelineState",
    "StageResult",
    "OrderStageResult",
    "InvoiceStageResult",
    "PipelineResult",
]
