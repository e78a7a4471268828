"""Document store connectors.

This package contains the abstract document store interface and its
implementations (SAP Business One Service Layer, in-memory sandbox).

The pipeline depends ONLY on the DocumentStore capability set:
- acquire a business object by type
- get/set fields by name, add lines / set the current line / count lines
- add() returning a result code, last error description, new object key

To add a new store:
1. Create a new folder (e.g., di_api/)
2. Implement DocumentStore (_open_session, _close_session, _submit, _fetch)
3. Register using @register_connector decorator
"""

from connectors.erp_base import (
    # Core interface
    DocumentStore,
    DocumentStoreError,
    CompanyConfig,
    ERPConnectionStatus,
    # Handles
    BusinessObject,
    LineCollection,
    FieldRecord,
    # Enums
    BoObjectType,
    OBJECT_TYPE_CODES,
    DownPaymentType,
    ReceiptType,
    ReceiptInvoiceType,
    YesNo,
    ExpenseDistributionMethod,
    # Factory
    register_connector,
    create_store,
    list_available_connectors,
)

# Register the bundled stores
from connectors.sap_b1 import ServiceLayerStore
from connectors.sandbox import SandboxStore

__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "CompanyConfig",
    "ERPConnectionStatus",
    "BusinessObject",
    "LineCollection",
    "FieldRecord",
    "BoObjectType",
    "OBJECT_TYPE_CODES",
    "DownPaymentType",
    "ReceiptType",
    "ReceiptInvoiceType",
    "YesNo",
    "ExpenseDistributionMethod",
    "register_connector",
    "create_store",
    "list_available_connectors",
    "ServiceLayerStore",
    "SandboxStore",
]
