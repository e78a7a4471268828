"""Abstract document store interface.

This module defines the capability shape the document chain depends on.
It is intentionally transport-agnostic - no HTTP, no Service Layer specifics here.

A store provides:
1. A session (connect / disconnect / close)
2. Leased business objects (sales orders, down payments, incoming payments)
3. Field access by name, line collections with a current-line cursor
4. Submission ("add") returning a result code, the last diagnostic and the new object key

Key Design Principles:
- Business objects are local buffers; only add() and get_by_key() reach the store
- Lines follow append-then-configure: only the last appended line may be written
- Stores are created through the connector registry (register_connector / create_store)
"""

import itertools
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.errors import LineCursorError, ResourceReleaseError


# =============================================================================
# Enums
# =============================================================================

class BoObjectType(str, Enum):
    """Business object types, valued by their Service Layer entity set."""
    ORDERS = "Orders"
    DOWN_PAYMENTS = "DownPayments"
    INCOMING_PAYMENTS = "IncomingPayments"


# Numeric object codes, used as BaseType on linked lines
OBJECT_TYPE_CODES: Dict[BoObjectType, int] = {
    BoObjectType.ORDERS: 17,
    BoObjectType.DOWN_PAYMENTS: 203,
    BoObjectType.INCOMING_PAYMENTS: 24,
}


class DownPaymentType(str, Enum):
    INVOICE = "dptInvoice"
    REQUEST = "dptRequest"


class ReceiptType(str, Enum):
    CUSTOMER = "rCustomer"
    ACCOUNT = "rAccount"
    SUPPLIER = "rSupplier"


class ReceiptInvoiceType(str, Enum):
    INVOICE = "it_Invoice"
    DOWN_PAYMENT = "it_DownPayment"


class YesNo(str, Enum):
    YES = "tYES"
    NO = "tNO"


class ExpenseDistributionMethod(str, Enum):
    NONE = "aedm_None"
    QUANTITY = "aedm_Quantity"
    VOLUME = "aedm_Volume"
    WEIGHT = "aedm_Weight"
    EQUALLY = "aedm_Equally"
    ROW_TOTAL = "aedm_RowTotal"


class ERPConnectionStatus(str, Enum):
    """Connection status to the document store."""
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    AUTHENTICATING = "AUTHENTICATING"
    FAILED = "FAILED"


# Sub-entities each object type carries: line collections and single records
_OBJECT_LAYOUT: Dict[BoObjectType, Dict[str, List[str]]] = {
    BoObjectType.ORDERS: {
        "collections": ["DocumentLines", "DocumentAdditionalExpenses"],
        "records": ["AddressExtension"],
    },
    BoObjectType.DOWN_PAYMENTS: {
        "collections": ["DocumentLines", "DocumentAdditionalExpenses"],
        "records": ["AddressExtension"],
    },
    BoObjectType.INCOMING_PAYMENTS: {
        "collections": ["PaymentInvoices"],
        "records": [],
    },
}

KEY_FIELD = "DocEntry"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class CompanyConfig:
    """Connection settings for a company database.

    Generic configuration; each connector reads the fields it needs.
    """
    connector_type: str = "service_layer"   # "service_layer", "sandbox"
    server: str = ""                        # Database / Service Layer host
    db_server_type: str = "dst_MSSQL2016"
    db_username: Optional[str] = None
    db_password: Optional[str] = None
    use_trusted: bool = False

    # Company login
    company_db: str = ""
    username: str = ""
    password: str = ""

    # Alternate license server (usually empty)
    license_server: Optional[str] = None

    # Service Layer transport
    service_layer_url: Optional[str] = None
    verify_ssl: bool = True
    timeout_seconds: int = 60

    custom_settings: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> Dict[str, Any]:
        """Settings safe to log (secrets masked)."""
        return {
            "connector_type": self.connector_type,
            "server": self.server,
            "db_server_type": self.db_server_type,
            "company_db": self.company_db,
            "username": self.username,
            "password": "***" if self.password else "",
            "db_password": "***" if self.db_password else "",
            "license_server": self.license_server or "",
            "service_layer_url": self.service_layer_url,
        }


# =============================================================================
# Store errors
# =============================================================================

class DocumentStoreError(Exception):
    """A store-side failure carrying the store's code and diagnostic text."""
    def __init__(self, message: str, error_code: int = -1):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


# =============================================================================
# Business object buffers
# =============================================================================

class FieldRecord:
    """A single named-field record (header sub-entity such as AddressExtension)."""

    def __init__(self, name: str):
        self.name = name
        self._fields: Dict[str, Any] = {}

    def set(self, field_name: str, value: Any) -> None:
        self._fields[field_name] = value

    def get(self, field_name: str, default: Any = None) -> Any:
        return self._fields.get(field_name, default)

    def is_empty(self) -> bool:
        return not self._fields

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._fields)

    def load(self, data: Optional[Dict[str, Any]]) -> None:
        self._fields = dict(data or {})


class LineCollection:
    """Ordered line collection with a current-line cursor.

    A new document starts with one empty line slot. Lines are appended with
    add() and selected with set_current_line(); fields can only be written on
    the last line, so callers append, select count - 1, then configure.
    Any line can be read.
    """

    def __init__(self, name: str, initial_slot: bool = True):
        self.name = name
        self._lines: List[Dict[str, Any]] = [{}] if initial_slot else []
        self._current = 0

    @property
    def count(self) -> int:
        return len(self._lines)

    @property
    def current_line(self) -> int:
        return self._current

    def add(self) -> None:
        """Append an empty line. The cursor is not moved."""
        self._lines.append({})

    def set_current_line(self, index: int) -> None:
        if index < 0 or index >= len(self._lines):
            raise LineCursorError(
                f"{self.name}: line {index} out of range (count={len(self._lines)})",
                current=self._current,
                count=len(self._lines),
            )
        self._current = index

    def set(self, field_name: str, value: Any) -> None:
        last = len(self._lines) - 1
        if self._current != last:
            raise LineCursorError(
                f"{self.name}: only the last line ({last}) can be edited, cursor is on {self._current}",
                current=self._current,
                count=len(self._lines),
            )
        self._lines[self._current][field_name] = value

    def get(self, field_name: str, default: Any = None) -> Any:
        if not self._lines:
            return default
        return self._lines[self._current].get(field_name, default)

    def to_list(self) -> List[Dict[str, Any]]:
        """Configured lines in order (untouched slots are skipped)."""
        return [dict(line) for line in self._lines if line]

    def load(self, lines: Optional[List[Dict[str, Any]]]) -> None:
        self._lines = [dict(line) for line in (lines or [])]
        self._current = 0


_handle_ids = itertools.count(1)


class BusinessObject:
    """A leased document handle.

    Holds header fields, line collections and records locally. add() and
    get_by_key() go through the owning store. Must be released by whoever
    leased it.
    """

    def __init__(self, store: "DocumentStore", object_type: BoObjectType):
        self.handle_id = next(_handle_ids)
        self.object_type = object_type
        self._store = store
        self._fields: Dict[str, Any] = {}
        layout = _OBJECT_LAYOUT[object_type]
        self._collections = {name: LineCollection(name) for name in layout["collections"]}
        self._records = {name: FieldRecord(name) for name in layout["records"]}
        self.released = False

    # Header fields

    def set(self, field_name: str, value: Any) -> None:
        self._fields[field_name] = value

    def get(self, field_name: str, default: Any = None) -> Any:
        return self._fields.get(field_name, default)

    # Sub-entities

    def collection(self, name: str) -> LineCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"{self.object_type.value} has no collection {name!r}") from None

    def record(self, name: str) -> FieldRecord:
        try:
            return self._records[name]
        except KeyError:
            raise KeyError(f"{self.object_type.value} has no record {name!r}") from None

    @property
    def lines(self) -> LineCollection:
        return self.collection("DocumentLines")

    @property
    def expenses(self) -> LineCollection:
        return self.collection("DocumentAdditionalExpenses")

    @property
    def address_extension(self) -> FieldRecord:
        return self.record("AddressExtension")

    @property
    def invoices(self) -> LineCollection:
        return self.collection("PaymentInvoices")

    # Serialization

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self._fields)
        for name, record in self._records.items():
            if not record.is_empty():
                payload[name] = record.to_dict()
        for name, lines in self._collections.items():
            configured = lines.to_list()
            if configured:
                payload[name] = configured
        return payload

    def load(self, payload: Dict[str, Any]) -> None:
        self._fields = {}
        for name in self._collections:
            self._collections[name].load(payload.get(name))
        for name in self._records:
            self._records[name].load(payload.get(name))
        for key, value in payload.items():
            if key not in self._collections and key not in self._records:
                self._fields[key] = value

    # Store operations

    async def add(self) -> int:
        """Submit the document. Returns 0 on success, the store's error code otherwise."""
        return await self._store.add_object(self)

    async def get_by_key(self, key: Any) -> bool:
        """Load a committed document into this handle."""
        return await self._store.load_object(self, key)

    def release(self) -> None:
        self._store.release_object(self)

    def __repr__(self) -> str:
        state = "released" if self.released else "leased"
        return f"BusinessObject({self.object_type.value}, handle={self.handle_id}, {state})"


# =============================================================================
# Abstract Store Interface
# =============================================================================

class DocumentStore(ABC):
    """Abstract base class for document stores.

    Implementations provide the session and the transport (_open_session,
    _close_session, _submit, _fetch); leasing, result codes, the last
    diagnostic and the new object key are handled here.

    Implementations:
    - connectors/sap_b1/sl_store.py
    - connectors/sandbox/sandbox_store.py
    """

    def __init__(self, config: CompanyConfig):
        self.config = config
        self._connection_status = ERPConnectionStatus.DISCONNECTED
        self._last_error_code = 0
        self._last_error_message = ""
        self._new_object_key = ""
        self._leases: Dict[int, BusinessObject] = {}

    # =========================================================================
    # Transport (implemented by connectors)
    # =========================================================================

    @abstractmethod
    async def _open_session(self) -> None:
        """Authenticate. Raises DocumentStoreError when rejected or unreachable."""
        pass

    @abstractmethod
    async def _close_session(self) -> None:
        """End the remote session."""
        pass

    @abstractmethod
    async def _submit(self, object_type: BoObjectType, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document and return it as committed. Raises DocumentStoreError on rejection."""
        pass

    @abstractmethod
    async def _fetch(self, object_type: BoObjectType, key: Any) -> Dict[str, Any]:
        """Read a committed document. Raises DocumentStoreError when missing."""
        pass

    # =========================================================================
    # Connection Management
    # =========================================================================

    @property
    def connected(self) -> bool:
        return self._connection_status == ERPConnectionStatus.CONNECTED

    @property
    def connection_status(self) -> ERPConnectionStatus:
        return self._connection_status

    async def connect(self) -> int:
        """Open the session. Returns 0 on success, the store's error code otherwise."""
        self._connection_status = ERPConnectionStatus.AUTHENTICATING
        try:
            await self._open_session()
        except DocumentStoreError as e:
            self._connection_status = ERPConnectionStatus.FAILED
            self._set_last_error(e.error_code, e.message)
            return e.error_code or -1
        self._connection_status = ERPConnectionStatus.CONNECTED
        self._clear_last_error()
        return 0

    async def disconnect(self) -> None:
        if not self.connected:
            return
        try:
            await self._close_session()
        finally:
            self._connection_status = ERPConnectionStatus.DISCONNECTED

    async def close(self) -> None:
        """Release local resources held for this session (outstanding leases)."""
        for handle in list(self._leases.values()):
            handle.released = True
        self._leases.clear()

    # =========================================================================
    # Handles
    # =========================================================================

    def get_business_object(self, object_type: BoObjectType) -> BusinessObject:
        handle = BusinessObject(self, object_type)
        self._leases[handle.handle_id] = handle
        return handle

    def release_object(self, handle: BusinessObject) -> None:
        if self._leases.pop(handle.handle_id, None) is None:
            raise ResourceReleaseError(f"{handle!r} is not leased from this store")
        handle.released = True

    @property
    def outstanding_handles(self) -> int:
        return len(self._leases)

    def _require_lease(self, handle: BusinessObject) -> None:
        if handle.handle_id not in self._leases:
            raise ResourceReleaseError(f"{handle!r} is not leased from this store")

    # =========================================================================
    # Documents
    # =========================================================================

    async def add_object(self, handle: BusinessObject) -> int:
        self._require_lease(handle)
        if not self.connected:
            self._set_last_error(-1, "Not connected to the company database")
            return -1
        try:
            committed = await self._submit(handle.object_type, handle.to_payload())
        except DocumentStoreError as e:
            self._set_last_error(e.error_code, e.message)
            return e.error_code or -1
        self._new_object_key = str(committed.get(KEY_FIELD, ""))
        self._clear_last_error()
        return 0

    async def load_object(self, handle: BusinessObject, key: Any) -> bool:
        self._require_lease(handle)
        if not self.connected:
            self._set_last_error(-1, "Not connected to the company database")
            return False
        try:
            data = await self._fetch(handle.object_type, key)
        except DocumentStoreError as e:
            self._set_last_error(e.error_code, e.message)
            return False
        handle.load(deepcopy(data))
        self._clear_last_error()
        return True

    def get_new_object_key(self) -> str:
        return self._new_object_key

    def get_last_error_code(self) -> int:
        return self._last_error_code

    def get_last_error_description(self) -> str:
        return self._last_error_message

    def _set_last_error(self, code: int, message: str) -> None:
        self._last_error_code = code or -1
        self._last_error_message = message

    def _clear_last_error(self) -> None:
        self._last_error_code = 0
        self._last_error_message = ""

    def get_connector_name(self) -> str:
        return self.config.connector_type


# =============================================================================
# Connector Factory
# =============================================================================

_connector_registry: Dict[str, type] = {}


def register_connector(connector_type: str):
    """Decorator to register a store implementation."""
    def decorator(cls):
        _connector_registry[connector_type] = cls
        return cls
    return decorator


def create_store(config: CompanyConfig) -> DocumentStore:
    """Create a store instance from configuration.

    Raises:
        ValueError: If connector_type is not registered
    """
    connector_type = config.connector_type.lower()

    if connector_type not in _connector_registry:
        available = list(_connector_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    store_class = _connector_registry[connector_type]
    return store_class(config)


def list_available_connectors() -> List[str]:
    """List all registered connector types."""
    return list(_connector_registry.keys())
