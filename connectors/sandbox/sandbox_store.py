"""In-memory document store.

Behaves like a company database for the three documents of the chain:
assigns DocEntry / DocNum / LineNum, checks base-document and payment links,
and can be told to refuse the login or reject a document type.
"""

import logging
from copy import deepcopy
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from connectors.erp_base import (
    OBJECT_TYPE_CODES,
    BoObjectType,
    CompanyConfig,
    DocumentStore,
    DocumentStoreError,
    register_connector,
)

logger = logging.getLogger(__name__)

# Error codes returned for the built-in validations
ERR_NO_CARD_CODE = -10
ERR_NO_LINES = -5002
ERR_BAD_BASE_DOCUMENT = -2035
ERR_NOT_FOUND = -2028


def _rejections_from_settings(settings: Dict[str, Any]) -> Dict[BoObjectType, Tuple[int, str]]:
    """{"DownPayments": [-5002, "message"]} -> {BoObjectType.DOWN_PAYMENTS: (-5002, "message")}"""
    rejections = {}
    for name, (code, message) in settings.get("reject", {}).items():
        rejections[BoObjectType(name)] = (int(code), str(message))
    return rejections


@register_connector("sandbox")
class SandboxStore(DocumentStore):
    """In-memory store implementation.

    Optional configuration (custom_settings):
    - reject: {"<entity set>": [code, message]} rejects every document of that type
    - refuse_login: [code, message] rejects the login
    """

    def __init__(
        self,
        config: Optional[CompanyConfig] = None,
        reject: Optional[Dict[BoObjectType, Tuple[int, str]]] = None,
        refuse_login: Optional[Tuple[int, str]] = None,
    ):
        config = config or CompanyConfig(connector_type="sandbox", company_db="SANDBOX")
        super().__init__(config)

        settings = config.custom_settings
        self.reject = reject if reject is not None else _rejections_from_settings(settings)
        if refuse_login is None and settings.get("refuse_login"):
            code, message = settings["refuse_login"]
            refuse_login = (int(code), str(message))
        self.refuse_login = refuse_login

        self.documents: Dict[BoObjectType, Dict[int, Dict[str, Any]]] = {t: {} for t in BoObjectType}
        self.submissions: List[Tuple[BoObjectType, Dict[str, Any]]] = []
        self.login_count = 0
        self.logout_count = 0
        self.closed = False
        self._next_entry = {t: 1 for t in BoObjectType}

    # =========================================================================
    # Session
    # =========================================================================

    async def _open_session(self) -> None:
        if self.refuse_login:
            code, message = self.refuse_login
            raise DocumentStoreError(message, code)
        self.login_count += 1
        self.closed = False

    async def _close_session(self) -> None:
        self.logout_count += 1

    async def close(self) -> None:
        await super().close()
        self.closed = True

    # =========================================================================
    # Documents
    # =========================================================================

    async def _submit(self, object_type: BoObjectType, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.submissions.append((object_type, deepcopy(payload)))

        if object_type in self.reject:
            code, message = self.reject[object_type]
            raise DocumentStoreError(message, code)

        if not payload.get("CardCode"):
            raise DocumentStoreError("Specify the business partner code", ERR_NO_CARD_CODE)

        if object_type == BoObjectType.INCOMING_PAYMENTS:
            self._check_payment_invoices(payload)
        else:
            if not payload.get("DocumentLines"):
                raise DocumentStoreError("Document must contain at least one line", ERR_NO_LINES)
            if object_type == BoObjectType.DOWN_PAYMENTS:
                self._check_base_lines(payload)

        return self._commit(object_type, payload)

    async def _fetch(self, object_type: BoObjectType, key: Any) -> Dict[str, Any]:
        try:
            return deepcopy(self.documents[object_type][int(key)])
        except (KeyError, TypeError, ValueError):
            raise DocumentStoreError(
                f"No matching records found ({object_type.value}({key}))", ERR_NOT_FOUND
            ) from None

    def _commit(self, object_type: BoObjectType, payload: Dict[str, Any]) -> Dict[str, Any]:
        doc_entry = self._next_entry[object_type]
        self._next_entry[object_type] += 1

        committed = deepcopy(payload)
        committed["DocEntry"] = doc_entry
        committed["DocNum"] = doc_entry

        for line_num, line in enumerate(committed.get("DocumentLines", [])):
            line["LineNum"] = line_num
            line["DocEntry"] = doc_entry
            line.setdefault("PriceAfterVAT", line.get("UnitPrice"))
        for line_num, line in enumerate(committed.get("PaymentInvoices", [])):
            line["LineNum"] = line_num

        if object_type != BoObjectType.INCOMING_PAYMENTS and committed.get("DocTotal") is None:
            committed["DocTotal"] = sum(
                Decimal(str(line.get("Quantity", 0))) * Decimal(str(line.get("UnitPrice", 0)))
                for line in committed["DocumentLines"]
            )

        self.documents[object_type][doc_entry] = committed
        logger.debug(f"sandbox {object_type.value} committed: DocEntry={doc_entry}")
        return deepcopy(committed)

    def _check_base_lines(self, payload: Dict[str, Any]) -> None:
        order_code = OBJECT_TYPE_CODES[BoObjectType.ORDERS]
        for position, line in enumerate(payload["DocumentLines"]):
            if "BaseEntry" not in line:
                continue
            order = self.documents[BoObjectType.ORDERS].get(line.get("BaseEntry"))
            if line.get("BaseType") != order_code or order is None:
                raise DocumentStoreError(
                    f"Line {position}: base document {line.get('BaseType')}/{line.get('BaseEntry')} not found",
                    ERR_BAD_BASE_DOCUMENT,
                )
            base_line = line.get("BaseLine")
            if not isinstance(base_line, int) or not 0 <= base_line < len(order["DocumentLines"]):
                raise DocumentStoreError(
                    f"Line {position}: base line {base_line} not found in order {line.get('BaseEntry')}",
                    ERR_BAD_BASE_DOCUMENT,
                )

    def _check_payment_invoices(self, payload: Dict[str, Any]) -> None:
        for position, applied in enumerate(payload.get("PaymentInvoices", [])):
            if applied.get("DocEntry") not in self.documents[BoObjectType.DOWN_PAYMENTS]:
                raise DocumentStoreError(
                    f"Payment line {position}: down payment {applied.get('DocEntry')} not found",
                    ERR_BAD_BASE_DOCUMENT,
                )

    # =========================================================================
    # Inspection helpers
    # =========================================================================

    def committed(self, object_type: BoObjectType) -> List[Dict[str, Any]]:
        """Committed documents of a type, in creation order."""
        return [deepcopy(doc) for _, doc in sorted(self.documents[object_type].items())]

    def submitted_types(self) -> List[BoObjectType]:
        return [object_type for object_type, _ in self.submissions]
