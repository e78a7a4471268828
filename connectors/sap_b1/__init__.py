"""SAP Business One Service Layer Connector Package.

Implements the DocumentStore interface over the Service Layer REST API.
"""

from connectors.sap_b1.sl_store import ServiceLayerStore, service_layer_url
from connectors.sap_b1.sl_client import (
    ServiceLayerClient,
    SLApiConfig,
    SLApiError,
    SLAuthenticationError,
    SLNotFoundError,
    SLValidationError,
    RetryConfig,
    key_from_location,
    parse_error_body,
)
from connectors.sap_b1.sl_models import (
    SLDocument,
    SLDocumentLine,
    SLIncomingPayment,
    SLPaymentInvoice,
    to_wire,
)

__all__ = [
    # Store
    "ServiceLayerStore",
    "service_layer_url",
    # Client
    "ServiceLayerClient",
    "SLApiConfig",
    "SLApiError",
    "SLAuthenticationError",
    "SLNotFoundError",
    "SLValidationError",
    "RetryConfig",
    "key_from_location",
    "parse_error_body",
    # Models
    "SLDocument",
    "SLDocumentLine",
    "SLIncomingPayment",
    "SLPaymentInvoice",
    "to_wire",
]
