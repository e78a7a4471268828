"""SAP Business One Service Layer document store.

Implements the DocumentStore interface over the Service Layer REST API.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from connectors.erp_base import (
    BoObjectType,
    CompanyConfig,
    DocumentStore,
    register_connector,
)
from connectors.sap_b1.sl_client import (
    SLApiConfig,
    SLApiError,
    ServiceLayerClient,
)
from connectors.sap_b1.sl_models import SLDocument, SLIncomingPayment, to_wire

logger = logging.getLogger(__name__)


_ENTITY_MODELS = {
    BoObjectType.ORDERS: SLDocument,
    BoObjectType.DOWN_PAYMENTS: SLDocument,
    BoObjectType.INCOMING_PAYMENTS: SLIncomingPayment,
}


def service_layer_url(config: CompanyConfig) -> str:
    """Service Layer base URL: explicit setting, else the default port on `server`."""
    if config.service_layer_url:
        return config.service_layer_url
    if not config.server:
        raise ValueError("Either service_layer_url or server must be set")
    return f"https://{config.server}:50000/b1s/v1"


@register_connector("service_layer")
class ServiceLayerStore(DocumentStore):
    """Service Layer store implementation.

    Required configuration:
    - service_layer_url (or server, for https://<server>:50000/b1s/v1)
    - company_db, username, password

    Optional configuration:
    - verify_ssl: verify the Service Layer certificate (default: True)
    - timeout_seconds: per-request timeout (default: 60)
    - custom_settings.language: Service Layer language code
    """

    def __init__(self, config: CompanyConfig, client: Optional[ServiceLayerClient] = None):
        super().__init__(config)

        if client is None:
            api_config = SLApiConfig(
                base_url=service_layer_url(config),
                company_db=config.company_db,
                username=config.username,
                password=config.password,
                language=config.custom_settings.get("language"),
                verify_ssl=config.verify_ssl,
                timeout_seconds=config.timeout_seconds,
            )
            client = ServiceLayerClient(api_config)

        self._client = client

    # =========================================================================
    # Session
    # =========================================================================

    async def _open_session(self) -> None:
        try:
            await self._client.login()
        except SLApiError:
            # No session to keep after a rejected login
            await self._client.close()
            raise

    async def _close_session(self) -> None:
        await self._client.logout()

    async def close(self) -> None:
        await super().close()
        await self._client.close()

    # =========================================================================
    # Documents
    # =========================================================================

    async def _submit(self, object_type: BoObjectType, payload: Dict[str, Any]) -> Dict[str, Any]:
        created = await self._client.create(object_type.value, to_wire(payload))
        # A 2xx means the document is committed; only its key is needed to report it
        if created.get("DocEntry") is None:
            raise SLApiError(
                f"{object_type.value} was accepted by Service Layer but no DocEntry was returned"
            )
        self._check_shape(object_type, created)
        logger.info(f"{object_type.value} created: DocEntry={created['DocEntry']}")
        return created

    async def _fetch(self, object_type: BoObjectType, key: Any) -> Dict[str, Any]:
        data = await self._client.get(object_type.value, key)
        self._check_shape(object_type, data)
        return data

    def _check_shape(self, object_type: BoObjectType, data: Dict[str, Any]) -> None:
        """Warn when a response does not match the entity model; the raw body is kept."""
        try:
            _ENTITY_MODELS[object_type].model_validate(data)
        except ValidationError as e:
            logger.warning(
                f"Unexpected {object_type.value} response from Service Layer: "
                f"{e.error_count()} invalid field(s), using it as returned"
            )
