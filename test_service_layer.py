"""
Service Layer connector tests

Error body parsing, wire conversion, the HTTP client's retry policy (reads
only) and the store's mapping of Service Layer failures to result codes.
No network access: the aiohttp session and the client are replaced by fakes.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from connectors import BoObjectType, CompanyConfig, DownPaymentType
from connectors.sap_b1 import (
    RetryConfig,
    ServiceLayerClient,
    ServiceLayerStore,
    SLApiConfig,
    SLApiError,
    SLAuthenticationError,
    SLNotFoundError,
    SLValidationError,
    key_from_location,
    parse_error_body,
    service_layer_url,
    to_wire,
)
from core.models.samples import sample_sales_order
from core.pipeline.stages import create_sales_order


# =============================================================================
# Fakes
# =============================================================================

class FakeResponse:
    def __init__(self, status: int, body="", headers=None):
        self.status = status
        self.headers = headers or {}
        self._body = body if isinstance(body, str) else json.dumps(body)

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, json=None, timeout=None):
        self.calls.append((method, url, json))
        return self.responses.pop(0)

    async def close(self):
        pass


def sl_error(code, message):
    return {"error": {"code": code, "message": {"lang": "en-us", "value": message}}}


def client_with(*responses) -> ServiceLayerClient:
    client = ServiceLayerClient(SLApiConfig(
        base_url="https://b1server:50000/b1s/v1",
        company_db="SBODEMOUS",
        username="manager",
        password="secret",
        retry_config=RetryConfig(base_delay=0, max_delay=0),
    ))
    client._session = FakeSession(*responses)
    return client


CONFIG = CompanyConfig(
    connector_type="service_layer",
    server="b1server",
    company_db="SBODEMOUS",
    username="manager",
    password="secret",
)


def store_with(**methods) -> ServiceLayerStore:
    client = MagicMock()
    client.login = AsyncMock(return_value={"SessionId": "abc", "SessionTimeout": 30})
    client.logout = AsyncMock()
    client.close = AsyncMock()
    client.create = AsyncMock()
    client.get = AsyncMock()
    for name, mock in methods.items():
        setattr(client, name, mock)
    return ServiceLayerStore(CONFIG, client=client)


# =============================================================================
# Helpers
# =============================================================================

class TestErrorBodies:

    def test_nested_message(self):
        assert parse_error_body(json.dumps(sl_error(-5002, "Item is inactive"))) == (-5002, "Item is inactive")

    def test_flat_message_with_string_code(self):
        body = json.dumps({"error": {"code": "-2028", "message": "No matching records found"}})
        assert parse_error_body(body) == (-2028, "No matching records found")

    def test_not_json(self):
        assert parse_error_body("<html>Bad Gateway</html>") == (-1, "<html>Bad Gateway</html>")

    def test_json_without_error(self):
        assert parse_error_body('{"value": []}') == (-1, '{"value": []}')


class TestWireConversion:

    def test_values_are_json_safe(self):
        payload = {
            "DocDate": date(2026, 10, 19),
            "DownPaymentType": DownPaymentType.INVOICE,
            "DocumentLines": [{"Quantity": Decimal("2"), "UnitPrice": Decimal("10.5")}],
        }
        wire = to_wire(payload)
        assert wire == {
            "DocDate": "2026-10-19",
            "DownPaymentType": "dptInvoice",
            "DocumentLines": [{"Quantity": 2.0, "UnitPrice": 10.5}],
        }
        json.dumps(wire)

    def test_default_url(self):
        assert service_layer_url(CONFIG) == "https://b1server:50000/b1s/v1"
        explicit = CompanyConfig(service_layer_url="https://sl.example.com/b1s/v2")
        assert service_layer_url(explicit) == "https://sl.example.com/b1s/v2"
        with pytest.raises(ValueError):
            service_layer_url(CompanyConfig())


# =============================================================================
# HTTP client
# =============================================================================

class TestServiceLayerClient:

    def test_login_sends_credentials(self):
        client = client_with(FakeResponse(200, {"SessionId": "abc-123", "SessionTimeout": 30}))
        asyncio.run(client.login())

        method, url, body = client._session.calls[0]
        assert (method, url) == ("POST", "https://b1server:50000/b1s/v1/Login")
        assert body == {"CompanyDB": "SBODEMOUS", "UserName": "manager", "Password": "secret"}
        assert client.session_id == "abc-123"

    def test_rejected_login(self):
        client = client_with(FakeResponse(401, sl_error(-304, "Invalid login credentials")))
        with pytest.raises(SLAuthenticationError) as exc_info:
            asyncio.run(client.login())
        assert exc_info.value.message == "Invalid login credentials"
        assert exc_info.value.error_code == -304

    def test_create_is_not_retried(self):
        client = client_with(FakeResponse(503, "Service Unavailable"), FakeResponse(201, {"DocEntry": 1}))
        with pytest.raises(SLApiError):
            asyncio.run(client.create("Orders", {"CardCode": "C20000"}))
        assert len(client._session.calls) == 1

    def test_get_is_retried(self):
        client = client_with(FakeResponse(503, "Service Unavailable"), FakeResponse(200, {"DocEntry": 125}))
        data = asyncio.run(client.get("Orders", 125))

        assert data == {"DocEntry": 125}
        assert len(client._session.calls) == 2
        assert client._session.calls[1][1] == "https://b1server:50000/b1s/v1/Orders(125)"

    def test_create_without_content_reads_location(self):
        client = client_with(FakeResponse(204, headers={"Location": "https://b1server:50000/b1s/v1/Orders(125)"}))
        assert asyncio.run(client.create("Orders", {"CardCode": "C20000"})) == {"DocEntry": 125}

    def test_key_from_location(self):
        assert key_from_location("https://b1server:50000/b1s/v1/DownPayments(9)") == {"DocEntry": 9}
        assert key_from_location(None) == {}
        assert key_from_location("https://b1server:50000/b1s/v1/Logout") == {}

    def test_validation_error_is_verbatim(self):
        client = client_with(FakeResponse(400, sl_error(-5002, "Item 'A00001' is inactive")))
        with pytest.raises(SLValidationError) as exc_info:
            asyncio.run(client.create("Orders", {}))
        assert exc_info.value.message == "Item 'A00001' is inactive"
        assert exc_info.value.status_code == 400

    def test_not_found(self):
        client = client_with(FakeResponse(404, sl_error(-2028, "No matching records found")))
        with pytest.raises(SLNotFoundError):
            asyncio.run(client.get("DownPayments", 9))

    def test_logout_without_session_is_noop(self):
        client = client_with()
        asyncio.run(client.logout())
        assert client._session.calls == []

    def test_request_requires_session(self):
        client = ServiceLayerClient(SLApiConfig())
        with pytest.raises(SLApiError, match="Not connected"):
            asyncio.run(client.get("Orders", 1))


# =============================================================================
# Store
# =============================================================================

class TestServiceLayerStore:

    def test_connect(self):
        store = store_with()
        assert asyncio.run(store.connect()) == 0
        assert store.connected
        assert store.get_connector_name() == "service_layer"

    def test_rejected_login_returns_code(self):
        store = store_with(login=AsyncMock(side_effect=SLAuthenticationError("Invalid login credentials", 401, "", -304)))

        assert asyncio.run(store.connect()) == -304
        assert not store.connected
        assert store.get_last_error_description() == "Invalid login credentials"
        store._client.close.assert_awaited_once()

    def test_add_sends_wire_payload(self):
        store = store_with(create=AsyncMock(return_value={"DocEntry": 125, "DocNum": 77, "DocumentLines": []}))

        async def run():
            await store.connect()
            order = store.get_business_object(BoObjectType.ORDERS)
            order.set("CardCode", "C20000")
            order.set("DocDate", date(2026, 10, 19))
            order.lines.set("ItemCode", "A00001")
            order.lines.set("Quantity", Decimal("2"))
            return await order.add()

        assert asyncio.run(run()) == 0
        assert store.get_new_object_key() == "125"
        store._client.create.assert_awaited_once_with("Orders", {
            "CardCode": "C20000",
            "DocDate": "2026-10-19",
            "DocumentLines": [{"ItemCode": "A00001", "Quantity": 2.0}],
        })

    def test_rejected_document_returns_code(self):
        store = store_with(create=AsyncMock(side_effect=SLValidationError("Item is inactive", 400, "", -5002)))

        async def run():
            await store.connect()
            order = store.get_business_object(BoObjectType.ORDERS)
            order.set("CardCode", "C20000")
            return await order.add()

        assert asyncio.run(run()) == -5002
        assert store.get_last_error_description() == "Item is inactive"

    def test_committed_document_with_unexpected_shape_is_accepted(self):
        created = {
            "DocEntry": 125,
            "DocNum": 77,
            "CardCode": "C20000",
            "DocDate": "2026-10-19T10:15:00Z",
            "DocumentLines": [],
        }
        store = store_with(create=AsyncMock(return_value=created))

        async def run():
            await store.connect()
            return await store.get_business_object(BoObjectType.ORDERS).add()

        assert asyncio.run(run()) == 0
        assert store.get_new_object_key() == "125"
        assert store.get_last_error_description() == ""

    def test_sales_order_stage_reports_committed_document(self):
        created = {
            "DocEntry": 125,
            "DocNum": 77,
            "CardCode": "C20000",
            "DocDate": "2026-10-19T10:15:00Z",
            "DocumentLines": [{"LineNum": 0, "ItemCode": "A00001"}, {"LineNum": 1, "ItemCode": "A00002"}],
        }
        store = store_with(create=AsyncMock(return_value=created), get=AsyncMock(return_value=created))

        async def run():
            await store.connect()
            return await create_sales_order(store, sample_sales_order(date(2026, 10, 19)))

        result = asyncio.run(run())
        assert result.succeeded
        assert result.document_entry == 125

    def test_response_without_doc_entry_is_rejected(self):
        store = store_with(create=AsyncMock(return_value={}))

        async def run():
            await store.connect()
            return await store.get_business_object(BoObjectType.DOWN_PAYMENTS).add()

        assert asyncio.run(run()) != 0
        assert "no DocEntry was returned" in store.get_last_error_description()

    def test_get_by_key_loads_response(self):
        document = {
            "DocEntry": 125,
            "DocNum": 77,
            "CardCode": "C20000",
            "DocTotal": 34.0,
            "DocumentLines": [{"LineNum": 0, "ItemCode": "A00001"}, {"LineNum": 1, "ItemCode": "A00002"}],
        }
        store = store_with(get=AsyncMock(return_value=document))

        async def run():
            await store.connect()
            handle = store.get_business_object(BoObjectType.ORDERS)
            found = await handle.get_by_key(125)
            return handle, found

        handle, found = asyncio.run(run())
        assert found
        assert handle.get("DocNum") == 77
        assert handle.lines.count == 2
        store._client.get.assert_awaited_once_with("Orders", 125)

    def test_disconnect_and_close(self):
        store = store_with()

        async def run():
            await store.connect()
            await store.disconnect()
            await store.close()

        asyncio.run(run())
        store._client.logout.assert_awaited_once()
        store._client.close.assert_awaited_once()
