"""Unit tests for archer.py - Archer API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from archer import ArcherClient, EndpointServiceBroker
from endpoint import EndpointServiceSpec
from errors import ArcherAPIError, EndpointServiceNotFound

ENDPOINT = "https://archer.example.com/v1/"


def make_response(status=200, json_data=None, text=""):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)
    return response


class MockRequest:
    """Async context manager standing in for an aiohttp request."""

    def __init__(self, response):
        self.response = response

    async def __aenter__(self):
        return self.response

    async def __aexit__(self, *args):
        return False


@pytest.fixture
def session():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.fixture
def client():
    return ArcherClient(endpoint=ENDPOINT, token="secret-token", timeout=10)


def respond(session, method, response):
    getattr(session, method).return_value = MockRequest(response)


class TestArcherClient:
    def test_is_broker(self, client):
        assert isinstance(client, EndpointServiceBroker)

    def test_endpoint_trailing_slash_stripped(self, client):
        assert client.endpoint == "https://archer.example.com/v1"

    def test_headers_with_token(self, client):
        headers = client._get_headers()
        assert headers["X-Auth-Token"] == "secret-token"
        assert headers["Accept"] == "application/json"

    def test_headers_without_token(self):
        client = ArcherClient(endpoint=ENDPOINT)
        assert "X-Auth-Token" not in client._get_headers()


@pytest.mark.asyncio
class TestArcherClientAsync:
    """Async tests for ArcherClient requests."""

    async def test_list_services(self, client, session):
        respond(
            session,
            "get",
            make_response(
                json_data={
                    "items": [
                        {"id": "es-1", "name": "a", "tags": ["kubernetes", "u1"]},
                        {"id": "es-2", "name": "b", "tags": ["kubernetes", "u1"]},
                    ]
                }
            ),
        )

        with patch("archer.aiohttp.ClientSession", return_value=session) as cls:
            services = await client.list_services(["kubernetes", "u1"])

        assert [s.id for s in services] == ["es-1", "es-2"]
        session.get.assert_called_once_with(
            "https://archer.example.com/v1/service",
            params={"tags": "kubernetes,u1"},
        )
        _, kwargs = cls.call_args
        assert kwargs["headers"]["X-Auth-Token"] == "secret-token"
        assert kwargs["timeout"].total == 10

    async def test_list_services_empty(self, client, session):
        respond(session, "get", make_response(json_data={"items": []}))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            assert await client.list_services(["kubernetes", "u1"]) == []

    async def test_list_services_error(self, client, session):
        respond(session, "get", make_response(status=401, text="unauthorized"))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            with pytest.raises(ArcherAPIError) as exc_info:
                await client.list_services(["kubernetes", "u1"])

        assert exc_info.value.status == 401
        assert "unauthorized" in str(exc_info.value)

    async def test_create_service(self, client, session):
        spec = EndpointServiceSpec(
            name="default-web",
            description="Kubernetes service default/web",
            port=80,
            ip_addresses=["10.0.0.1"],
            tags=["kubernetes", "u1"],
            network_id="net",
        )
        respond(
            session,
            "post",
            make_response(status=201, json_data={"id": "es-1", **spec.to_dict()}),
        )

        with patch("archer.aiohttp.ClientSession", return_value=session):
            created = await client.create_service(spec)

        assert created.id == "es-1"
        session.post.assert_called_once_with(
            "https://archer.example.com/v1/service", json=spec.to_dict()
        )

    async def test_update_service(self, client, session):
        respond(session, "put", make_response(json_data={"id": "es-1", "port": 443}))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            updated = await client.update_service("es-1", {"port": 443})

        assert updated.port == 443
        session.put.assert_called_once_with(
            "https://archer.example.com/v1/service/es-1", json={"port": 443}
        )

    async def test_delete_service(self, client, session):
        respond(session, "delete", make_response(status=204))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            await client.delete_service("es-1")

        session.delete.assert_called_once_with(
            "https://archer.example.com/v1/service/es-1"
        )

    async def test_delete_missing_service(self, client, session):
        respond(session, "delete", make_response(status=404, text="not found"))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            with pytest.raises(EndpointServiceNotFound):
                await client.delete_service("es-1")

    async def test_delete_conflict(self, client, session):
        respond(session, "delete", make_response(status=409, text="in use"))

        with patch("archer.aiohttp.ClientSession", return_value=session):
            with pytest.raises(ArcherAPIError) as exc_info:
                await client.delete_service("es-1")

        assert not isinstance(exc_info.value, EndpointServiceNotFound)
        assert exc_info.value.status == 409
