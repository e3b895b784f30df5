"""
Tests del cliente GraphQL con httpx.MockTransport.
"""
import httpx
import pytest

from app.infrastructure.external.remote_api.client import GraphQLRemoteAPI
from app.shared.exceptions.remote import RemoteApiError, RemoteTransientError


ENDPOINT = "https://test-shop.example.com/admin/api/2024-10/graphql.json"
OPERATION = "query AccessCheck { shop { name } }"


def _api(handler) -> GraphQLRemoteAPI:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GraphQLRemoteAPI(endpoint=ENDPOINT, token="secret", client=client)


@pytest.mark.asyncio
async def test_returns_data_payload_and_sends_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers.get("X-Shopify-Access-Token")
        seen["body"] = request.content
        return httpx.Response(200, json={"data": {"shop": {"name": "Test Shop"}}})

    api = _api(handler)
    data = await api.query(OPERATION, {"a": 1})

    assert data == {"shop": {"name": "Test Shop"}}
    assert seen["token"] == "secret"
    assert b'"variables": {"a": 1}' in seen["body"] or b'"variables":{"a":1}' in seen["body"]
    await api.aclose()


@pytest.mark.asyncio
async def test_missing_data_returns_empty_dict():
    api = _api(lambda request: httpx.Response(200, json={"extensions": {}}))
    assert await api.query(OPERATION) == {}


@pytest.mark.asyncio
async def test_429_is_transient_with_retry_after():
    api = _api(lambda request: httpx.Response(429, headers={"Retry-After": "2"}))

    with pytest.raises(RemoteTransientError) as exc_info:
        await api.query(OPERATION)
    assert exc_info.value.retry_after == 2.0


@pytest.mark.asyncio
async def test_5xx_is_transient():
    api = _api(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(RemoteTransientError):
        await api.query(OPERATION)


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_rejected_credentials(status_code):
    api = _api(lambda request: httpx.Response(status_code, text="nope"))

    with pytest.raises(RemoteApiError) as exc_info:
        await api.query(OPERATION)
    assert exc_info.value.error_code == "REMOTE_UNAUTHORIZED"
    assert not isinstance(exc_info.value, RemoteTransientError)


@pytest.mark.asyncio
async def test_other_4xx_is_remote_error():
    api = _api(lambda request: httpx.Response(404, text="not found"))

    with pytest.raises(RemoteApiError) as exc_info:
        await api.query(OPERATION)
    assert "404" in exc_info.value.message


@pytest.mark.asyncio
async def test_malformed_json():
    api = _api(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(RemoteApiError) as exc_info:
        await api.query(OPERATION)
    assert "malformada" in exc_info.value.message


@pytest.mark.asyncio
async def test_graphql_throttled_is_transient():
    body = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
    api = _api(lambda request: httpx.Response(200, json=body))

    with pytest.raises(RemoteTransientError):
        await api.query(OPERATION)


@pytest.mark.asyncio
async def test_graphql_access_denied():
    body = {"errors": [{"message": "Access denied for companies field."}]}
    api = _api(lambda request: httpx.Response(200, json=body))

    with pytest.raises(RemoteApiError) as exc_info:
        await api.query(OPERATION)
    assert exc_info.value.error_code == "REMOTE_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_graphql_errors_are_joined():
    body = {"errors": [{"message": "Field 'x' doesn't exist"}, {"message": "Parse error"}]}
    api = _api(lambda request: httpx.Response(200, json=body))

    with pytest.raises(RemoteApiError) as exc_info:
        await api.query(OPERATION)
    assert "Field 'x' doesn't exist; Parse error" in exc_info.value.message


@pytest.mark.asyncio
async def test_transport_failure_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = _api(handler)
    with pytest.raises(RemoteTransientError):
        await api.query(OPERATION)
