"""Tests for the Productbird API client."""

import json

import httpx
import pytest

from productbird.core.api_client import (
    LOCAL_BASE_URL,
    PROD_BASE_URL,
    BatchTooLarge,
    BulkResult,
    InsufficientCredits,
    ProductbirdAPIError,
    ProductbirdClient,
    Unauthorized,
    determine_base_url,
)


def make_client(handler, **kwargs) -> ProductbirdClient:
    return ProductbirdClient(
        "secret-key",
        base_url="https://api.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.parametrize(
    "site_url, expected",
    [
        ("http://localhost:8080", LOCAL_BASE_URL),
        ("http://127.0.0.1", LOCAL_BASE_URL),
        ("https://shop.local", LOCAL_BASE_URL),
        ("https://shop.example.com", PROD_BASE_URL),
    ],
)
def test_determine_base_url(site_url, expected):
    """Test that local-looking stores talk to the development server."""
    assert determine_base_url(site_url) == expected


@pytest.mark.asyncio
async def test_generate_sends_bearer_token_and_payload():
    """Test a single generation request."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"statusId": "job-1"})

    client = make_client(handler)
    try:
        job_id = await client.generate({"id": "101", "name": "Shoe"})
    finally:
        await client.aclose()

    assert job_id == "job-1"
    assert seen == {
        "method": "POST",
        "path": "/api/v1/generate/product-description",
        "auth": "Bearer secret-key",
        "body": {"id": "101", "name": "Shoe"},
    }


@pytest.mark.asyncio
async def test_generate_without_status_id_fails():
    """Test that a 2xx response without statusId is an API error."""
    client = make_client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ProductbirdAPIError):
        await client.generate({"id": "1"})


@pytest.mark.asyncio
async def test_generate_bulk_parses_results():
    """Test that bulk results map product IDs to job IDs, skipping bad entries."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/generate/product-description/bulk"
        assert len(json.loads(request.content)) == 2
        return httpx.Response(
            200,
            json={
                "results": [
                    {"productId": "101", "statusId": "j1"},
                    {"productId": 102, "statusId": "j2"},
                    {"productId": "103"},
                    {"productId": "abc", "statusId": "j4"},
                    "junk",
                ]
            },
        )

    client = make_client(handler)
    results = await client.generate_bulk([{"id": "101"}, {"id": "102"}])

    assert results == [BulkResult(item_id=101, job_id="j1"), BulkResult(item_id=102, job_id="j2")]


@pytest.mark.asyncio
async def test_generate_bulk_rejects_large_batches_before_io():
    """Test that an oversized batch fails without any request."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"results": []})

    client = make_client(handler, max_bulk_items=2)

    with pytest.raises(BatchTooLarge) as exc_info:
        await client.generate_bulk([{"id": "1"}, {"id": "2"}, {"id": "3"}])

    assert exc_info.value.count == 3
    assert exc_info.value.limit == 2
    assert calls == []


@pytest.mark.asyncio
async def test_poll_status():
    """Test that poll responses map to workflow state and content."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.params["statusId"] == "job-9"
        assert request.headers["Accept"] == "application/json"
        return httpx.Response(200, json={"status": "RUN_SUCCESS", "description": "<p>Done</p>"})

    client = make_client(handler)
    result = await client.poll_status("job-9")

    assert result.workflow_state == "RUN_SUCCESS"
    assert result.content == "<p>Done</p>"


@pytest.mark.asyncio
async def test_poll_status_keeps_unknown_state():
    """Test that unknown workflow states are passed through verbatim."""
    client = make_client(lambda request: httpx.Response(200, json={"status": "RUN_PAUSED"}))

    result = await client.poll_status("job-9")

    assert result.workflow_state == "RUN_PAUSED"
    assert result.content is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, exc_type",
    [(401, Unauthorized), (402, InsufficientCredits), (500, ProductbirdAPIError), (404, ProductbirdAPIError)],
)
async def test_error_status_codes(status_code, exc_type):
    """Test that non-2xx responses raise typed errors carrying status and body."""
    client = make_client(lambda request: httpx.Response(status_code, json={"message": "nope"}))

    with pytest.raises(exc_type) as exc_info:
        await client.generate({"id": "1"})

    assert exc_info.value.status_code == status_code
    assert exc_info.value.body == {"message": "nope"}


@pytest.mark.asyncio
async def test_non_json_error_body_is_kept_as_text():
    """Test that an HTML error page is reported as text."""
    client = make_client(lambda request: httpx.Response(503, text="<html>down</html>"))

    with pytest.raises(ProductbirdAPIError) as exc_info:
        await client.poll_status("job-1")

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "<html>down</html>"


@pytest.mark.asyncio
async def test_transport_failure():
    """Test that timeouts surface as ProductbirdAPIError without a status code."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)

    with pytest.raises(ProductbirdAPIError) as exc_info:
        await client.poll_status("job-1")

    assert exc_info.value.status_code is None
    assert not isinstance(exc_info.value, (Unauthorized, InsufficientCredits))


@pytest.mark.asyncio
async def test_aclose_resets_client():
    """Test that the lazy HTTP client is recreated after closing."""
    client = make_client(lambda request: httpx.Response(200, json={}))
    first = client.client

    await client.aclose()

    assert client.client is not first
