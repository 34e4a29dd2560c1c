"""Tests for FalClient against a mocked fal.ai HTTP API."""
import json

import httpx
import pytest

from mcp_fal.services.image_generation.base import UpstreamError
from mcp_fal.services.image_generation.providers.fal import FalClient


def make_client(handler) -> FalClient:
    return FalClient(
        "test-key",
        run_url="https://fal.test",
        storage_url="https://rest.fal.test",
        transport=httpx.MockTransport(handler),
    )


def test_api_key_required():
    with pytest.raises(ValueError, match="API key is required"):
        FalClient("")


@pytest.mark.anyio
async def test_run_posts_payload_with_key_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "images": [{"url": "https://cdn.test/a.png", "width": 1024, "height": 1024}],
                "description": "a red cube",
            },
        )

    async with make_client(handler) as client:
        result = await client.run("fal-ai/nano-banana", {"prompt": "a red cube"})

    assert seen == {
        "url": "https://fal.test/fal-ai/nano-banana",
        "auth": "Key test-key",
        "body": {"prompt": "a red cube"},
    }
    assert result.images[0].url == "https://cdn.test/a.png"
    assert result.images[0].width == 1024
    assert result.description == "a red cube"


@pytest.mark.anyio
async def test_run_missing_images_parses_as_empty():
    async with make_client(lambda r: httpx.Response(200, json={"description": "nothing"})) as client:
        result = await client.run("fal-ai/nano-banana", {"prompt": "p"})
    assert result.images == []


@pytest.mark.anyio
async def test_run_http_error_carries_status_and_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": [{"msg": "image_urls is invalid", "loc": ["body"]}]})

    async with make_client(handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.run("fal-ai/nano-banana/edit", {"prompt": "p"})
    assert exc_info.value.status_code == 422
    assert "422" in str(exc_info.value)
    assert "image_urls is invalid" in str(exc_info.value)


@pytest.mark.anyio
async def test_transport_error_names_exception_class():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out connecting", request=request)

    async with make_client(handler) as client:
        with pytest.raises(UpstreamError, match="ConnectTimeout"):
            await client.run("fal-ai/nano-banana", {"prompt": "p"})


@pytest.mark.anyio
async def test_upload_initiates_then_puts_bytes():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, str(request.url), request.headers.get("Authorization"), request.content))
        if request.url.path == "/storage/upload/initiate":
            return httpx.Response(
                200,
                json={"upload_url": "https://signed.test/put", "file_url": "https://v3.fal.media/files/cat.png"},
            )
        return httpx.Response(200)

    async with make_client(handler) as client:
        url = await client.upload(b"png-bytes", "image/png", "cat.png")

    assert url == "https://v3.fal.media/files/cat.png"
    method, init_url, auth, body = calls[0]
    assert method == "POST"
    assert init_url == "https://rest.fal.test/storage/upload/initiate?storage_type=fal-cdn-v3"
    assert auth == "Key test-key"
    assert json.loads(body) == {"content_type": "image/png", "file_name": "cat.png"}
    assert calls[1][:2] == ("PUT", "https://signed.test/put")
    assert calls[1][2] is None
    assert calls[1][3] == b"png-bytes"


@pytest.mark.anyio
async def test_upload_without_target_fails():
    async with make_client(lambda r: httpx.Response(200, json={})) as client:
        with pytest.raises(UpstreamError, match="upload URL"):
            await client.upload(b"x", "image/png", "x.png")
