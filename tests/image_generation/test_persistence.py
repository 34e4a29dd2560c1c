"""Tests for ResponseMaterializer: download, numbering, directory creation."""
import os

import httpx
import pytest

from mcp_fal.services.image_generation.base import (
    DownloadError,
    ImageGenerationError,
    ImageGenerationRequest,
    UpstreamImage,
    UpstreamResponse,
)
from mcp_fal.services.image_generation.persistence import ResponseMaterializer, numbered_path


def make_client(images: dict[str, bytes]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        content = images.get(str(request.url))
        if content is None:
            return httpx.Response(404)
        return httpx.Response(200, content=content)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_numbered_path():
    assert numbered_path("/tmp/x.png", 2) == "/tmp/x_2.png"
    assert numbered_path("/tmp/x.tar.png", 3) == "/tmp/x.tar_3.png"
    assert numbered_path("/tmp/noext", 2) == "/tmp/noext_2"
    assert numbered_path("/tmp/dir.v2/noext", 2) == "/tmp/dir.v2/noext_2"


@pytest.mark.anyio
async def test_three_images_written_in_order(tmp_path):
    urls = [f"https://cdn.test/{i}.png" for i in range(3)]
    images = {url: f"bytes-{i}".encode() for i, url in enumerate(urls)}
    output = str(tmp_path / "x.png")
    materializer = ResponseMaterializer(make_client(images))

    paths = await materializer.persist(
        UpstreamResponse(images=[UpstreamImage(url=u) for u in urls]),
        ImageGenerationRequest(prompt="p", output_path=output, num_images=3),
    )

    assert paths == [output, str(tmp_path / "x_2.png"), str(tmp_path / "x_3.png")]
    for i, path in enumerate(paths):
        with open(path, "rb") as f:
            assert f.read() == f"bytes-{i}".encode()


@pytest.mark.anyio
async def test_single_image_requested_ignores_extra(tmp_path):
    urls = ["https://cdn.test/0.png", "https://cdn.test/1.png"]
    materializer = ResponseMaterializer(make_client({u: b"x" for u in urls}))
    output = str(tmp_path / "x.png")
    paths = await materializer.persist(
        UpstreamResponse(images=[UpstreamImage(url=u) for u in urls]),
        ImageGenerationRequest(prompt="p", output_path=output),
    )
    assert paths == [output]
    assert not os.path.exists(tmp_path / "x_2.png")


@pytest.mark.anyio
async def test_creates_directories_and_overwrites(tmp_path):
    output = tmp_path / "a" / "b" / "out.png"
    materializer = ResponseMaterializer(make_client({"https://cdn.test/0.png": b"new"}))
    request = ImageGenerationRequest(prompt="p", output_path=str(output))
    response = UpstreamResponse(images=[UpstreamImage(url="https://cdn.test/0.png")])

    await materializer.persist(response, request)
    output.write_bytes(b"old")
    await materializer.persist(response, request)

    assert output.read_bytes() == b"new"


@pytest.mark.anyio
async def test_empty_response_fails(tmp_path):
    materializer = ResponseMaterializer(make_client({}))
    with pytest.raises(ImageGenerationError, match="No image data found in response"):
        await materializer.persist(
            UpstreamResponse(images=[]),
            ImageGenerationRequest(prompt="p", output_path=str(tmp_path / "x.png")),
        )


@pytest.mark.anyio
async def test_download_http_error_cites_status(tmp_path):
    materializer = ResponseMaterializer(make_client({}))
    with pytest.raises(DownloadError) as exc_info:
        await materializer.persist(
            UpstreamResponse(images=[UpstreamImage(url="https://cdn.test/gone.png")]),
            ImageGenerationRequest(prompt="p", output_path=str(tmp_path / "x.png")),
        )
    assert exc_info.value.status_code == 404
    assert "404" in str(exc_info.value)
    assert not os.path.exists(tmp_path / "x.png")
