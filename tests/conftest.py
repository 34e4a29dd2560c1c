"""Shared fakes for the image generation tests."""
from typing import Any

import httpx
import pytest

from mcp_fal.core.logging import UsageLog
from mcp_fal.services.image_generation.base import UpstreamImage, UpstreamResponse


class FakeFal:
    """In-memory stand-in for FalClient: records run/upload calls, serves downloads from a dict."""

    def __init__(
        self,
        images: dict[str, bytes] | None = None,
        run_results: list[Any] | None = None,
    ) -> None:
        self.images = images if images is not None else {"https://cdn.test/out-0.png": b"img-0"}
        # each item: UpstreamResponse to return or Exception to raise; last one repeats
        self.run_results = run_results or [
            UpstreamResponse(images=[UpstreamImage(url=url) for url in self.images])
        ]
        self.run_calls: list[tuple[str, dict]] = []
        self.uploads: list[tuple[bytes, str, str]] = []
        self.downloads: list[str] = []
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self._serve))

    def _serve(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.downloads.append(url)
        if url not in self.images:
            return httpx.Response(404)
        return httpx.Response(200, content=self.images[url], headers={"content-type": "image/png"})

    async def run(self, endpoint: str, payload: dict) -> UpstreamResponse:
        self.run_calls.append((endpoint, payload))
        index = min(len(self.run_calls), len(self.run_results)) - 1
        result = self.run_results[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def upload(self, data: bytes, content_type: str, file_name: str) -> str:
        self.uploads.append((data, content_type, file_name))
        return f"https://storage.test/{len(self.uploads)}/{file_name}"


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_fal() -> FakeFal:
    return FakeFal()


@pytest.fixture
def usage_log(tmp_path) -> UsageLog:
    return UsageLog(str(tmp_path / "logs"))


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
