"""
fal.ai REST client (Nano Banana / Nano Banana Pro).
Synchronous-run endpoint for generation, two-step signed upload for fal storage.
"""
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from mcp_fal.services.image_generation.assets import AssetStorage
from mcp_fal.services.image_generation.base import UpstreamError, UpstreamResponse

logger = logging.getLogger(__name__)

DEFAULT_RUN_URL = "https://fal.run"
DEFAULT_STORAGE_URL = "https://rest.alpha.fal.ai"
STORAGE_TYPE = "fal-cdn-v3"


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human readable detail from a fal.ai error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail", body.get("message", body.get("error")))
        if isinstance(detail, list):
            # 422: [{"loc": [...], "msg": "...", "type": "..."}]
            msgs = [d.get("msg", str(d)) if isinstance(d, dict) else str(d) for d in detail]
            return "; ".join(msgs)
        if detail is not None:
            return str(detail)
    return str(body)[:500]


class FalClient(AssetStorage):
    """Thin async wrapper over the fal.ai HTTP API."""

    def __init__(
        self,
        api_key: str,
        *,
        run_url: str = DEFAULT_RUN_URL,
        storage_url: str = DEFAULT_STORAGE_URL,
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("fal.ai API key is required")
        self.api_key = api_key
        self.run_url = run_url.rstrip("/")
        self.storage_url = storage_url.rstrip("/")
        # no default auth header: the same client downloads from public CDN URLs
        self.http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
            follow_redirects=True,
        )
        logger.info("fal.ai image provider initialized", extra={"endpoint": self.run_url})

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "FalClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            # keep the exception class in the message: ConnectTimeout, ConnectError... drive retries
            raise UpstreamError(f"fal.ai request failed: {type(e).__name__}: {e}") from e
        if not response.is_success:
            raise UpstreamError(
                f"fal.ai request failed with status {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return response

    async def run(self, endpoint: str, payload: dict[str, Any]) -> UpstreamResponse:
        """POST the input to a model endpoint and wait for the result."""
        logger.debug("Sending request to fal.ai", extra={"endpoint": endpoint})
        response = await self._request(
            "POST",
            f"{self.run_url}/{endpoint}",
            json=payload,
            headers=self.auth_headers,
        )
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("fal.ai returned a non-JSON response", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise UpstreamError("fal.ai returned an unexpected response body", status_code=response.status_code)
        try:
            result = UpstreamResponse.model_validate(body)
        except ValidationError as e:
            raise UpstreamError(f"fal.ai returned an invalid response: {e.error_count()} field error(s)") from e
        logger.debug(
            "Received response from fal.ai",
            extra={"endpoint": endpoint, "count": len(result.images)},
        )
        return result

    async def upload(self, data: bytes, content_type: str, file_name: str) -> str:
        """Upload bytes to fal storage; returns the public file URL."""
        initiate = await self._request(
            "POST",
            f"{self.storage_url}/storage/upload/initiate",
            params={"storage_type": STORAGE_TYPE},
            json={"content_type": content_type, "file_name": file_name},
            headers=self.auth_headers,
        )
        target = initiate.json()
        upload_url = target.get("upload_url")
        file_url = target.get("file_url")
        if not upload_url or not file_url:
            raise UpstreamError("fal.ai storage did not return an upload URL")
        await self._request(
            "PUT",
            upload_url,
            content=data,
            headers={"Content-Type": content_type},
        )
        return file_url
