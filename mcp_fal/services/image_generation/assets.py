"""
Turn reference image inputs into URLs fal.ai can fetch.
URLs pass through untouched; data URLs and local files are uploaded to fal storage.
"""
import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod

from mcp_fal.services.image_generation.base import (
    ReferenceImageError,
    UpstreamError,
    UpstreamTimeoutError,
)
from mcp_fal.services.image_generation.inputs import (
    ReferenceKind,
    classify_reference,
    extension_for,
    guess_content_type,
    parse_data_url,
    preview,
)
from mcp_fal.utils.metrics import reference_uploads_total

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT_SECONDS = 30.0


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class AssetStorage(ABC):
    @abstractmethod
    async def upload(self, data: bytes, content_type: str, file_name: str) -> str:
        """Store bytes and return a publicly fetchable URL."""
        raise NotImplementedError


class AssetMaterializer:
    """Sequential, order-preserving materialization of reference images."""

    def __init__(self, storage: AssetStorage, upload_timeout: float = UPLOAD_TIMEOUT_SECONDS) -> None:
        self.storage = storage
        self.upload_timeout = upload_timeout

    async def materialize_all(self, values: list[str]) -> list[str]:
        """
        Materialize every input in order. The first failure aborts the batch
        and is re-raised as ReferenceImageError with the 1-based index.
        """
        urls: list[str] = []
        total = len(values)
        for i, value in enumerate(values, start=1):
            kind = classify_reference(value)
            logger.debug(
                f"Processing reference image {i}/{total}",
                extra={"index": i, "kind": kind.value, "url": preview(value)},
            )
            try:
                url = await self.materialize(value, kind)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.error(
                    f"Failed to process reference image {i}",
                    extra={"index": i, "kind": kind.value, "error": message},
                )
                raise ReferenceImageError(
                    f"Failed to process reference image {i}: {message}", index=i
                ) from e
            urls.append(url)
        return urls

    async def materialize(self, value: str, kind: ReferenceKind | None = None) -> str:
        kind = kind or classify_reference(value)
        if kind is ReferenceKind.URL:
            # reachability is fal.ai's problem
            return value

        if kind is ReferenceKind.DATA_URL:
            data, content_type = parse_data_url(value)
            file_name = f"reference{extension_for(content_type)}"
        else:
            if not os.path.isfile(value):
                raise ReferenceImageError(f"Reference image file not found: {value}")
            data = await asyncio.to_thread(_read_file, value)
            content_type = guess_content_type(value)
            file_name = os.path.basename(value)

        return await self._upload(data, content_type, file_name, kind)

    async def _upload(self, data: bytes, content_type: str, file_name: str, kind: ReferenceKind) -> str:
        started = time.monotonic()
        try:
            url = await asyncio.wait_for(
                self._store(data, content_type, file_name),
                timeout=self.upload_timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(self.upload_timeout) from e
        reference_uploads_total.labels(kind=kind.value).inc()
        logger.debug(
            "Reference image uploaded",
            extra={
                "kind": kind.value,
                "url": url,
                "size_bytes": len(data),
                "duration_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return url

    async def _store(self, data: bytes, content_type: str, file_name: str) -> str:
        try:
            return await self.storage.upload(data, content_type, file_name)
        except (TimeoutError, asyncio.TimeoutError) as e:
            # only the wait_for around this call reports an upload timeout
            raise UpstreamError(f"{type(e).__name__}: {e}") from e
