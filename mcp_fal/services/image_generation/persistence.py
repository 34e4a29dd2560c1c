"""
Save generated images to disk.
The first image goes to the requested path; extra images get _2, _3, ... before the extension.
"""
import asyncio
import logging
import os

import httpx

from mcp_fal.services.image_generation.base import (
    DownloadError,
    ImageGenerationError,
    ImageGenerationRequest,
    UpstreamResponse,
)

logger = logging.getLogger(__name__)


def numbered_path(path: str, number: int) -> str:
    """
    /tmp/x.png, 2 -> /tmp/x_2.png
    /tmp/x, 2 -> /tmp/x_2
    """
    root, ext = os.path.splitext(path)
    return f"{root}_{number}{ext}"


def write_image(path: str, content: bytes) -> None:
    output_dir = os.path.dirname(path)
    if output_dir and not os.path.isdir(output_dir):
        logger.debug("Creating output directory", extra={"output_path": output_dir})
        os.makedirs(output_dir, exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)


class ResponseMaterializer:
    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http_client = http_client

    async def persist(self, response: UpstreamResponse, request: ImageGenerationRequest) -> list[str]:
        """Download and write every returned image in order; returns written paths, primary first."""
        if not response.images:
            raise ImageGenerationError("No image data found in response")

        images = response.images if request.num_images > 1 else response.images[:1]
        written: list[str] = []
        for i, image in enumerate(images):
            path = request.output_path if i == 0 else numbered_path(request.output_path, i + 1)
            await self.download_and_save(image.url, path)
            written.append(path)
        return written

    async def download_and_save(self, url: str, path: str) -> None:
        logger.debug("Fetching image from URL", extra={"url": url})
        try:
            resp = await self.http_client.get(url)
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download image: {type(e).__name__}: {e}") from e
        if not resp.is_success:
            logger.error(
                "Failed to download image",
                extra={"url": url, "status_code": resp.status_code},
            )
            raise DownloadError(
                f"Failed to download image: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        content = resp.content
        await asyncio.to_thread(write_image, path, content)
        logger.debug("Image saved to disk", extra={"output_path": path, "size_bytes": len(content)})
