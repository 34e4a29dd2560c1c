"""
Endpoint selection and per-endpoint payloads.
fal.ai splits each model into a text-to-image endpoint and an edit endpoint;
callers only ever see one generate_image tool.
"""
from enum import Enum
from typing import Literal

from pydantic import BaseModel

from mcp_fal.services.image_generation.base import ImageGenerationRequest, ImageModel


class FalEndpoint(str, Enum):
    FAST_GENERATE = "fal-ai/nano-banana"
    FAST_EDIT = "fal-ai/nano-banana/edit"
    PRO_GENERATE = "fal-ai/nano-banana-pro"
    PRO_EDIT = "fal-ai/nano-banana-pro/edit"

    @property
    def is_edit(self) -> bool:
        return self in (FalEndpoint.FAST_EDIT, FalEndpoint.PRO_EDIT)

    @property
    def is_pro(self) -> bool:
        return self in (FalEndpoint.PRO_GENERATE, FalEndpoint.PRO_EDIT)


ENDPOINTS: dict[tuple[ImageModel, bool], FalEndpoint] = {
    (ImageModel.FAST, False): FalEndpoint.FAST_GENERATE,
    (ImageModel.FAST, True): FalEndpoint.FAST_EDIT,
    (ImageModel.HIGH_FIDELITY, False): FalEndpoint.PRO_GENERATE,
    (ImageModel.HIGH_FIDELITY, True): FalEndpoint.PRO_EDIT,
}


def route(model: ImageModel, has_reference_images: bool) -> FalEndpoint:
    return ENDPOINTS[(model, has_reference_images)]


class GeneratePayload(BaseModel):
    kind: Literal["generate"] = "generate"
    prompt: str
    output_format: str
    num_images: int
    aspect_ratio: str | None = None
    # pro only
    resolution: str | None = None
    enable_web_search: bool | None = None

    def to_input(self) -> dict:
        """JSON body for fal.ai: no tag, no unset optionals."""
        return self.model_dump(exclude={"kind"}, exclude_none=True)


class EditPayload(GeneratePayload):
    kind: Literal["edit"] = "edit"
    image_urls: list[str]


def build_payload(
    endpoint: FalEndpoint,
    request: ImageGenerationRequest,
    image_urls: list[str],
) -> GeneratePayload:
    fields: dict = {
        "prompt": request.prompt,
        "output_format": request.output_format,
        "num_images": request.num_images,
        "aspect_ratio": request.aspect_ratio or None,
    }
    if endpoint.is_pro:
        fields["resolution"] = request.resolution
        if request.enable_web_search:
            fields["enable_web_search"] = True
    if endpoint.is_edit:
        if not image_urls:
            raise ValueError(f"{endpoint.value} requires at least one image URL")
        return EditPayload(image_urls=image_urls, **fields)
    if image_urls:
        raise ValueError(f"{endpoint.value} does not accept image URLs")
    return GeneratePayload(**fields)
