"""
Base types, constants and errors for fal.ai image generation.
Used by the pipeline service, the fal.ai client and the tool boundary.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ImageModel(str, Enum):
    """Models exposed by the tool; FAST is the default."""

    FAST = "nano-banana"  # Gemini 2.5 Flash Image
    HIGH_FIDELITY = "nano-banana-pro"  # Gemini 3 Pro Image

    @property
    def is_pro(self) -> bool:
        return self is ImageModel.HIGH_FIDELITY


SUPPORTED_IMAGE_MODELS = tuple(m.value for m in ImageModel)

# Descriptive aliases accepted in addition to the model ids
MODEL_ALIASES: dict[str, ImageModel] = {
    "fast": ImageModel.FAST,
    "high-fidelity": ImageModel.HIGH_FIDELITY,
}

ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9")
# "auto" keeps the reference image's aspect ratio, edit endpoints only
ASPECT_RATIOS_WITH_AUTO = ("auto",) + ASPECT_RATIOS

OUTPUT_FORMATS = ("png", "jpeg", "webp")
RESOLUTIONS = ("1K", "2K", "4K")  # 2K/4K: pro only

MAX_REFERENCE_IMAGES: dict[ImageModel, int] = {
    ImageModel.FAST: 3,
    ImageModel.HIGH_FIDELITY: 14,
}
MAX_NUM_IMAGES = 4


def resolve_model(value: "str | ImageModel | None") -> ImageModel:
    """Map a model id or alias to ImageModel. None -> default model. Raises ValueError."""
    if value is None:
        return ImageModel.FAST
    if isinstance(value, ImageModel):
        return value
    key = value.strip()
    if key in MODEL_ALIASES:
        return MODEL_ALIASES[key]
    try:
        return ImageModel(key)
    except ValueError:
        supported = ", ".join(SUPPORTED_IMAGE_MODELS + tuple(MODEL_ALIASES))
        raise ValueError(f'Unknown image model "{value}". Supported models: {supported}') from None


@dataclass
class ImageGenerationRequest:
    """Request for image generation (text-to-image or edit with reference images)."""
    prompt: str
    output_path: str
    model: ImageModel = ImageModel.FAST
    reference_images: list[str] = field(default_factory=list)
    aspect_ratio: str | None = None
    output_format: str = "png"
    resolution: str = "1K"
    num_images: int = 1
    enable_web_search: bool = False

    @property
    def has_reference_images(self) -> bool:
        return len(self.reference_images) > 0


@dataclass
class ImageGenerationResult:
    """Primary saved image plus timing; extra_paths lists numbered siblings."""
    image_path: str
    model: ImageModel
    usage: dict[str, int]
    extra_paths: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    provider: str
    type: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "type": self.type,
            "description": self.description,
        }


class UpstreamImage(BaseModel):
    url: str
    content_type: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    width: int | None = None
    height: int | None = None


class UpstreamResponse(BaseModel):
    """Body returned by the fal.ai generate/edit endpoints."""
    images: list[UpstreamImage] = Field(default_factory=list)
    description: str | None = None


class ImageGenerationError(Exception):
    """Raised when generation fails; detail holds extra fields for logging."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class RequestValidationError(ImageGenerationError):
    """Request rejected before any network activity."""


class ReferenceImageError(ImageGenerationError):
    """A reference image could not be turned into a URL; index is 1-based when known."""
    def __init__(self, message: str, index: int | None = None, detail: dict[str, Any] | None = None):
        super().__init__(message, detail)
        self.index = index


class UpstreamError(ImageGenerationError):
    """fal.ai (or the network in front of it) returned a failure."""
    def __init__(self, message: str, status_code: int | None = None, detail: dict[str, Any] | None = None):
        super().__init__(message, detail)
        self.status_code = status_code


class DownloadError(UpstreamError):
    """Generated image URL could not be fetched."""


class UpstreamTimeoutError(ImageGenerationError):
    """Upload or generation exceeded its time limit."""
    def __init__(self, timeout_seconds: float, detail: dict[str, Any] | None = None):
        super().__init__(
            f"TIMEOUT: Operation timed out after {int(timeout_seconds * 1000)}ms",
            detail,
        )
        self.timeout_seconds = timeout_seconds
