"""
Request validation. Runs before any upload or API call; first violation wins.
"""
import logging

from mcp_fal.services.image_generation.base import (
    ASPECT_RATIOS,
    ASPECT_RATIOS_WITH_AUTO,
    MAX_NUM_IMAGES,
    MAX_REFERENCE_IMAGES,
    OUTPUT_FORMATS,
    RESOLUTIONS,
    ImageGenerationRequest,
    ImageModel,
    RequestValidationError,
)

logger = logging.getLogger(__name__)


def _fail(message: str, **extra) -> None:
    logger.error("Request validation failed", extra={"error": message, **extra})
    raise RequestValidationError(message)


def validate_request(request: ImageGenerationRequest) -> None:
    """Raise RequestValidationError describing the first invalid field."""
    aspect_ratio = request.aspect_ratio
    if aspect_ratio:
        if aspect_ratio == "auto" and not request.has_reference_images:
            _fail(
                'Aspect ratio "auto" is only valid when using reference_images. '
                f"For text-to-image, use: {', '.join(ASPECT_RATIOS)}"
            )
        if aspect_ratio not in ASPECT_RATIOS_WITH_AUTO:
            _fail(
                f'Invalid aspect ratio "{aspect_ratio}". '
                f"Valid options: {', '.join(ASPECT_RATIOS_WITH_AUTO)}"
            )

    max_refs = MAX_REFERENCE_IMAGES[request.model]
    if len(request.reference_images) > max_refs:
        _fail(
            f"Maximum {max_refs} reference images allowed for {request.model.value} "
            f"(got {len(request.reference_images)})",
            model=request.model.value,
            count=len(request.reference_images),
        )

    if request.resolution not in RESOLUTIONS:
        _fail(f'Invalid resolution "{request.resolution}". Valid options: {", ".join(RESOLUTIONS)}')
    if request.resolution != "1K" and not request.model.is_pro:
        _fail(
            f'Resolution "{request.resolution}" requires {ImageModel.HIGH_FIDELITY.value}; '
            f"{request.model.value} supports 1K only",
            model=request.model.value,
        )

    if request.output_format not in OUTPUT_FORMATS:
        _fail(
            f'Invalid output format "{request.output_format}". '
            f"Valid options: {', '.join(OUTPUT_FORMATS)}"
        )

    if isinstance(request.num_images, bool) or not 1 <= request.num_images <= MAX_NUM_IMAGES:
        _fail(f"Invalid num_images {request.num_images!r}. Must be between 1 and {MAX_NUM_IMAGES}")
