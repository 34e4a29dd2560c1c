"""
Image generation pipeline: validate -> materialize references -> route ->
call fal.ai with retry -> save images. Every failure leaves as GenerationFailed
carrying a ClassifiedError; one usage record is written per call.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from mcp_fal.core.logging import UsageLog
from mcp_fal.services.image_generation.assets import UPLOAD_TIMEOUT_SECONDS, AssetMaterializer
from mcp_fal.services.image_generation.base import (
    ImageGenerationRequest,
    ImageGenerationResult,
    ImageModel,
    ModelInfo,
    RequestValidationError,
    UpstreamError,
    UpstreamTimeoutError,
)
from mcp_fal.services.image_generation.failure_types import (
    ClassifiedError,
    ErrorCategory,
    GenerationFailed,
    classify_failure,
)
from mcp_fal.services.image_generation.inputs import classify_reference
from mcp_fal.services.image_generation.persistence import ResponseMaterializer
from mcp_fal.services.image_generation.providers.fal import FalClient
from mcp_fal.services.image_generation.routing import build_payload, route
from mcp_fal.services.image_generation.runner import (
    DEFAULT_DEADLINE_SECONDS,
    RetryPolicy,
    generate_with_retry,
)
from mcp_fal.services.image_generation.validation import validate_request
from mcp_fal.services.pricing import calculate_image_cost
from mcp_fal.utils.metrics import (
    image_generation_duration_seconds,
    image_generations_total,
    upstream_retries_total,
)

logger = logging.getLogger(__name__)

MODEL_CATALOGUE: dict[ImageModel, ModelInfo] = {
    ImageModel.FAST: ModelInfo(
        id=ImageModel.FAST.value,
        name="Nano Banana (Gemini 2.5 Flash Image)",
        provider="fal.ai",
        type="image",
        description=(
            "Fast image generation model. Good for quick iterations. "
            "Supports up to 3 reference images for editing/composition."
        ),
    ),
    ImageModel.HIGH_FIDELITY: ModelInfo(
        id=ImageModel.HIGH_FIDELITY.value,
        name="Nano Banana Pro (Gemini 3 Pro Image)",
        provider="fal.ai",
        type="image",
        description=(
            "High-fidelity image generation model. Excellent for detailed, production-quality "
            "images with accurate text rendering. Supports up to 14 reference images, "
            "4K resolution, and web search."
        ),
    ),
}


def _at_upstream_boundary(error: BaseException) -> bool:
    """True when the failure came from fal.ai or the network (directly or as a cause)."""
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, (UpstreamError, UpstreamTimeoutError, httpx.HTTPError)):
            return True
        current = current.__cause__
    return False


class ImageGenerationService:
    def __init__(
        self,
        client: FalClient,
        usage_log: UsageLog,
        *,
        retry_policy: RetryPolicy | None = None,
        deadline: float = DEFAULT_DEADLINE_SECONDS,
        upload_timeout: float = UPLOAD_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.usage_log = usage_log
        self.retry_policy = retry_policy or RetryPolicy()
        self.deadline = deadline
        self.sleep = sleep
        self.assets = AssetMaterializer(client, upload_timeout=upload_timeout)
        self.responses = ResponseMaterializer(http_client or client.http)

    def get_model_info(self, model: ImageModel = ImageModel.FAST) -> ModelInfo:
        return MODEL_CATALOGUE[model]

    def list_models(self) -> list[ModelInfo]:
        return [MODEL_CATALOGUE[m] for m in ImageModel]

    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        started = time.monotonic()

        try:
            validate_request(request)
        except RequestValidationError as e:
            classified = ClassifiedError(ErrorCategory.VALIDATION_ERROR, str(e))
            raise self._record_failure(request, started, classified) from e

        endpoint = route(request.model, request.has_reference_images)
        logger.info(
            "image_generation_request",
            extra={
                "model": request.model.value,
                "endpoint": endpoint.value,
                "output_path": request.output_path,
                "count": len(request.reference_images),
            },
        )

        try:
            image_urls: list[str] = []
            if request.has_reference_images:
                logger.info(
                    "Processing reference images for upload",
                    extra={
                        "count": len(request.reference_images),
                        "kind": [classify_reference(r).value for r in request.reference_images],
                    },
                )
                image_urls = await self.assets.materialize_all(request.reference_images)

            payload = build_payload(endpoint, request, image_urls).to_input()
            api_started = time.monotonic()
            response = await generate_with_retry(
                lambda: self.client.run(endpoint.value, payload),
                policy=self.retry_policy,
                deadline=self.deadline,
                endpoint=endpoint.value,
                sleep=self.sleep,
                on_retry=lambda _attempt, _err: upstream_retries_total.labels(endpoint=endpoint.value).inc(),
            )
            logger.info(
                "fal.ai API call completed",
                extra={
                    "endpoint": endpoint.value,
                    "count": len(response.images),
                    "duration_ms": int((time.monotonic() - api_started) * 1000),
                },
            )
            paths = await self.responses.persist(response, request)
        except Exception as e:
            default = ErrorCategory.API_ERROR if _at_upstream_boundary(e) else ErrorCategory.GENERATION_ERROR
            classified = classify_failure(e, default=default)
            raise self._record_failure(request, started, classified, endpoint=endpoint.value) from e

        duration_ms = int((time.monotonic() - started) * 1000)
        cost = calculate_image_cost(request.model.value, request.resolution, len(paths))
        self.usage_log.record(
            model=request.model.value,
            duration_ms=duration_ms,
            success=True,
            estimated_cost_usd=cost.total_cost,
        )
        image_generations_total.labels(model=request.model.value, status="success").inc()
        image_generation_duration_seconds.labels(model=request.model.value).observe(duration_ms / 1000)
        logger.info(
            "image_generation_complete",
            extra={
                "model": request.model.value,
                "endpoint": endpoint.value,
                "output_path": paths[0],
                "count": len(paths),
                "duration_ms": duration_ms,
            },
        )
        return ImageGenerationResult(
            image_path=paths[0],
            model=request.model,
            usage={"durationMs": duration_ms},
            extra_paths=paths[1:],
        )

    def _record_failure(
        self,
        request: ImageGenerationRequest,
        started: float,
        classified: ClassifiedError,
        endpoint: str | None = None,
    ) -> GenerationFailed:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.error(
            "image_generation_failed",
            extra={
                "model": request.model.value,
                "endpoint": endpoint,
                "error_type": classified.category.value,
                "error": classified.message,
                "status_code": classified.status_code,
                "duration_ms": duration_ms,
            },
        )
        self.usage_log.record(
            model=request.model.value,
            duration_ms=duration_ms,
            success=False,
            error=classified.text,
        )
        image_generations_total.labels(model=request.model.value, status=classified.category.value).inc()
        image_generation_duration_seconds.labels(model=request.model.value).observe(duration_ms / 1000)
        return GenerationFailed(classified)
