"""
fal.ai image generation service (Nano Banana / Nano Banana Pro).
"""
from .base import (
    ImageGenerationError,
    ImageGenerationRequest,
    ImageGenerationResult,
    ImageModel,
    ModelInfo,
    RequestValidationError,
    ReferenceImageError,
    UpstreamError,
    UpstreamTimeoutError,
    resolve_model,
)
from .factory import ImageServiceFactory
from .failure_types import ClassifiedError, ErrorCategory, GenerationFailed, classify_failure
from .runner import RetryPolicy, generate_with_retry
from .service import ImageGenerationService

__all__ = [
    "ImageGenerationError",
    "ImageGenerationRequest",
    "ImageGenerationResult",
    "ImageModel",
    "ModelInfo",
    "RequestValidationError",
    "ReferenceImageError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "resolve_model",
    "ImageServiceFactory",
    "ClassifiedError",
    "ErrorCategory",
    "GenerationFailed",
    "classify_failure",
    "RetryPolicy",
    "generate_with_retry",
    "ImageGenerationService",
]
