"""
Build the fal.ai client and the generation service from application settings.
"""
import logging

from mcp_fal.core.config import Settings
from mcp_fal.core.logging import UsageLog
from mcp_fal.services.image_generation.providers.fal import FalClient
from mcp_fal.services.image_generation.runner import RetryPolicy
from mcp_fal.services.image_generation.service import MODEL_CATALOGUE, ImageGenerationService

logger = logging.getLogger(__name__)


class ImageServiceFactory:
    """Factory for the image generation service."""

    @classmethod
    def create_client(cls, settings: Settings) -> FalClient:
        return FalClient(
            settings.fal_key,
            run_url=settings.fal_run_url,
            storage_url=settings.fal_storage_url,
            timeout=settings.generation_timeout_seconds,
        )

    @classmethod
    def create_retry_policy(cls, settings: Settings) -> RetryPolicy:
        return RetryPolicy(
            max_retries=settings.retry_max_retries,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )

    @classmethod
    def create_from_settings(
        cls,
        settings: Settings,
        usage_log: UsageLog | None = None,
    ) -> ImageGenerationService:
        """
        Create the service from settings.

        Args:
            settings: Application settings
            usage_log: Usage sink; defaults to one writing into settings.mcp_log_dir

        Returns:
            Service ready to handle generate_image calls
        """
        client = cls.create_client(settings)
        usage_log = usage_log or UsageLog(settings.mcp_log_dir)
        logger.info(
            "Creating image generation service",
            extra={"model": [m.id for m in MODEL_CATALOGUE.values()]},
        )
        return ImageGenerationService(
            client,
            usage_log,
            retry_policy=cls.create_retry_policy(settings),
            deadline=settings.generation_timeout_seconds,
            upload_timeout=settings.upload_timeout_seconds,
        )
