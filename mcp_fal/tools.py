"""
Tool boundary: generate_image and list_models.
Handlers return protocol-shaped dicts ({"content": [...], "isError": ...}) and never raise;
the stdio transport that carries them lives outside this package.
"""
import json
import logging
from typing import Any

from pydantic import ValidationError

from mcp_fal.core.config import Settings, get_settings
from mcp_fal.core.logging import UsageLog, configure_logging
from mcp_fal.schemas.tools import GenerateImageArgs, ToolResult
from mcp_fal.services.image_generation import (
    GenerationFailed,
    ImageGenerationRequest,
    ImageGenerationService,
    ImageServiceFactory,
    resolve_model,
)
from mcp_fal.services.image_generation.base import (
    ASPECT_RATIOS_WITH_AUTO,
    MAX_NUM_IMAGES,
    OUTPUT_FORMATS,
    RESOLUTIONS,
    SUPPORTED_IMAGE_MODELS,
    ImageModel,
)
from mcp_fal.services.image_generation.failure_types import ErrorCategory

logger = logging.getLogger(__name__)

TOOLS: list[dict[str, Any]] = [
    {
        "name": "generate_image",
        "description": (
            "Generate images using Nano Banana (fast) or Nano Banana Pro (high-quality). "
            "Use this for creating images from text descriptions, or editing images with reference inputs."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Description of the image to generate",
                },
                "output_path": {
                    "type": "string",
                    "description": "File path where the generated image will be saved (e.g., '/tmp/image.png')",
                },
                "model": {
                    "type": "string",
                    "enum": list(SUPPORTED_IMAGE_MODELS),
                    "description": (
                        "Image model: 'nano-banana' for fast generation (default), "
                        "'nano-banana-pro' for high-fidelity output"
                    ),
                    "default": ImageModel.FAST.value,
                },
                "reference_images": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": (
                        "Reference images for editing, composition, or style transfer: URLs, local file "
                        "paths or data URLs. Max 3 for nano-banana, max 14 for nano-banana-pro."
                    ),
                },
                "aspect_ratio": {
                    "type": "string",
                    "enum": list(ASPECT_RATIOS_WITH_AUTO),
                    "description": (
                        "Aspect ratio for the generated image. Use 'auto' with reference_images to "
                        "preserve original aspect ratio. Default: 1:1 for generation, auto for editing."
                    ),
                },
                "output_format": {
                    "type": "string",
                    "enum": list(OUTPUT_FORMATS),
                    "default": "png",
                },
                "resolution": {
                    "type": "string",
                    "enum": list(RESOLUTIONS),
                    "description": "Output resolution. 2K and 4K require nano-banana-pro.",
                    "default": "1K",
                },
                "num_images": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": MAX_NUM_IMAGES,
                    "description": "Images to generate; extras are saved as <name>_2.<ext>, <name>_3.<ext>, ...",
                    "default": 1,
                },
                "enable_web_search": {
                    "type": "boolean",
                    "description": "Let nano-banana-pro ground the image with web search.",
                    "default": False,
                },
            },
            "required": ["prompt", "output_path"],
        },
    },
    {
        "name": "list_models",
        "description": "List all available fal.ai image models and their capabilities",
        "inputSchema": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
]


class ToolServer:
    """Dispatches tool calls to the image generation service."""

    def __init__(self, service: ImageGenerationService) -> None:
        self.service = service

    def list_tools(self) -> list[dict[str, Any]]:
        return TOOLS

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        arguments = arguments or {}
        if name == "list_models":
            return self.list_models().to_dict()
        if name == "generate_image":
            return (await self.generate_image(arguments)).to_dict()
        return ToolResult.error(f'Unknown tool "{name}"').to_dict()

    def list_models(self) -> ToolResult:
        models = [{**info.to_dict(), "available": True} for info in self.service.list_models()]
        return ToolResult.text(json.dumps({"models": models}, indent=2))

    async def generate_image(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            args = GenerateImageArgs.model_validate(arguments)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            return ToolResult.error(f"{ErrorCategory.VALIDATION_ERROR.value}: Invalid arguments: {fields}")

        if not args.prompt or not args.prompt.strip():
            return ToolResult.error(f"{ErrorCategory.VALIDATION_ERROR.value}: Prompt cannot be empty")
        if not args.output_path or not args.output_path.strip():
            return ToolResult.error(f"{ErrorCategory.VALIDATION_ERROR.value}: output_path is required")
        try:
            model = resolve_model(args.model)
        except ValueError as e:
            return ToolResult.error(f"{ErrorCategory.VALIDATION_ERROR.value}: {e}")

        request = ImageGenerationRequest(
            prompt=args.prompt,
            output_path=args.output_path,
            model=model,
            reference_images=list(args.reference_images or []),
            aspect_ratio=args.aspect_ratio,
            output_format=args.output_format,
            resolution=args.resolution,
            num_images=args.num_images,
            enable_web_search=args.enable_web_search,
        )
        try:
            result = await self.service.generate(request)
        except GenerationFailed as e:
            return ToolResult.error(e.classified.text)
        except Exception as e:
            logger.exception("Image generation failed", extra={"error": str(e)})
            return ToolResult.error(f"{ErrorCategory.GENERATION_ERROR.value}: {e}")

        meta: dict[str, Any] = {
            "model": result.model.value,
            "imagePath": result.image_path,
            "usage": result.usage,
        }
        if result.extra_paths:
            meta["additionalImages"] = result.extra_paths
        return ToolResult.text(f"Image saved to: {result.image_path}", meta=meta)


def create_tool_server(settings: Settings | None = None, usage_log: UsageLog | None = None) -> ToolServer:
    """Process entry point: load settings, set up logging, build the service."""
    settings = settings or get_settings()
    configure_logging(settings)
    service = ImageServiceFactory.create_from_settings(settings, usage_log=usage_log)
    logger.info(
        "Tool server ready",
        extra={"model": list(SUPPORTED_IMAGE_MODELS), "endpoint": settings.fal_run_url},
    )
    return ToolServer(service)
