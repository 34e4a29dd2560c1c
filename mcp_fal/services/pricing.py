"""
Estimated fal.ai cost per generation (USD).
Source: https://fal.ai/pricing, estimates as of January 2026.
"""
from dataclasses import dataclass

IMAGE_PRICING_PER_IMAGE: dict[str, float] = {
    "nano-banana": 0.039,
    "nano-banana-pro": 0.15,  # base 1K resolution
}

# nano-banana-pro only
RESOLUTION_MULTIPLIERS: dict[str, float] = {
    "1K": 1.0,
    "2K": 1.33,
    "4K": 2.0,
}


@dataclass(frozen=True)
class CostInfo:
    image_cost: float
    total_cost: float
    currency: str = "USD"
    estimated: bool = False


def _round_micro(value: float) -> float:
    return round(value * 1_000_000) / 1_000_000


def calculate_image_cost(model: str, resolution: str = "1K", num_images: int = 1) -> CostInfo:
    per_image = IMAGE_PRICING_PER_IMAGE.get(model)
    if per_image is None:
        return CostInfo(image_cost=0.0, total_cost=0.0, estimated=True)
    multiplier = RESOLUTION_MULTIPLIERS.get(resolution, 1.0) if model == "nano-banana-pro" else 1.0
    cost = _round_micro(per_image * multiplier * num_images)
    return CostInfo(image_cost=cost, total_cost=cost)
