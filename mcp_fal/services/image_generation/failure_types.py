"""
Failure normalization for the generate_image tool.
Maps any failure (exception or plain value) to a closed set of caller-facing categories.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mcp_fal.services.image_generation.base import DownloadError, ImageGenerationError


class ErrorCategory(str, Enum):
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    SAFETY_BLOCK = "SAFETY_BLOCK"
    TIMEOUT = "TIMEOUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"  # unmatched failure at the upstream boundary
    GENERATION_ERROR = "GENERATION_ERROR"  # unmatched failure anywhere else


@dataclass(frozen=True)
class ClassificationRule:
    category: ErrorCategory
    pattern: re.Pattern[str]
    status_codes: frozenset[int] = frozenset()

    def matches(self, message: str, status_code: int | None) -> bool:
        if status_code is not None and status_code in self.status_codes:
            return True
        return self.pattern.search(message) is not None


def _rule(category: ErrorCategory, pattern: str, *status_codes: int) -> ClassificationRule:
    return ClassificationRule(category, re.compile(pattern, re.IGNORECASE), frozenset(status_codes))


# Evaluated top to bottom, first match wins.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    _rule(ErrorCategory.AUTH_ERROR, r"api key|unauthori[sz]ed|authentication", 401, 403),
    # "rate" only as a whole word: "generate", "accurate" and "aspect ratio" are not rate limits
    _rule(ErrorCategory.RATE_LIMIT, r"quota|\brate\b|rate.?limit|429|too many requests", 429),
    _rule(ErrorCategory.SAFETY_BLOCK, r"nsfw|safety (filter|checker)"),
    _rule(ErrorCategory.CONTENT_BLOCKED, r"safety|blocked|content policy"),
    _rule(ErrorCategory.VALIDATION_ERROR, r"invalid|422|unprocessable entity", 422),
    _rule(ErrorCategory.TIMEOUT, r"timeout|timed out"),
)


@dataclass(frozen=True)
class ClassifiedError:
    category: ErrorCategory
    message: str
    status_code: int | None = None

    @property
    def text(self) -> str:
        """Category-prefixed message shown to the caller."""
        return f"{self.category.value}: {self.message}"


class GenerationFailed(ImageGenerationError):
    """Terminal pipeline failure carrying its classification."""
    def __init__(self, classified: ClassifiedError):
        super().__init__(classified.text, detail={"error_type": classified.category.value})
        self.classified = classified


def failure_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def failure_status_code(error: Any) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_failure(
    error: Any,
    default: ErrorCategory = ErrorCategory.API_ERROR,
) -> ClassifiedError:
    """
    Classify a failure by status code and message text.
    Total and deterministic: the same input always yields the same category.
    """
    if isinstance(error, GenerationFailed):
        return error.classified
    message = failure_message(error)
    status_code = failure_status_code(error)
    # download status codes come from the image CDN, not fal.ai: match the text only
    rule_status = None if isinstance(error, DownloadError) else status_code
    for rule in CLASSIFICATION_RULES:
        if rule.matches(message, rule_status):
            return ClassifiedError(rule.category, message, status_code)
    return ClassifiedError(default, message, status_code)
