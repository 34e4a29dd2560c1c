import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any

from mcp_fal.core.config import Settings

LOG_FILE_NAME = "mcp-fal.log"
USAGE_FILE_NAME = "usage.jsonl"

usage_logger = logging.getLogger("mcp_fal.usage")


class JsonFormatter(logging.Formatter):
    """JSON log formatter with support for extra fields."""

    # Fields to extract from log record's extra dict
    EXTRA_FIELDS = (
        "model", "endpoint", "output_path", "attempt", "max_attempts",
        "delay_seconds", "duration_ms", "error", "error_type", "status_code",
        "index", "kind", "count", "url", "size_bytes", "retryable",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(settings: Settings) -> None:
    """
    Route all logs to stderr (stdout is reserved for the tool protocol)
    and, when a log directory is configured, to a rotating file.
    """
    formatter = JsonFormatter()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if settings.mcp_debug else logging.INFO)
    handlers: list[logging.Handler] = [handler]
    if settings.mcp_log_dir:
        os.makedirs(settings.mcp_log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(settings.mcp_log_dir, LOG_FILE_NAME),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    root.handlers = handlers


class UsageLog:
    """
    Append-only usage sink: one JSON line per generate_image call.
    Constructed once at startup and passed to the service; without a
    log directory every record is dropped.
    """

    def __init__(self, log_dir: str | None) -> None:
        self.log_dir = log_dir
        if self.log_dir:
            try:
                os.makedirs(self.log_dir, exist_ok=True)
            except OSError as e:
                usage_logger.warning("usage_log_disabled", extra={"error": str(e)})
                self.log_dir = None

    @property
    def path(self) -> str | None:
        if not self.log_dir:
            return None
        return os.path.join(self.log_dir, USAGE_FILE_NAME)

    def record(
        self,
        *,
        model: str,
        duration_ms: int,
        success: bool,
        error: str | None = None,
        estimated_cost_usd: float | None = None,
    ) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "model": model,
            "type": "image",
            "durationMs": duration_ms,
            "success": success,
        }
        if error is not None:
            entry["error"] = error
        if estimated_cost_usd is not None:
            entry["estimatedCostUsd"] = estimated_cost_usd

        path = self.path
        if path:
            try:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
            except OSError as e:
                usage_logger.warning("usage_log_write_failed", extra={"error": str(e)})
        return entry
