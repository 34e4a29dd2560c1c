"""
Application configuration.
All settings are loaded from environment variables (or a local .env file).
"""
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Settings for the fal.ai image tool server.

    IMPORTANT: the fal.ai credential has no default - FAL_KEY (or FAL_API_KEY) MUST be set.
    """

    # ===========================================
    # FAL.AI CREDENTIAL
    # ===========================================
    # FAL_KEY wins over FAL_API_KEY when both are present
    fal_key: str = Field(validation_alias=AliasChoices("FAL_KEY", "FAL_API_KEY"))

    # ===========================================
    # FAL.AI ENDPOINTS
    # ===========================================
    fal_run_url: str = "https://fal.run"
    fal_storage_url: str = "https://rest.alpha.fal.ai"

    # ===========================================
    # IMAGE GENERATION - TIMEOUTS & RETRY
    # ===========================================
    generation_timeout_seconds: float = 180.0  # shared by all attempts of one request
    upload_timeout_seconds: float = 30.0  # per reference image
    retry_max_retries: int = 2
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    # ===========================================
    # LOGGING
    # ===========================================
    mcp_debug: bool = False
    mcp_log_dir: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("fal_key")
    @classmethod
    def validate_fal_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("FAL_KEY must not be empty (get one at https://fal.ai/dashboard/keys)")
        return v

    @field_validator("mcp_log_dir")
    @classmethod
    def parse_log_dir(cls, v: str | None) -> str | None:
        """Empty value or the literal "none" disables file logging."""
        if v is None:
            return None
        v = v.strip()
        if not v or v.lower() == "none":
            return None
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; read-only afterwards."""
    return Settings()
