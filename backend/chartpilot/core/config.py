"""
Centralized configuration management.

All application configuration is loaded and validated here, including the
tuning constants of the chart recommender.
"""
import os
import logging
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Application settings with validation."""

    # Input limits
    max_file_size_mb: int = Field(default=10, ge=1, le=1000, description="Maximum file size in MB")
    max_files: int = Field(default=3, ge=1, le=20, description="Maximum files per request")
    min_prompt_length: int = Field(default=3, ge=1, le=100, description="Minimum meaningful prompt length")
    supported_extensions: str = Field(default=".xlsx,.xls,.csv", description="Comma-separated file extensions")

    # Rate limiting
    rate_limit_per_minute: int = Field(default=10, ge=1, le=1000, description="Rate limit per minute per IP")

    # Request timeout
    request_timeout_seconds: int = Field(default=300, ge=1, le=3600, description="Request timeout in seconds")

    # CORS
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Comma-separated list of allowed CORS origins"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # AI model configuration
    groq_model: str = Field(default="llama-3.1-8b-instant", description="Groq model to use")
    gemini_model: str = Field(default="gemini-1.5-flash", description="Gemini model to use")
    ai_timeout_seconds: Optional[float] = Field(default=20.0, gt=0, le=600, description="Upper bound for a single AI call")

    # Chart recommender tuning
    preference_margin: float = Field(default=1.0, ge=0, description="Score gap needed for keywords to override the AI")
    few_rows_threshold: int = Field(default=8, ge=1, description="Row count that favours pie and radial charts")
    many_rows_threshold: int = Field(default=15, ge=1, description="Row count that penalises pie and radial charts")
    max_pie_categories: int = Field(default=12, ge=1, description="Distinct categories a pie chart can carry")
    quality_advisory_threshold: float = Field(default=0.6, ge=0, le=1, description="Quality score below which a warning is attached")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @field_validator('supported_extensions')
    @classmethod
    def validate_extensions(cls, v: str) -> str:
        exts = [e.strip().lower() for e in v.split(",") if e.strip()]
        if not exts or any(not e.startswith(".") for e in exts):
            raise ValueError(f"SUPPORTED_EXTENSIONS must be dot-prefixed extensions, got '{v}'")
        return ",".join(exts)

    @model_validator(mode='after')
    def validate_row_thresholds(self) -> "Settings":
        if self.few_rows_threshold >= self.many_rows_threshold:
            raise ValueError("FEW_ROWS_THRESHOLD must be lower than MANY_ROWS_THRESHOLD")
        return self

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def supported_extensions_list(self) -> List[str]:
        return self.supported_extensions.split(",")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        ai_timeout = os.getenv("AI_TIMEOUT_SECONDS", "20")
        return cls(
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "10")),
            max_files=int(os.getenv("MAX_FILES", "3")),
            min_prompt_length=int(os.getenv("MIN_PROMPT_LENGTH", "3")),
            supported_extensions=os.getenv("SUPPORTED_EXTENSIONS", ".xlsx,.xls,.csv"),
            rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "10")),
            request_timeout_seconds=int(os.getenv("REQUEST_TIMEOUT_SECONDS", "300")),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:3001"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            groq_model=os.getenv("GROQ_MODEL", "llama-3.1-8b-instant"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            # "none" disables the bound entirely
            ai_timeout_seconds=None if ai_timeout.lower() == "none" else float(ai_timeout),
            preference_margin=float(os.getenv("PREFERENCE_MARGIN", "1.0")),
            few_rows_threshold=int(os.getenv("FEW_ROWS_THRESHOLD", "8")),
            many_rows_threshold=int(os.getenv("MANY_ROWS_THRESHOLD", "15")),
            max_pie_categories=int(os.getenv("MAX_PIE_CATEGORIES", "12")),
            quality_advisory_threshold=float(os.getenv("QUALITY_ADVISORY_THRESHOLD", "0.6")),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info("Configuration loaded and validated successfully")
    return _settings


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()
