"""Pipeline configuration using Pydantic BaseSettings.

All settings are loaded from ``TELE_``-prefixed environment variables.
API keys are not settings; see ``tele.credentials``.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TeleSettings(BaseSettings):
    """Develop pipeline settings loaded from environment variables.

    Attributes:
        moonshot_base_url: Base URL of the chat-completions API used for
            scene analysis and prompt compilation.
        openai_images_url: Image edit endpoint used for enhancement.
        gemini_endpoint: Alternate image-to-image enhancement endpoint.
        vision_model: Model used for scene analysis.
        prompt_model: Model used for prompt compilation.
        enhancer_model: Model used for image enhancement.
        max_retries: Retries after the first attempt for transient failures.
        backoff_ceiling_seconds: Upper bound on any single retry delay.
        chat_timeout_seconds: Overall timeout of one chat request.
        enhancer_timeout_seconds: Overall timeout of one enhancement request.
        output_max_dimension: Longer-side cap of the crop handed to callers.
        analysis_max_dimension: Longer-side cap of images sent for analysis.
        square_dimension: Side of the square crop sent for enhancement.
        jpeg_quality: JPEG quality used when re-encoding crops.
        mock_latency_scale: Multiplier applied to simulated mock latencies.
        diagnostic_log_capacity: Number of diagnostic entries retained.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_prefix="TELE_",
        case_sensitive=False,
        extra="ignore",
        str_strip_whitespace=True,
    )

    # Endpoints
    moonshot_base_url: str = Field(default="https://api.moonshot.ai/v1", min_length=1)
    openai_images_url: str = Field(
        default="https://api.openai.com/v1/images/edits",
        min_length=1,
    )
    gemini_endpoint: str = Field(
        default=(
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-2.5-flash-image-preview:generateContent"
        ),
        min_length=1,
    )

    # Models
    vision_model: str = Field(default="moonshot-v1-8k-vision-preview", min_length=1)
    prompt_model: str = Field(default="moonshot-v1-8k", min_length=1)
    enhancer_model: str = Field(default="gpt-image-1", min_length=1)
    vision_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    prompt_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1, le=32000)

    # Resilience
    max_retries: int = Field(default=3, ge=0, le=8)
    backoff_ceiling_seconds: float = Field(default=30.0, gt=0.0, le=300.0)
    chat_timeout_seconds: float = Field(default=120.0, ge=1.0, le=600.0)
    enhancer_timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)

    # Crop geometry
    output_max_dimension: int = Field(default=1600, ge=1, le=4096)
    analysis_max_dimension: int = Field(default=768, ge=64, le=4096)
    square_dimension: int = Field(default=1024, ge=64, le=4096)
    jpeg_quality: int = Field(default=90, ge=1, le=100)

    # Mocks
    mock_latency_scale: float = Field(default=1.0, ge=0.0, le=10.0)

    # Diagnostics
    diagnostic_log_capacity: int = Field(default=100, ge=1, le=10000)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in allowed:
            error_message = f"log_level must be one of {allowed}, got '{value}'"
            raise ValueError(error_message)
        return upper_value


@lru_cache
def get_settings() -> TeleSettings:
    """Get cached settings instance.

    Returns:
        Cached TeleSettings instance.
    """
    return TeleSettings()
