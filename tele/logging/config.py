"""Log output settings, read from ``TELE_LOG_*`` environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(StrEnum):
    """Standard level names accepted by ``logging``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogStyle(StrEnum):
    """Rendering of each log line."""

    JSON = "json"
    HUMAN = "human"


class ColorMode(StrEnum):
    """When the human style may emit ANSI colors."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class LoggingConfig(BaseSettings):
    """Where and how log lines are written.

    Attributes:
        level: Root level.
        style: ``human`` for a terminal, ``json`` for log shipping.
        app_name: Value of the ``app`` field in JSON lines.
        color: Color policy for the human style; ``auto`` colors only a TTY.
        show_location: Add ``module:function:line`` to each line.
        quiet_loggers: Third-party loggers held at WARNING.
    """

    model_config = SettingsConfigDict(
        env_prefix="TELE_LOG_",
        case_sensitive=False,
        extra="ignore",
    )

    level: LogLevel = LogLevel.INFO
    style: LogStyle = LogStyle.HUMAN
    app_name: str = Field(default="tele-develop", min_length=1)
    color: ColorMode = ColorMode.AUTO
    show_location: bool = False
    quiet_loggers: tuple[str, ...] = ("httpx", "httpcore", "PIL")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, value: object) -> object:
        """Accept level names in any case."""
        return value.upper() if isinstance(value, str) else value


@lru_cache
def get_logging_config() -> LoggingConfig:
    """Return the process-wide logging config, read once from the environment."""
    return LoggingConfig()
