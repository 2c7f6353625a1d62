"""Runtime settings.

Only ambient concerns live here (logging, API binding, guidance output).
Safety ceilings are module constants in breath.safety.limits and are never
read from the environment.
"""

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_rotation: str = Field(default="10 MB", validation_alias="LOG_ROTATION")
    log_retention: str = Field(default="7 days", validation_alias="LOG_RETENTION")
    api_host: str = Field(default="127.0.0.1", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    guidance_logging_enabled: bool = Field(
        default=True,
        validation_alias="GUIDANCE_LOGGING_ENABLED",
        description="Log every phase event emitted by running sessions",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("api_port")
    @classmethod
    def validate_api_port(cls, value: int) -> int:
        """Reject ports outside the TCP range."""
        if not 0 < value < 65536:
            raise ValueError(f"API_PORT must be between 1 and 65535, got {value}")
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
